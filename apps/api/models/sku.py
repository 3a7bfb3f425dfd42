"""SKU model: one product entry driving a generated assembly guide."""

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


SKU_STATUS_PROCESSING = "processing"
SKU_STATUS_LIVE = "live"
SKU_STATUS_ERROR = "error"
SKU_STATUSES = (SKU_STATUS_PROCESSING, SKU_STATUS_LIVE, SKU_STATUS_ERROR)

# Populated together when the pipeline commits, absent otherwise.
DERIVED_FIELDS = ("video_url", "video_duration", "step_count", "qr_code_url", "qr_target_url")


class Sku(Base):
    """Company-scoped product SKU and its generated guide artifacts."""

    __tablename__ = "skus"
    __table_args__ = (UniqueConstraint("company_id", "sku_code", name="uq_skus_company_code"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    sku_code = Column(String, nullable=False, index=True)
    product_name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    status = Column(String, nullable=False, default=SKU_STATUS_PROCESSING, index=True)
    file_url = Column(String, nullable=True)  # stored instruction artifact
    file_type = Column(String, nullable=True)  # pdf, image
    video_url = Column(String, nullable=True)
    video_duration = Column(Integer, nullable=True)  # seconds
    step_count = Column(Integer, nullable=True)
    qr_code_url = Column(String, nullable=True)
    qr_target_url = Column(String, nullable=True)
    error_message = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    company = relationship("Company", back_populates="skus")
    scans = relationship("Scan", back_populates="sku", passive_deletes=True)
    questions = relationship("Question", back_populates="sku", passive_deletes=True)

    def derived_fields(self) -> dict:
        return {name: getattr(self, name) for name in DERIVED_FIELDS}
