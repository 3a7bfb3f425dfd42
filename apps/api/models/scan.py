"""Scan event recorded when an end customer opens a guide."""

from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class Scan(Base):
    """One end-customer session touch on a SKU guide."""

    __tablename__ = "scans"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    sku_id = Column(String, ForeignKey("skus.id", ondelete="CASCADE"), nullable=False, index=True)
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String, nullable=False, default="anonymous", index=True)
    user_agent = Column(String, nullable=True)
    hour_of_day = Column(Integer, nullable=False)  # 0-23
    completed = Column(Boolean, nullable=False, default=False)
    completion_step = Column(Integer, nullable=True)
    rating = Column(Integer, nullable=True)  # 1-5, null if not rated
    scanned_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    sku = relationship("Sku", back_populates="scans")
