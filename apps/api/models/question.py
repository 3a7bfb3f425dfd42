"""Question asked by an end customer during assembly."""

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class Question(Base):
    """Append-only question event."""

    __tablename__ = "questions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    sku_id = Column(String, ForeignKey("skus.id", ondelete="CASCADE"), nullable=False, index=True)
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String, nullable=False, default="anonymous")
    question_text = Column(String, nullable=False)
    step_number = Column(Integer, nullable=True)
    asked_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    sku = relationship("Sku", back_populates="questions")
