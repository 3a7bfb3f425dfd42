"""Company model (tenant)."""

from sqlalchemy import Column, String, DateTime, Integer
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from config import settings, plan_sku_limit
from database import Base


class Company(Base):
    """A customer company owning SKUs, users and analytics."""

    __tablename__ = "companies"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    industry = Column(String, nullable=True)
    plan = Column(String, nullable=False, default=lambda: settings.DEFAULT_PLAN)  # trial, starter, growth, scale
    sku_limit = Column(Integer, nullable=False, default=lambda: plan_sku_limit(settings.DEFAULT_PLAN))  # -1 = unlimited
    plan_status = Column(String, nullable=False, default="active")  # active, past_due, cancelling, cancelled
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    users = relationship("User", back_populates="company", passive_deletes=True)
    skus = relationship("Sku", back_populates="company", passive_deletes=True)
