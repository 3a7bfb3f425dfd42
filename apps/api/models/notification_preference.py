"""Per-user notification preference flags."""

from sqlalchemy import Boolean, Column, ForeignKey, String
from sqlalchemy.orm import relationship
import uuid

from database import Base


class NotificationPreference(Base):
    """Email notification switches for a single user."""

    __tablename__ = "notification_preferences"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    qr_ready = Column(Boolean, nullable=False, default=True)
    weekly_digest = Column(Boolean, nullable=False, default=True)
    dropoff_alerts = Column(Boolean, nullable=False, default=False)
    question_spikes = Column(Boolean, nullable=False, default=True)
    billing = Column(Boolean, nullable=False, default=True)
    product_updates = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="notification_preference")
