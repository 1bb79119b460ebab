"""Reminder model for scheduled garden tasks."""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from gardenit.database import Base


class Reminder(Base):
    """A scheduled task such as watering or feeding."""
    
    __tablename__ = "reminders"
    __table_args__ = (
        Index("ix_reminders_user_due", "user_id", "due_at"),
        Index("ix_reminders_pending", "sent_at", "due_at"),
    )
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    planting_id = Column(String(36), ForeignKey("plantings.id", ondelete="SET NULL"))
    
    title = Column(String(255), nullable=False)
    due_at = Column(DateTime, nullable=False)
    cadence = Column(String(50))  # e.g. "every 3 days"
    type = Column(String(50), nullable=False)  # watering, feeding, harvest, ...
    sent_at = Column(DateTime)
    details = Column(Text)
    
    # Relationships
    user = relationship("User", back_populates="reminders")
    planting = relationship("Planting", back_populates="reminders")
