"""Notification rules and the notifications they emit."""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from gardenit.database import Base

RULE_TYPES = ("time", "weather", "soil", "phenology", "garden")
SEVERITIES = ("info", "warning", "critical")
CHANNELS = ("inapp", "email", "push")

DEFAULT_THROTTLE_SECS = 6 * 60 * 60


class NotificationRule(Base):
    """Conditional rule evaluated by the notification scheduler."""
    
    __tablename__ = "notification_rules"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_notification_rule_name"),
    )
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    
    # Rule type: time, weather, soil, phenology, garden
    type = Column(String(20), nullable=False)
    schedule = Column(String(255))  # Recurrence expression, time rules only
    params = Column(Text, nullable=False, default="{}")  # JSON, decoded per type
    throttle_secs = Column(Integer, nullable=False, default=DEFAULT_THROTTLE_SECS)
    is_enabled = Column(Integer, default=1)  # SQLite boolean
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    user = relationship("User", back_populates="notification_rules")
    notifications = relationship("Notification", back_populates="rule", passive_deletes=True)


class Notification(Base):
    """Notification emitted by a rule (or ad hoc)."""
    
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_rule_due", "user_id", "rule_id", "due_at"),
        Index("ix_notifications_user_unread", "user_id", "cleared_at", "read_at"),
    )
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rule_id = Column(String(36), ForeignKey("notification_rules.id", ondelete="SET NULL"))
    
    # Content
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False, default="")
    severity = Column(String(20), nullable=False, default="info")
    channel = Column(String(20), nullable=False, default="inapp")
    meta = Column(Text)  # JSON context, e.g. triggering plantings
    
    # Scheduling: the evaluation instant that produced it, used for dedup
    due_at = Column(DateTime, nullable=False)
    
    # Status (set by the inbox, never by the engine)
    read_at = Column(DateTime)
    cleared_at = Column(DateTime)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    user = relationship("User", back_populates="notifications")
    rule = relationship("NotificationRule", back_populates="notifications")
