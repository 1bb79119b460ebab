"""User model."""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Float, String
from sqlalchemy.orm import relationship

from gardenit.database import Base


class User(Base):
    """User account (owned by the external auth layer)."""
    
    __tablename__ = "users"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, index=True)
    name = Column(String(100))
    location_lat = Column(Float)
    location_lon = Column(Float)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    gardens = relationship("Garden", back_populates="user", cascade="all, delete-orphan")
    focus_items = relationship("FocusItem", back_populates="user", cascade="all, delete-orphan")
    reminders = relationship("Reminder", back_populates="user", cascade="all, delete-orphan")
    notification_rules = relationship("NotificationRule", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    @property
    def has_location(self) -> bool:
        return self.location_lat is not None and self.location_lon is not None
