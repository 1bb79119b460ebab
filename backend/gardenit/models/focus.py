"""Focus items: a user's pinned priorities."""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from gardenit.database import Base

FOCUS_KINDS = ("plant", "bed", "planting", "task")


class FocusItem(Base):
    """Pinned reference to a plant, bed, planting or task (reminder)."""
    
    __tablename__ = "focus_items"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(20), nullable=False)  # plant, bed, planting, task
    target_id = Column(String(36), nullable=False)
    label = Column(String(100))
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    user = relationship("User", back_populates="focus_items")
