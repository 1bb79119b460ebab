"""Garden layout models: gardens, beds, plantings and the plant catalog."""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from gardenit.database import Base


class Garden(Base):
    """A user's garden."""
    
    __tablename__ = "gardens"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    user = relationship("User", back_populates="gardens")
    beds = relationship("Bed", back_populates="garden", cascade="all, delete-orphan")


class Bed(Base):
    """A growing bed inside a garden."""
    
    __tablename__ = "beds"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    garden_id = Column(String(36), ForeignKey("gardens.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    
    # Relationships
    garden = relationship("Garden", back_populates="beds")
    plantings = relationship("Planting", back_populates="bed", cascade="all, delete-orphan")


class Plant(Base):
    """Plant catalog entry (seeded by the catalog service)."""
    
    __tablename__ = "plants"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    common_name = Column(String(100), nullable=False, index=True)
    days_to_maturity = Column(Integer)
    category = Column(String(50))
    
    # Relationships
    plantings = relationship("Planting", back_populates="plant")


class Planting(Base):
    """A crop planted in a bed."""
    
    __tablename__ = "plantings"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    bed_id = Column(String(36), ForeignKey("beds.id", ondelete="CASCADE"), nullable=False, index=True)
    plant_id = Column(String(36), ForeignKey("plants.id"), nullable=False)
    start_date = Column(DateTime, nullable=False)
    active = Column(Integer, default=1)  # SQLite boolean
    notes = Column(Text)
    
    # Relationships
    bed = relationship("Bed", back_populates="plantings")
    plant = relationship("Plant", back_populates="plantings")
    reminders = relationship("Reminder", back_populates="planting")
