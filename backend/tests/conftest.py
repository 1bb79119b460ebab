import os
import sys
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("SMTP_HOST", "")

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from gardenit import models  # noqa: E402,F401
from gardenit.database import Base  # noqa: E402
from gardenit.models.focus import FocusItem  # noqa: E402
from gardenit.models.garden import Bed, Garden, Plant, Planting  # noqa: E402
from gardenit.models.reminder import Reminder  # noqa: E402
from gardenit.models.user import User  # noqa: E402
from gardenit.services.weather import WeatherSnapshot  # noqa: E402

# A Wednesday, 07:10 UTC
REFERENCE = datetime(2024, 5, 1, 7, 10)


class FakeWeather:
    """Weather client returning a fixed snapshot (or raising)."""

    def __init__(self, snapshot=None, error=None):
        self.snapshot = snapshot or WeatherSnapshot()
        self.error = error
        self.calls = []

    def fetch_snapshot(self, latitude, longitude):
        self.calls.append((latitude, longitude))
        if self.error:
            raise self.error
        return self.snapshot


class Outbox:
    """Captures outbound email instead of sending it."""

    def __init__(self, deliver=True):
        self.sent = []
        self.deliver = deliver

    def __call__(self, to_email, subject, body):
        self.sent.append({"to": to_email, "subject": subject, "body": body})
        return self.deliver


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def user(db):
    user = User(email="gardener@example.com", name="Gardener", location_lat=51.5, location_lon=-0.1)
    db.add(user)
    db.commit()
    return user


def add_planting(db, user, common_name, start_date, days_to_maturity=None, bed_name="North Bed"):
    garden = db.query(Garden).filter_by(user_id=user.id).first()
    if garden is None:
        garden = Garden(user_id=user.id, name="Kitchen")
        db.add(garden)
        db.flush()
    bed = db.query(Bed).filter_by(garden_id=garden.id, name=bed_name).first()
    if bed is None:
        bed = Bed(garden_id=garden.id, name=bed_name)
        db.add(bed)
        db.flush()
    plant = Plant(common_name=common_name, days_to_maturity=days_to_maturity, category="Vegetable")
    db.add(plant)
    db.flush()
    planting = Planting(bed_id=bed.id, plant_id=plant.id, start_date=start_date)
    db.add(planting)
    db.commit()
    return planting


def add_reminder(db, user, title, due_at, reminder_type="watering", sent_at=None):
    reminder = Reminder(user_id=user.id, title=title, due_at=due_at, type=reminder_type, sent_at=sent_at)
    db.add(reminder)
    db.commit()
    return reminder


def add_focus(db, user, kind, target_id, created_at=None):
    item = FocusItem(
        user_id=user.id,
        kind=kind,
        target_id=target_id,
        created_at=created_at or REFERENCE - timedelta(days=1),
    )
    db.add(item)
    db.commit()
    return item
