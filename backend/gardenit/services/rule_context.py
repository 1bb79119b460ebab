"""Per-user context assembled once per scheduler tick."""
import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session, joinedload

from gardenit.exceptions import WeatherFetchError
from gardenit.models.focus import FocusItem
from gardenit.models.garden import Bed, Garden, Plant, Planting
from gardenit.models.reminder import Reminder
from gardenit.models.user import User
from gardenit.services.weather import WeatherClient, WeatherSnapshot

logger = logging.getLogger(__name__)


@dataclass
class UserRuleContext:
    """Everything a rule evaluation reads for one user."""

    weather: WeatherSnapshot | None = None
    focus_items: list[FocusItem] = field(default_factory=list)
    reminders: list[Reminder] = field(default_factory=list)
    plantings: list[Planting] = field(default_factory=list)
    plants_by_id: dict[str, Plant] = field(default_factory=dict)

    @property
    def timezone(self) -> str:
        return self.weather.timezone if self.weather else "UTC"

    def planting(self, planting_id: str) -> Planting | None:
        return next((p for p in self.plantings if p.id == planting_id), None)

    def bed(self, bed_id: str) -> Bed | None:
        planting = next((p for p in self.plantings if p.bed_id == bed_id), None)
        return planting.bed if planting else None

    def reminder(self, reminder_id: str) -> Reminder | None:
        return next((r for r in self.reminders if r.id == reminder_id), None)

    def focus_task_ids(self) -> set[str]:
        return {item.target_id for item in self.focus_items if item.kind == "task"}


def fetch_user_weather(user: User, weather_client: WeatherClient) -> WeatherSnapshot | None:
    """Fetch the user's snapshot; None without a location or on fetch failure."""
    if not user.has_location:
        return None
    try:
        return weather_client.fetch_snapshot(user.location_lat, user.location_lon)
    except WeatherFetchError as e:
        logger.warning("Weather snapshot failed for user %s: %s", user.id, e)
        return None


def build_user_context(db: Session, user: User, weather_client: WeatherClient) -> UserRuleContext:
    """Read-only aggregation of weather, focus items, reminders and plantings."""
    focus_items = (
        db.query(FocusItem)
        .filter(FocusItem.user_id == user.id)
        .order_by(FocusItem.created_at.asc())
        .all()
    )
    reminders = db.query(Reminder).filter(Reminder.user_id == user.id).all()
    plantings = (
        db.query(Planting)
        .join(Planting.bed)
        .join(Bed.garden)
        .filter(Garden.user_id == user.id, Planting.active == 1)
        .options(
            joinedload(Planting.plant),
            joinedload(Planting.bed).joinedload(Bed.garden),
        )
        .all()
    )

    plant_ids = [item.target_id for item in focus_items if item.kind == "plant"]
    plants = db.query(Plant).filter(Plant.id.in_(plant_ids)).all() if plant_ids else []

    return UserRuleContext(
        weather=fetch_user_weather(user, weather_client),
        focus_items=focus_items,
        reminders=reminders,
        plantings=plantings,
        plants_by_id={plant.id: plant for plant in plants},
    )
