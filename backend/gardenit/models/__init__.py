"""SQLAlchemy models package."""
from gardenit.models.user import User
from gardenit.models.garden import Bed, Garden, Plant, Planting
from gardenit.models.focus import FocusItem
from gardenit.models.reminder import Reminder
from gardenit.models.notification import Notification, NotificationRule

__all__ = [
    "User",
    "Garden",
    "Bed",
    "Plant",
    "Planting",
    "FocusItem",
    "Reminder",
    "Notification",
    "NotificationRule",
]
