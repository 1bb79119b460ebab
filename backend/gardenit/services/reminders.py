"""Reminder delivery and care-reminder scheduling."""
import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session, joinedload

from gardenit.models.garden import Bed, Planting
from gardenit.models.reminder import Reminder
from gardenit.services.email import SendEmail, format_subject, send_email
from gardenit.services.notifications import format_due

logger = logging.getLogger(__name__)

DEFAULT_DAYS_TO_MATURITY = 60
WATERING_INTERVAL = timedelta(days=3)
FEEDING_INTERVAL = timedelta(days=14)


def deliver_due_reminders(db: Session, reference: datetime, send: SendEmail = send_email) -> int:
    """Email every unsent reminder due at or before ``reference``.

    Marks each reminder sent regardless of transport outcome so a broken SMTP
    setup does not resend the backlog every tick. Returns the count handled.
    """
    reminders = (
        db.query(Reminder)
        .filter(Reminder.due_at <= reference, Reminder.sent_at.is_(None))
        .options(joinedload(Reminder.user), joinedload(Reminder.planting).joinedload(Planting.plant))
        .all()
    )

    for reminder in reminders:
        if reminder.user.email:
            lines = [f"{reminder.title} is due {format_due(reminder.due_at)}."]
            if reminder.planting and reminder.planting.plant:
                lines.append(f"Plant: {reminder.planting.plant.common_name}")
            if reminder.details:
                lines.append(reminder.details)
            lines.append("Visit Gardenit to log progress or adjust reminders.")
            if not send(reminder.user.email, format_subject(reminder.title), "\n\n".join(lines)):
                logger.warning("Reminder %s not delivered to %s", reminder.id, reminder.user.email)
        reminder.sent_at = reference

    db.commit()
    return len(reminders)


def schedule_care_reminders(db: Session, planting_id: str, now: datetime | None = None) -> list[Reminder]:
    """Create watering, feeding and harvest-check reminders for a planting."""
    planting = (
        db.query(Planting)
        .filter(Planting.id == planting_id)
        .options(joinedload(Planting.plant), joinedload(Planting.bed).joinedload(Bed.garden))
        .first()
    )
    if not planting:
        return []

    if now is None:
        now = datetime.utcnow()
    name = planting.plant.common_name
    days_to_maturity = planting.plant.days_to_maturity or DEFAULT_DAYS_TO_MATURITY
    user_id = planting.bed.garden.user_id

    reminders = [
        Reminder(
            user_id=user_id,
            planting_id=planting.id,
            title=f"Water {name}",
            due_at=now + WATERING_INTERVAL,
            cadence="every 3 days",
            type="watering",
            details=f"Keep soil evenly moist around {name}. Adjust if rainfall is expected.",
        ),
        Reminder(
            user_id=user_id,
            planting_id=planting.id,
            title=f"Feed {name}",
            due_at=now + FEEDING_INTERVAL,
            cadence="every 14 days",
            type="feeding",
            details=f"Provide a balanced feed to {name} to support growth.",
        ),
        Reminder(
            user_id=user_id,
            planting_id=planting.id,
            title=f"Check harvest readiness for {name}",
            due_at=planting.start_date + timedelta(days=days_to_maturity),
            type="harvest",
            details=f"Based on {name}'s maturity window. Inspect fruit or foliage for readiness.",
        ),
    ]
    db.add_all(reminders)
    db.commit()
    return reminders
