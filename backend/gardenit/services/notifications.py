"""Notification dispatch, digest building, and the notification inbox."""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session, joinedload

from gardenit.exceptions import MessageDeliveryError
from gardenit.models.notification import Notification, NotificationRule
from gardenit.models.reminder import Reminder
from gardenit.models.user import User
from gardenit.services.email import SendEmail, format_subject, send_email
from gardenit.services.rule_context import UserRuleContext

logger = logging.getLogger(__name__)

SUPPRESSION_NOTE = "Suppressed due to upcoming weather; we'll remind you after conditions improve."
DIGEST_TITLE = "Morning garden digest"
DIGEST_EMPTY_BODY = "No tasks today. Enjoy the garden!"
DIGEST_WINDOW = timedelta(hours=24)
SUMMARY_DEFAULT_LIMIT = 5
SUMMARY_MAX_LIMIT = 25


@dataclass
class NotificationPayload:
    """Content of a notification about to be dispatched."""

    title: str
    body: str
    severity: str = "info"
    channel: str = "inapp"
    meta: dict[str, Any] = field(default_factory=dict)


def format_due(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d %H:%M UTC")


# Store

def find_recent_notification(
    db: Session,
    user_id: str,
    rule_id: str,
    since: datetime,
) -> Notification | None:
    """Latest notification for (user, rule) with due_at at or after ``since``."""
    return (
        db.query(Notification)
        .filter(
            Notification.user_id == user_id,
            Notification.rule_id == rule_id,
            Notification.due_at >= since,
        )
        .order_by(Notification.due_at.desc())
        .first()
    )


def create_notification(
    db: Session,
    user_id: str,
    payload: NotificationPayload,
    due_at: datetime,
    rule_id: str | None = None,
) -> Notification:
    """Persist a notification row."""
    notification = Notification(
        user_id=user_id,
        rule_id=rule_id,
        title=payload.title,
        body=payload.body,
        severity=payload.severity,
        channel=payload.channel,
        due_at=due_at,
        meta=json.dumps(payload.meta) if payload.meta else None,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def _deliver(send: SendEmail, to_email: str, title: str, body: str) -> bool:
    try:
        delivered = send(to_email, format_subject(title), body)
    except MessageDeliveryError as e:
        logger.warning("Email delivery failed for %s: %s", to_email, e)
        return False
    if not delivered:
        logger.warning("Email not delivered to %s: %s", to_email, title)
    return delivered


# Dispatch

def dispatch_notification(
    db: Session,
    reference: datetime,
    user: User,
    rule: NotificationRule,
    payload: NotificationPayload,
    send: SendEmail = send_email,
) -> Notification:
    """Create a notification unless the rule already fired within its throttle.

    Dedup is keyed purely on (user, rule, time window); payload content does
    not matter. Email and push channels are both delivered by email. Delivery
    failures are logged and the notification is kept.
    """
    since = reference - timedelta(seconds=rule.throttle_secs)
    existing = find_recent_notification(db, user.id, rule.id, since)
    if existing:
        logger.debug("Rule %s throttled for user %s", rule.name, user.id)
        return existing

    notification = create_notification(db, user.id, payload, due_at=reference, rule_id=rule.id)
    if payload.channel in ("email", "push") and user.email:
        _deliver(send, user.email, payload.title, payload.body)
    return notification


def suppress_tasks(
    db: Session,
    reference: datetime,
    user_id: str,
    task_type: str = "watering",
    due_within_hours: float = 18,
) -> int:
    """Push reminders due in the next ``due_within_hours`` a day past the window.

    Returns the number of reminders rescheduled.
    """
    window_end = reference + timedelta(hours=due_within_hours)
    new_due = reference + timedelta(hours=due_within_hours + 24)
    reminders = (
        db.query(Reminder)
        .filter(
            Reminder.user_id == user_id,
            Reminder.type == task_type,
            Reminder.due_at >= reference,
            Reminder.due_at < window_end,
        )
        .all()
    )
    for reminder in reminders:
        reminder.due_at = new_due
        reminder.details = SUPPRESSION_NOTE
    db.commit()
    if reminders:
        logger.info("Suppressed %d %s reminders for user %s", len(reminders), task_type, user_id)
    return len(reminders)


def build_focus_digest(context: UserRuleContext) -> list[str]:
    """Render each focus item as a bullet; unknown targets are skipped."""
    lines = []
    for item in context.focus_items:
        if item.kind == "planting":
            planting = context.planting(item.target_id)
            if not planting:
                continue
            lines.append(
                f"• {planting.plant.common_name} in {planting.bed.name} "
                f"({planting.bed.garden.name}), planted {planting.start_date:%Y-%m-%d}"
            )
        elif item.kind == "bed":
            bed = context.bed(item.target_id)
            if not bed:
                continue
            lines.append(f"• Bed {bed.name} ({bed.garden.name})")
        elif item.kind == "plant":
            plant = context.plants_by_id.get(item.target_id)
            if not plant:
                continue
            lines.append(f"• {plant.common_name}")
        elif item.kind == "task":
            reminder = context.reminder(item.target_id)
            if not reminder:
                continue
            lines.append(f"• {reminder.title}, due {format_due(reminder.due_at)}")
    return lines


def build_digest_body(reference: datetime, context: UserRuleContext) -> str:
    focus_lines = build_focus_digest(context)
    upcoming = sorted(
        (
            reminder
            for reminder in context.reminders
            if reference <= reminder.due_at <= reference + DIGEST_WINDOW
        ),
        key=lambda reminder: reminder.due_at,
    )

    sections = []
    if focus_lines:
        sections.append("\n".join(["Focus priorities:", *focus_lines]))
    if upcoming:
        task_lines = [f"• {r.title}, due {format_due(r.due_at)}" for r in upcoming]
        sections.append("\n".join(["Today's tasks:", *task_lines]))
    return "\n\n".join(sections)


def dispatch_digest(
    db: Session,
    reference: datetime,
    user: User,
    rule: NotificationRule,
    context: UserRuleContext,
    send: SendEmail = send_email,
) -> Notification | None:
    """Email the focus/task digest, throttled like any other rule firing."""
    if not user.email:
        return None

    since = reference - timedelta(seconds=rule.throttle_secs)
    existing = find_recent_notification(db, user.id, rule.id, since)
    if existing:
        return existing

    body = build_digest_body(reference, context)
    payload = NotificationPayload(
        title=DIGEST_TITLE,
        body=body,
        severity="info",
        channel="email",
        meta={"focus": [item.target_id for item in context.focus_items]},
    )
    notification = create_notification(db, user.id, payload, due_at=reference, rule_id=rule.id)
    _deliver(send, user.email, "Morning digest", body or DIGEST_EMPTY_BODY)
    return notification


# Inbox

def get_notifications(db: Session, user_id: str, unread_only: bool = False, limit: int = 50) -> list[Notification]:
    """Get a user's uncleared notifications, newest first."""
    query = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.cleared_at.is_(None),
    )
    if unread_only:
        query = query.filter(Notification.read_at.is_(None))
    return (
        query.options(joinedload(Notification.rule))
        .order_by(Notification.due_at.desc())
        .limit(limit)
        .all()
    )


def get_notification_summary(db: Session, user_id: str, limit: int = SUMMARY_DEFAULT_LIMIT) -> dict:
    """Most recent notifications plus the unread count."""
    if limit <= 0:
        limit = SUMMARY_DEFAULT_LIMIT
    limit = min(limit, SUMMARY_MAX_LIMIT)
    unread_count = (
        db.query(Notification)
        .filter(
            Notification.user_id == user_id,
            Notification.cleared_at.is_(None),
            Notification.read_at.is_(None),
        )
        .count()
    )
    return {
        "notifications": get_notifications(db, user_id, limit=limit),
        "unread_count": unread_count,
    }


def _get_owned(db: Session, user_id: str, notification_id: str) -> Notification | None:
    return (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )


def mark_notification_read(db: Session, user_id: str, notification_id: str) -> Notification | None:
    notification = _get_owned(db, user_id, notification_id)
    if not notification:
        return None
    if notification.read_at is None:
        notification.read_at = datetime.utcnow()
        db.commit()
    return notification


def clear_notification(db: Session, user_id: str, notification_id: str) -> Notification | None:
    notification = _get_owned(db, user_id, notification_id)
    if not notification:
        return None
    now = datetime.utcnow()
    notification.cleared_at = now
    notification.read_at = notification.read_at or now
    db.commit()
    return notification


def mark_all_notifications_read(db: Session, user_id: str) -> int:
    count = (
        db.query(Notification)
        .filter(
            Notification.user_id == user_id,
            Notification.cleared_at.is_(None),
            Notification.read_at.is_(None),
        )
        .update({Notification.read_at: datetime.utcnow()}, synchronize_session=False)
    )
    db.commit()
    return count


def clear_all_notifications(db: Session, user_id: str) -> int:
    now = datetime.utcnow()
    notifications = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.cleared_at.is_(None))
        .all()
    )
    for notification in notifications:
        notification.cleared_at = now
        notification.read_at = notification.read_at or now
    db.commit()
    return len(notifications)
