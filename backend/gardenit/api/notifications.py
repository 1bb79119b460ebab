"""Notification inbox API endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from gardenit.api.deps import get_current_user, get_db
from gardenit.models.notification import Notification
from gardenit.models.user import User
from gardenit.schemas.notification import (
    CountResponse,
    NotificationResponse,
    NotificationSummaryResponse,
)
from gardenit.services.notifications import (
    SUMMARY_DEFAULT_LIMIT,
    clear_all_notifications,
    clear_notification,
    get_notification_summary,
    get_notifications,
    mark_all_notifications_read,
    mark_notification_read,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _to_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        rule_id=notification.rule_id,
        rule_name=notification.rule.name if notification.rule else None,
        title=notification.title,
        body=notification.body,
        severity=notification.severity,
        channel=notification.channel,
        due_at=notification.due_at,
        read_at=notification.read_at,
    )


@router.get("", response_model=list[NotificationResponse])
def list_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get user's notifications."""
    return [_to_response(n) for n in get_notifications(db, current_user.id, unread_only=unread_only)]


@router.get("/summary", response_model=NotificationSummaryResponse)
def notification_summary(
    limit: int = Query(SUMMARY_DEFAULT_LIMIT),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Most recent notifications and the unread count."""
    summary = get_notification_summary(db, current_user.id, limit=limit)
    return NotificationSummaryResponse(
        notifications=[_to_response(n) for n in summary["notifications"]],
        unread_count=summary["unread_count"],
    )


@router.post("/read-all", response_model=CountResponse)
def read_all(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark every notification as read."""
    return CountResponse(updated=mark_all_notifications_read(db, current_user.id))


@router.post("/clear-all", response_model=CountResponse)
def clear_all(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Clear every notification from the inbox."""
    return CountResponse(updated=clear_all_notifications(db, current_user.id))


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def read_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark a notification as read."""
    notification = mark_notification_read(db, current_user.id, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return _to_response(notification)


@router.post("/{notification_id}/clear", response_model=NotificationResponse)
def clear_one(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Clear a notification from the inbox."""
    notification = clear_notification(db, current_user.id, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return _to_response(notification)
