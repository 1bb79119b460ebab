"""Notification rule API endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gardenit.api.deps import get_current_user, get_db
from gardenit.exceptions import RuleParamsError
from gardenit.models.user import User
from gardenit.schemas.notification import (
    NotificationRuleCreate,
    NotificationRuleResponse,
    NotificationRuleUpdate,
)
from gardenit.services.notification_rules import (
    create_rule,
    delete_rule,
    get_rule,
    get_rules_by_user,
    update_rule,
)

router = APIRouter(prefix="/notification-rules", tags=["notification-rules"])


@router.get("", response_model=list[NotificationRuleResponse])
def list_rules(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get user's notification rules."""
    return get_rules_by_user(db, current_user.id)


@router.post("", response_model=NotificationRuleResponse, status_code=status.HTTP_201_CREATED)
def add_rule(
    request: NotificationRuleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a notification rule."""
    try:
        return create_rule(
            db,
            current_user.id,
            name=request.name,
            rule_type=request.type,
            params=request.params,
            schedule=request.schedule,
            throttle_secs=request.throttle_secs,
            is_enabled=request.is_enabled,
        )
    except RuleParamsError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A rule with this name already exists")


@router.patch("/{rule_id}", response_model=NotificationRuleResponse)
def edit_rule(
    rule_id: str,
    request: NotificationRuleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update a notification rule (enable/disable, thresholds, schedule)."""
    rule = get_rule(db, current_user.id, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")
    try:
        return update_rule(db, rule, request.model_dump(exclude_unset=True))
    except RuleParamsError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A rule with this name already exists")


@router.delete("/{rule_id}", response_model=NotificationRuleResponse)
def remove_rule(
    rule_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete a rule; its past notifications stay in the inbox."""
    rule = get_rule(db, current_user.id, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")
    response = NotificationRuleResponse.model_validate(rule)
    delete_rule(db, rule)
    return response
