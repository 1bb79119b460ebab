"""Notification rule provisioning and CRUD."""
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy.orm import Session

from gardenit.config import get_settings
from gardenit.exceptions import RuleParamsError
from gardenit.models.notification import DEFAULT_THROTTLE_SECS, Notification, NotificationRule
from gardenit.schemas.rule_params import RuleParams, decode_rule_params, encode_rule_params

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuiltInRule:
    """Default rule definition provisioned for every user."""

    name: str
    type: str
    params: RuleParams
    schedule: str | None = None
    throttle_secs: int = DEFAULT_THROTTLE_SECS


def _parse_built_in(entry: dict[str, Any], source: Path) -> BuiltInRule:
    name = entry.get("name")
    rule_type = entry.get("type")
    if not name or not rule_type:
        raise RuleParamsError(f"Built-in rule missing name or type in {source}")
    return BuiltInRule(
        name=name,
        type=rule_type,
        params=decode_rule_params(rule_type, entry.get("params") or {}),
        schedule=entry.get("schedule"),
        throttle_secs=int(entry.get("throttle_secs", DEFAULT_THROTTLE_SECS)),
    )


def load_built_in_rules(path: Path) -> tuple[BuiltInRule, ...]:
    """Load built-in rule definitions from YAML.

    Every entry is validated up front; a malformed file fails loudly rather
    than provisioning half a catalog.
    """
    with open(path, "r") as f:
        data = yaml.safe_load(f) or []
    if not isinstance(data, list):
        raise RuleParamsError(f"Built-in rules file must contain a list: {path}")
    rules = tuple(_parse_built_in(entry, path) for entry in data)
    logger.debug("Loaded %d built-in rules from %s", len(rules), path)
    return rules


@lru_cache
def get_built_in_rules() -> tuple[BuiltInRule, ...]:
    """Cached built-in rule catalog."""
    return load_built_in_rules(get_settings().built_in_rules_path)


def ensure_built_in_rules(
    db: Session,
    user_id: str,
    built_in_rules: tuple[BuiltInRule, ...] | None = None,
) -> list[NotificationRule]:
    """Create any built-in rule the user does not have yet (matched by name).

    Existing rules are left untouched so edits and disablement persist.
    Returns the rules created.
    """
    if built_in_rules is None:
        built_in_rules = get_built_in_rules()

    existing_names = {
        name for (name,) in db.query(NotificationRule.name).filter(NotificationRule.user_id == user_id)
    }
    created = []
    for built_in in built_in_rules:
        if built_in.name in existing_names:
            continue
        rule = NotificationRule(
            user_id=user_id,
            name=built_in.name,
            type=built_in.type,
            schedule=built_in.schedule,
            params=encode_rule_params(built_in.params),
            throttle_secs=built_in.throttle_secs,
            is_enabled=1,
        )
        db.add(rule)
        created.append(rule)

    if created:
        db.commit()
        logger.info("Provisioned %d built-in rules for user %s", len(created), user_id)
    return created


def get_rules_by_user(db: Session, user_id: str, enabled_only: bool = False) -> list[NotificationRule]:
    """Get a user's rules in creation order."""
    query = db.query(NotificationRule).filter(NotificationRule.user_id == user_id)
    if enabled_only:
        query = query.filter(NotificationRule.is_enabled == 1)
    return query.order_by(NotificationRule.created_at.asc(), NotificationRule.id.asc()).all()


def get_rule(db: Session, user_id: str, rule_id: str) -> NotificationRule | None:
    return (
        db.query(NotificationRule)
        .filter(NotificationRule.id == rule_id, NotificationRule.user_id == user_id)
        .first()
    )


def create_rule(
    db: Session,
    user_id: str,
    name: str,
    rule_type: str,
    params: dict[str, Any],
    schedule: str | None = None,
    throttle_secs: int | None = None,
    is_enabled: bool = True,
) -> NotificationRule:
    """Create a user rule; params are validated against the rule type.

    Raises:
        RuleParamsError: params do not match ``rule_type``.
    """
    decoded = decode_rule_params(rule_type, params)
    rule = NotificationRule(
        user_id=user_id,
        name=name,
        type=rule_type,
        schedule=schedule,
        params=encode_rule_params(decoded),
        throttle_secs=throttle_secs if throttle_secs is not None else DEFAULT_THROTTLE_SECS,
        is_enabled=1 if is_enabled else 0,
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


def update_rule(db: Session, rule: NotificationRule, updates: dict[str, Any]) -> NotificationRule:
    """Apply a partial update; a type or params change is re-validated."""
    rule_type = updates.get("type") or rule.type
    if updates.get("params") is not None or updates.get("type") is not None:
        raw_params = updates["params"] if updates.get("params") is not None else rule.params
        rule.params = encode_rule_params(decode_rule_params(rule_type, raw_params))
        rule.type = rule_type

    for key in ("name", "throttle_secs"):
        if updates.get(key) is not None:
            setattr(rule, key, updates[key])
    if "schedule" in updates:
        rule.schedule = updates["schedule"]
    if updates.get("is_enabled") is not None:
        rule.is_enabled = 1 if updates["is_enabled"] else 0

    db.commit()
    db.refresh(rule)
    return rule


def delete_rule(db: Session, rule: NotificationRule) -> None:
    """Delete a rule, keeping its notifications detached from it."""
    db.query(Notification).filter(Notification.rule_id == rule.id).update(
        {Notification.rule_id: None}, synchronize_session=False
    )
    db.delete(rule)
    db.commit()
