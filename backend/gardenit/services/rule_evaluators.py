"""Rule evaluation: decide whether a rule fires, then run its actions.

Each ``decide_*`` function is pure: it reads the reference instant, the
decoded params and the user's context, and returns a ``Decision`` (the
actions to run plus notification metadata) or None when the rule does not
fire. ``evaluate_rule`` executes the decision through the dispatcher.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from gardenit.models.notification import Notification, NotificationRule
from gardenit.models.user import User
from gardenit.schemas.rule_params import (
    Action,
    DigestAction,
    EscalateAction,
    GardenRuleParams,
    NotifyAction,
    PhenologyRuleParams,
    RuleParams,
    SoilRuleParams,
    SuppressTasksAction,
    TimeRuleParams,
    WeatherRuleParams,
    decode_rule_params,
    escalated_severity,
    first_notify_action,
)
from gardenit.services.email import SendEmail, send_email
from gardenit.services.notifications import (
    NotificationPayload,
    dispatch_digest,
    dispatch_notification,
    format_due,
    suppress_tasks,
)
from gardenit.services.rule_context import UserRuleContext
from gardenit.services.schedule import local_time, matches_schedule

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)
HOUR = timedelta(hours=1)


@dataclass
class Decision:
    """Actions a firing rule should run."""

    actions: list[Action]
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class RuleRun:
    """One user's evaluation pass within a scheduler tick."""

    db: Session
    reference: datetime
    user: User
    context: UserRuleContext
    send: SendEmail = send_email


def _with_notify(params: RuleParams, default: NotifyAction, title: str | None, body: str) -> list[Action]:
    """Replace the rule's notify actions with one carrying computed text."""
    template = first_notify_action(params) or default
    notify = NotifyAction(
        title=title or template.title,
        body=body,
        severity=template.severity,
        channel=template.channel,
    )
    others = [action for action in params.actions if not isinstance(action, NotifyAction)]
    return [notify, *others]


# Decisions

def decide_time(reference: datetime, schedule: str | None, params: TimeRuleParams,
                context: UserRuleContext) -> Decision | None:
    if not schedule:
        return None
    if not matches_schedule(local_time(reference, context.timezone), schedule):
        return None
    return Decision(actions=list(params.actions))


def decide_weather(reference: datetime, params: WeatherRuleParams,
                   context: UserRuleContext) -> Decision | None:
    """First matching check wins: rain, then frost, then heat, then wind."""
    weather = context.weather
    if weather is None:
        return None

    if params.precip_prob_next_24h_gte is not None:
        if weather.precip_prob_next_24h >= params.precip_prob_next_24h_gte:
            return Decision(list(params.actions), {"condition": "rain", "focusOnly": False})

    if params.frost_prob_gte is not None or params.min_temp_lte is not None:
        min_temp = weather.min_temp_next_24h if weather.min_temp_next_24h is not None else float("inf")
        frost_ok = (
            (params.frost_prob_gte is None or weather.frost_probability >= params.frost_prob_gte)
            and (params.min_temp_lte is None or min_temp <= params.min_temp_lte)
        )
        if frost_ok:
            return Decision(list(params.actions), {"condition": "frost", "focusOnly": True})

    if params.max_temp_tomorrow_gte is not None:
        max_temp = weather.max_temp_tomorrow if weather.max_temp_tomorrow is not None else float("-inf")
        if max_temp >= params.max_temp_tomorrow_gte:
            return Decision(list(params.actions), {"condition": "heat", "focusOnly": False})

    if params.gusts_next_24h_gte is not None:
        gusts = weather.gusts_next_24h if weather.gusts_next_24h is not None else 0
        if gusts >= params.gusts_next_24h_gte:
            return Decision(list(params.actions), {"condition": "wind", "focusOnly": True})

    return None


def decide_soil(reference: datetime, params: SoilRuleParams,
                context: UserRuleContext) -> Decision | None:
    weather = context.weather
    if weather is None or weather.soil_temp_10cm is None or params.soil_temp_10cm_gte is None:
        return None
    if weather.soil_temp_10cm < params.soil_temp_10cm_gte:
        return None

    species = [name.lower() for name in params.species]
    relevant = [
        planting
        for planting in context.plantings
        if any(spec in planting.plant.common_name.lower() for spec in species)
    ]
    if not relevant:
        return None

    names = ", ".join(planting.plant.common_name for planting in relevant)
    body = f"Soil is {weather.soil_temp_10cm:.1f}°C, ideal for {names}."
    default = NotifyAction(title="Warm enough to sow")
    return Decision(
        actions=_with_notify(params, default, None, body),
        meta={"plantings": [planting.id for planting in relevant]},
    )


def maturity_ratio(reference: datetime, start_date: datetime, days_to_maturity: int) -> float:
    return ((reference - start_date) / DAY) / days_to_maturity


def decide_phenology(reference: datetime, params: PhenologyRuleParams,
                     context: UserRuleContext) -> Decision | None:
    nearing = [
        planting
        for planting in context.plantings
        if planting.plant.days_to_maturity
        and maturity_ratio(reference, planting.start_date, planting.plant.days_to_maturity)
        >= params.maturity_gdd_pct_gte
    ]
    if not nearing:
        return None

    names = ", ".join(planting.plant.common_name for planting in nearing)
    default = NotifyAction(title="Plantings nearing harvest window", channel="email")
    return Decision(
        actions=_with_notify(params, default, None, f"Check {names} for harvest readiness."),
        meta={"plantings": [planting.id for planting in nearing]},
    )


def decide_garden(reference: datetime, params: GardenRuleParams,
                  context: UserRuleContext) -> Decision | None:
    focus_tasks = context.focus_task_ids() if params.focus_only else None
    overdue = []
    for reminder in context.reminders:
        if reminder.sent_at and reminder.sent_at > reminder.due_at:
            continue
        if (reference - reminder.due_at) / HOUR < params.overdue_task_hours_gte:
            continue
        if focus_tasks is not None and reminder.id not in focus_tasks:
            continue
        overdue.append(reminder)
    if not overdue:
        return None

    body = "\n".join(f"• {reminder.title} ({format_due(reminder.due_at)})" for reminder in overdue)
    default = NotifyAction(title="Focus tasks overdue", severity="warning")
    return Decision(
        actions=_with_notify(params, default, None, body),
        meta={"reminders": [reminder.id for reminder in overdue]},
    )


def decide(reference: datetime, rule: NotificationRule, params: RuleParams,
           context: UserRuleContext) -> Decision | None:
    if isinstance(params, TimeRuleParams):
        return decide_time(reference, rule.schedule, params, context)
    if isinstance(params, WeatherRuleParams):
        return decide_weather(reference, params, context)
    if isinstance(params, SoilRuleParams):
        return decide_soil(reference, params, context)
    if isinstance(params, PhenologyRuleParams):
        return decide_phenology(reference, params, context)
    if isinstance(params, GardenRuleParams):
        return decide_garden(reference, params, context)
    raise TypeError(f"Unhandled rule params: {type(params).__name__}")


# Execution

def run_actions(run: RuleRun, rule: NotificationRule, actions: list[Action],
                meta: dict[str, Any] | None = None) -> list[Notification]:
    """Execute a rule's actions in order; returns notifications dispatched."""
    notifications = []
    for action in actions:
        if isinstance(action, NotifyAction):
            payload = NotificationPayload(
                title=action.title,
                body=action.body,
                severity=action.severity,
                channel=action.channel,
                meta=dict(meta or {}),
            )
            notifications.append(dispatch_notification(run.db, run.reference, run.user, rule, payload, run.send))
        elif isinstance(action, EscalateAction):
            payload = NotificationPayload(
                title=action.title,
                body=action.body,
                severity=escalated_severity(action.severity),
                channel=action.channel,
                meta={**(meta or {}), "escalatedFrom": action.severity},
            )
            notifications.append(dispatch_notification(run.db, run.reference, run.user, rule, payload, run.send))
        elif isinstance(action, SuppressTasksAction):
            suppress_tasks(
                run.db,
                run.reference,
                run.user.id,
                task_type=action.where.type,
                due_within_hours=action.where.due_within_hours,
            )
        elif isinstance(action, DigestAction):
            notification = dispatch_digest(run.db, run.reference, run.user, rule, run.context, run.send)
            if notification is not None:
                notifications.append(notification)
        else:
            raise TypeError(f"Unhandled action: {type(action).__name__}")
    return notifications


def evaluate_rule(run: RuleRun, rule: NotificationRule) -> list[Notification]:
    """Decode, decide and execute one rule for one user.

    Raises:
        RuleParamsError: the stored params do not match the rule type.
    """
    params = decode_rule_params(rule.type, rule.params)
    decision = decide(run.reference, rule, params, run.context)
    if decision is None:
        return []
    logger.debug("Rule %s fired for user %s", rule.name, run.user.id)
    return run_actions(run, rule, decision.actions, decision.meta)
