"""Typed notification rule params and actions.

Rule params are stored as JSON text on ``NotificationRule.params``. They are
decoded here, at the storage boundary, into one variant per rule type so that
malformed documents are rejected before any evaluator sees them. Keys keep the
camelCase names used by the stored documents.
"""
import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gardenit.exceptions import RuleParamsError

Severity = Literal["info", "warning", "critical"]
Channel = Literal["inapp", "email", "push"]

SEVERITY_LEVELS: tuple[str, ...] = ("info", "warning", "critical")


def escalated_severity(severity: str) -> str:
    """Raise a severity one level; critical stays critical."""
    index = SEVERITY_LEVELS.index(severity)
    return SEVERITY_LEVELS[min(index + 1, len(SEVERITY_LEVELS) - 1)]


class _Params(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


# Actions

class NotifyAction(_Params):
    """Emit a notification through a channel."""

    do: Literal["notify"] = "notify"
    title: str = "Reminder"
    body: str = ""
    severity: Severity = "info"
    channel: Channel = "inapp"


class SuppressWhere(_Params):
    type: str = "watering"
    due_within_hours: float = Field(18, alias="dueWithinHours", ge=0)


class SuppressTasksAction(_Params):
    """Push matching reminders past an upcoming weather event."""

    do: Literal["suppress_tasks"] = "suppress_tasks"
    where: SuppressWhere = Field(default_factory=SuppressWhere)


class DigestAction(_Params):
    """Build and email the focus/task digest."""

    do: Literal["digest"] = "digest"
    channel: Literal["email"] = "email"


class EscalateAction(_Params):
    """Notify with the given severity raised one level.

    Dedup is keyed on the rule, so an escalate that follows a notify in the
    same rule is throttled along with it. Use it in a rule of its own.
    """

    do: Literal["escalate"] = "escalate"
    title: str = "Escalation"
    body: str = ""
    severity: Severity = "warning"
    channel: Channel = "inapp"


Action = Annotated[
    Union[NotifyAction, SuppressTasksAction, DigestAction, EscalateAction],
    Field(discriminator="do"),
]


# Rule params, one variant per rule type

class TimeRuleParams(_Params):
    actions: list[Action] = Field(default_factory=list)


class WeatherRuleParams(_Params):
    precip_prob_next_24h_gte: float | None = Field(None, alias="precipProbNext24hGte")
    frost_prob_gte: float | None = Field(None, alias="frostProbGte")
    min_temp_lte: float | None = Field(None, alias="minTempLte")
    max_temp_tomorrow_gte: float | None = Field(None, alias="maxTempTomorrowGte")
    gusts_next_24h_gte: float | None = Field(None, alias="gustsNext24hGte")
    actions: list[Action] = Field(default_factory=list)


class SoilRuleParams(_Params):
    soil_temp_10cm_gte: float | None = Field(None, alias="soilTemp10cmGte")
    species: list[str] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)


class PhenologyRuleParams(_Params):
    maturity_gdd_pct_gte: float = Field(0.8, alias="maturityGDDPctGte")
    actions: list[Action] = Field(default_factory=list)


class GardenRuleParams(_Params):
    overdue_task_hours_gte: float = Field(48, alias="overdueTaskHoursGte")
    focus_only: bool = Field(False, alias="focusOnly")
    actions: list[Action] = Field(default_factory=list)


RuleParams = Union[
    TimeRuleParams,
    WeatherRuleParams,
    SoilRuleParams,
    PhenologyRuleParams,
    GardenRuleParams,
]

PARAMS_BY_RULE_TYPE: dict[str, type[_Params]] = {
    "time": TimeRuleParams,
    "weather": WeatherRuleParams,
    "soil": SoilRuleParams,
    "phenology": PhenologyRuleParams,
    "garden": GardenRuleParams,
}


def decode_rule_params(rule_type: str, raw: str | dict[str, Any] | None) -> RuleParams:
    """Decode a stored params document into the variant for ``rule_type``.

    Raises:
        RuleParamsError: unknown rule type, invalid JSON, or a document whose
            fields do not validate against the variant.
    """
    model = PARAMS_BY_RULE_TYPE.get(rule_type)
    if model is None:
        raise RuleParamsError(f"Unknown rule type: {rule_type}")

    if raw is None or raw == "":
        data: Any = {}
    elif isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RuleParamsError(f"Rule params are not valid JSON: {exc}") from exc
    else:
        data = raw

    if not isinstance(data, dict):
        raise RuleParamsError("Rule params must be a JSON object")

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise RuleParamsError(f"Invalid {rule_type} rule params: {exc}") from exc


def encode_rule_params(params: RuleParams) -> str:
    """Serialize params back to their stored JSON form."""
    return params.model_dump_json(by_alias=True, exclude_none=True)


def first_notify_action(params: RuleParams) -> NotifyAction | None:
    for action in params.actions:
        if isinstance(action, NotifyAction):
            return action
    return None
