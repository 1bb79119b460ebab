"""Custom application exceptions."""


class GardenitError(Exception):
    """Base application exception."""


class WeatherFetchError(GardenitError):
    """Forecast could not be fetched or decoded."""


class RuleParamsError(GardenitError):
    """Stored or submitted rule params do not match the rule type."""


class RuleEvaluationError(GardenitError):
    """A single rule failed while being evaluated for a user."""

    def __init__(self, rule_name: str, user_id: str, cause: Exception):
        super().__init__(f"Rule {rule_name} failed for user {user_id}: {cause}")
        self.rule_name = rule_name
        self.user_id = user_id
        self.cause = cause


class MessageDeliveryError(GardenitError):
    """Outbound email could not be delivered."""
