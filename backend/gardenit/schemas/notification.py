"""Notification and notification rule API schemas."""
import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

RuleType = Literal["time", "weather", "soil", "phenology", "garden"]


class NotificationRuleCreate(BaseModel):
    """Request to create a notification rule."""
    
    name: str = Field(..., min_length=1, max_length=100)
    type: RuleType
    schedule: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    throttle_secs: int | None = Field(None, gt=0)
    is_enabled: bool = True


class NotificationRuleUpdate(BaseModel):
    """Partial rule update; omitted fields are left unchanged."""
    
    name: str | None = Field(None, min_length=1, max_length=100)
    type: RuleType | None = None
    schedule: str | None = None
    params: dict[str, Any] | None = None
    throttle_secs: int | None = Field(None, gt=0)
    is_enabled: bool | None = None


class NotificationRuleResponse(BaseModel):
    """Stored notification rule."""
    
    id: str
    name: str
    type: str
    schedule: str | None
    params: dict[str, Any]
    throttle_secs: int
    is_enabled: bool
    
    @field_validator("params", mode="before")
    @classmethod
    def parse_params(cls, v: Any) -> dict:
        if isinstance(v, str):
            return json.loads(v)
        return v
    
    class Config:
        from_attributes = True


class NotificationResponse(BaseModel):
    """Notification as shown in the inbox."""
    
    id: str
    rule_id: str | None
    rule_name: str | None = None
    title: str
    body: str
    severity: str
    channel: str
    due_at: datetime
    read_at: datetime | None
    
    class Config:
        from_attributes = True


class NotificationSummaryResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int


class CountResponse(BaseModel):
    updated: int
