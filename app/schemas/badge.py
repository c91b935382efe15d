from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.domain.enums import BadgeCategory, BadgeRarity, BadgeRewardType


class BadgeConditionPayload(BaseModel):
    field: str
    operator: str
    value: Any = None


class BadgeTriggerPayload(BaseModel):
    # Checked by the badge evaluator so a bad trigger maps to InvalidTriggerError.
    type: Optional[str] = None
    value: Any = None
    timeframe: Optional[str] = "once"
    conditions: list[BadgeConditionPayload] = Field(default_factory=list)


class BadgeRewardPayload(BaseModel):
    type: BadgeRewardType = BadgeRewardType.points
    value: Any = None
    description: Optional[str] = None


class BadgeCreate(BaseModel):
    id: str = Field(..., min_length=1, max_length=80)
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    icon: Optional[str] = None
    category: BadgeCategory
    rarity: BadgeRarity = BadgeRarity.common
    trigger: BadgeTriggerPayload
    reward: BadgeRewardPayload = Field(default_factory=BadgeRewardPayload)
    is_active: bool = True
    is_hidden: bool = False
    priority: int = 0


class BadgeUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    trigger: Optional[BadgeTriggerPayload] = None
    reward: Optional[BadgeRewardPayload] = None
    is_active: Optional[bool] = None
    is_hidden: Optional[bool] = None
    priority: Optional[int] = None


class BadgeRead(BaseModel):
    id: str
    name: str
    description: Optional[str]
    icon: Optional[str]
    category: str
    rarity: str
    trigger_type: str
    trigger_value: Any
    trigger_timeframe: str
    trigger_conditions: list[dict]
    reward_type: str
    reward_value: Any
    reward_description: Optional[str]
    is_active: bool
    is_hidden: bool
    priority: int
    total_awarded: int
    current_holders: int
    last_awarded_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class MemberBadgeRead(BaseModel):
    badge_id: str
    earned_at: datetime
    reward_payload: Optional[dict] = None
    badge: BadgeRead

    model_config = ConfigDict(from_attributes=True)


class BadgeAwardPayload(BaseModel):
    user_id: str


class BadgeProgressRead(BaseModel):
    badge_id: str
    name: str
    current: float
    target: float
    percent: float
