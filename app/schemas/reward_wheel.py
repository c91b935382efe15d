from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.domain.enums import SlotRewardType


class WheelSlotPayload(BaseModel):
    id: str = Field(..., min_length=1, max_length=80)
    name: str
    reward_type: SlotRewardType
    reward_value: Any = None
    base_weight: float = Field(..., ge=0, le=100)
    active: bool = True


class RewardWheelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    is_active: bool = True
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    slots: list[WheelSlotPayload] = Field(..., min_length=1)
    tier_modifiers: dict[str, dict[str, float]] = Field(default_factory=dict)
    required_tier: Optional[str] = None
    required_points: int = Field(0, ge=0)
    min_order_value: Optional[Decimal] = Field(None, ge=0)
    spins_per_user: Optional[int] = Field(1, ge=1)
    spins_per_day: Optional[int] = Field(None, ge=1)
    total_spins_allowed: Optional[int] = Field(None, ge=1)
    token_cost: int = Field(1, ge=0)


class RewardWheelRead(BaseModel):
    id: UUID
    name: str
    description: Optional[str]
    is_active: bool
    start_date: datetime
    end_date: Optional[datetime]
    slots: list[dict]
    tier_modifiers: dict
    required_tier: Optional[str]
    required_points: int
    min_order_value: Optional[Decimal]
    spins_per_user: Optional[int]
    spins_per_day: Optional[int]
    total_spins_allowed: Optional[int]
    token_cost: int
    current_spins_used: int

    model_config = ConfigDict(from_attributes=True)


class SpinRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    order_value: Optional[Decimal] = Field(None, ge=0)


class SpinRecordRead(BaseModel):
    id: UUID
    wheel_id: UUID
    member_id: str
    slot_id: str
    reward_type: str
    reward_payload: dict
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SpinResult(BaseModel):
    spin: SpinRecordRead
    slot_name: str
    spin_tokens_available: int
    points_added: int = 0
    badges_awarded: list[str] = []
