from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.domain.enums import EngagementEvent
from app.schemas.badge import BadgeProgressRead, MemberBadgeRead


class MemberRead(BaseModel):
    user_id: str
    points_current: int
    points_total: int
    multiplier: Decimal
    tier: str
    tier_progress: float
    tier_updated_at: Optional[datetime]
    spin_tokens_available: int
    spin_tokens_total: int
    spins_total: int
    purchase_count: int
    total_spent: Decimal
    purchase_streak: int
    review_count: int
    referral_count: int
    login_streak: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TierBenefitsRead(BaseModel):
    multiplier: Decimal
    perks: list[str]


class NextTierRead(BaseModel):
    tier: str
    points_required: int
    points_needed: int
    benefits: list[str]


class LoyaltyProfileRead(BaseModel):
    member: MemberRead
    benefits: TierBenefitsRead
    next_tier: Optional[NextTierRead] = None
    badges: list[MemberBadgeRead] = Field(default_factory=list)
    badge_progress: list[BadgeProgressRead] = Field(default_factory=list)


class PurchaseCompletedPayload(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    order_amount: Decimal = Field(..., ge=0)
    occurred_at: Optional[datetime] = None
    order_id: Optional[str] = Field(None, max_length=64)


class PurchaseSummary(BaseModel):
    user_id: str
    points_added: int
    tokens_awarded: int
    tier: str
    tier_progress: float
    upgraded: bool
    badges_awarded: list[str]
    points_current: int
    points_total: int


class EngagementEventPayload(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    event_type: EngagementEvent
    event_value: int = Field(1, ge=1)
    occurred_at: Optional[datetime] = None


class EngagementSummary(BaseModel):
    user_id: str
    event_type: str
    points_added: int
    tokens_awarded: int
    tier: str
    badges_awarded: list[str]


class RedeemPayload(BaseModel):
    points: int = Field(..., gt=0)
    reason: str = Field("redeem", max_length=200)


class PointsEntryRead(BaseModel):
    id: UUID
    entry_type: str
    amount: int
    reason: Optional[str]
    order_id: Optional[str]
    expires_at: Optional[datetime]
    source_entry_id: Optional[UUID]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    points_total: int
    tier: str


class EligibleBadgesRead(BaseModel):
    user_id: str
    badge_ids: list[str]
