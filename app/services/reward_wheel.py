"""Reward wheel selection: eligibility gate, effective weights and the weighted draw."""

from __future__ import annotations

import random
import secrets
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from app.core.config import settings
from app.domain.enums import SlotRewardType
from app.models.loyalty import LoyaltyMember
from app.models.reward_wheel import RewardWheel
from app.services.exceptions import NoActiveSlotsError
from app.services.tier_ladder import meets_tier

RandomSource = Callable[[float], float]

# Gate rules in evaluation order.
GATE_RULES = (
    "wheel_inactive",
    "outside_window",
    "required_tier",
    "required_points",
    "min_order_value",
    "total_spin_limit",
    "per_user_limit",
    "daily_limit",
    "no_spin_tokens",
)


@dataclass(frozen=True)
class WheelSlot:
    id: str
    name: str
    reward_type: SlotRewardType
    reward_value: Any = None
    base_weight: float = 0.0
    active: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WheelSlot":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            reward_type=SlotRewardType(data["reward_type"]),
            reward_value=data.get("reward_value"),
            base_weight=float(data.get("base_weight") or 0),
            active=bool(data.get("active", True)),
        )


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; they were stored as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def default_random_source(total: float) -> float:
    return random.random() * total


def check_eligibility(
    wheel: RewardWheel,
    member: LoyaltyMember,
    *,
    member_spins: int,
    member_spins_today: int,
    order_value: Optional[Decimal] = None,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """Return the first gate rule the request fails, or None when it may spin."""
    now = now or datetime.now(timezone.utc)

    if not wheel.is_active:
        return "wheel_inactive"
    start, end = _as_aware(wheel.start_date), _as_aware(wheel.end_date)
    if (start and now < start) or (end and now > end):
        return "outside_window"

    if not meets_tier(member.tier, wheel.required_tier):
        return "required_tier"
    if member.points_current < (wheel.required_points or 0):
        return "required_points"

    if wheel.min_order_value and (order_value is None or Decimal(str(order_value)) < wheel.min_order_value):
        return "min_order_value"

    if wheel.total_spins_allowed is not None and wheel.current_spins_used >= wheel.total_spins_allowed:
        return "total_spin_limit"
    if wheel.spins_per_user is not None and member_spins >= wheel.spins_per_user:
        return "per_user_limit"
    if wheel.spins_per_day is not None and member_spins_today >= wheel.spins_per_day:
        return "daily_limit"

    if member.spin_tokens_available < (wheel.token_cost or 0):
        return "no_spin_tokens"
    return None


def effective_weights(
    slots: Sequence[WheelSlot],
    tier_modifiers: Optional[Mapping[str, Mapping[str, float]]],
    tier: str,
) -> list[float]:
    """Weight per slot in declared order; inactive slots weigh 0."""
    bonuses = (tier_modifiers or {}).get(tier) or {}
    weights = []
    for slot in slots:
        if not slot.active:
            weights.append(0.0)
            continue
        weights.append(max(0.0, slot.base_weight + float(bonuses.get(slot.id, 0))))
    return weights


def draw(
    slots: Sequence[WheelSlot],
    weights: Sequence[float],
    random_source: Optional[RandomSource] = None,
) -> WheelSlot:
    """Pick the first slot whose cumulative weight exceeds a uniform value in [0, total)."""
    if len(slots) != len(weights):
        raise ValueError("slots and weights must have the same length")
    total = sum(weights)
    if total <= 0:
        raise NoActiveSlotsError("wheel_has_no_active_slots")

    value = (random_source or default_random_source)(total)
    if not 0 <= value < total:
        raise ValueError(f"random source returned {value!r}, expected a value in [0, {total})")

    cumulative = 0.0
    for slot, weight in zip(slots, weights):
        cumulative += weight
        if weight > 0 and value < cumulative:
            return slot
    # Float accumulation can leave value just below total; fall to the last weighted slot.
    return next(slot for slot, weight in reversed(list(zip(slots, weights))) if weight > 0)


def _coupon_code() -> str:
    return f"SPIN{secrets.token_hex(4).upper()}"


def resolve_payload(slot: WheelSlot, now: Optional[datetime] = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    if slot.reward_type is SlotRewardType.coupon:
        return {
            "discount_percent": slot.reward_value,
            "code": _coupon_code(),
            "expires_at": (now + timedelta(days=settings.LOYALTY_COUPON_EXPIRY_DAYS)).isoformat(),
        }
    if slot.reward_type is SlotRewardType.free_shipping:
        return {
            "free_shipping": True,
            "expires_at": (now + timedelta(days=settings.LOYALTY_FREE_SHIPPING_EXPIRY_DAYS)).isoformat(),
        }
    if slot.reward_type is SlotRewardType.bonus_points:
        return {"points": int(slot.reward_value or 0)}
    return {}
