"""Tier ladder rules: thresholds, promotion and progress toward the next tier."""

from __future__ import annotations

from decimal import Decimal
from typing import NamedTuple, Optional

from app.core.config import TIER_ORDER, settings

TIER_BENEFITS: dict[str, dict] = {
    "bronze": {"multiplier": Decimal("1"), "perks": ["Basic rewards"]},
    "silver": {"multiplier": Decimal("1.2"), "perks": ["20% bonus points", "Priority support"]},
    "gold": {"multiplier": Decimal("1.5"), "perks": ["50% bonus points", "Free shipping", "Early access"]},
    "platinum": {
        "multiplier": Decimal("2"),
        "perks": ["100% bonus points", "Exclusive deals", "Personal shopper"],
    },
    "diamond": {
        "multiplier": Decimal("3"),
        "perks": ["200% bonus points", "VIP events", "Concierge service"],
    },
}


class TierAdvance(NamedTuple):
    tier: str
    progress: float
    upgraded: bool


def _thresholds(thresholds: Optional[dict[str, int]]) -> dict[str, int]:
    return thresholds if thresholds is not None else settings.LOYALTY_TIER_THRESHOLDS


def tier_rank(tier: str) -> int:
    """Zero-based ladder position; unknown names raise ValueError."""
    try:
        return TIER_ORDER.index(str(tier).lower())
    except ValueError:
        raise ValueError(f"unknown_tier: {tier}") from None


def next_tier(tier: str) -> Optional[str]:
    rank = tier_rank(tier)
    if rank + 1 >= len(TIER_ORDER):
        return None
    return TIER_ORDER[rank + 1]


def meets_tier(member_tier: str, required: Optional[str]) -> bool:
    if required is None or str(required).lower() == "none":
        return True
    return tier_rank(member_tier) >= tier_rank(required)


def tier_progress(total_points: int, tier: str, thresholds: Optional[dict[str, int]] = None) -> float:
    """Percentage of the way from `tier`'s threshold to the next one, clamped to [0, 100]."""
    ladder = _thresholds(thresholds)
    upcoming = next_tier(tier)
    if upcoming is None:
        return 100.0
    floor_points = ladder[tier]
    span = ladder[upcoming] - floor_points
    progress = (total_points - floor_points) / span * 100
    return round(min(max(progress, 0.0), 100.0), 2)


def advance_tier(total_points: int, current_tier: str, thresholds: Optional[dict[str, int]] = None) -> TierAdvance:
    """Evaluate one step of the ladder.

    At most one promotion happens per call even when ``total_points`` is past
    several thresholds; callers re-invoke to cascade. A promotion reports a
    progress of 100 for the evaluation that reached the new tier.
    """
    ladder = _thresholds(thresholds)
    upcoming = next_tier(current_tier)
    if upcoming is None:
        return TierAdvance(current_tier, 100.0, False)
    if total_points >= ladder[upcoming]:
        return TierAdvance(upcoming, 100.0, True)
    return TierAdvance(current_tier, tier_progress(total_points, current_tier, ladder), False)


def next_tier_requirements(total_points: int, tier: str, thresholds: Optional[dict[str, int]] = None) -> Optional[dict]:
    ladder = _thresholds(thresholds)
    upcoming = next_tier(tier)
    if upcoming is None:
        return None
    return {
        "tier": upcoming,
        "points_required": ladder[upcoming],
        "points_needed": max(0, ladder[upcoming] - total_points),
        "benefits": TIER_BENEFITS[upcoming]["perks"],
    }


def tier_multiplier(tier: str) -> Decimal:
    return TIER_BENEFITS[str(tier).lower()]["multiplier"]
