from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.db.operations import refresh_async, rowcount
from app.models.loyalty import LoyaltyMember
from app.services.exceptions import DomainValidationError, NotEligibleError

logger = get_logger(__name__)


def check_and_award(points_current: int, threshold: int) -> tuple[int, int]:
    """Convert accumulated points into whole tokens: (tokens, remaining points)."""
    if threshold <= 0:
        raise ValueError("threshold must be positive")
    if points_current <= 0:
        return 0, max(points_current, 0)
    return divmod(points_current, threshold)


async def grant_tokens(db: AsyncSession, member: LoyaltyMember, count: int) -> LoyaltyMember:
    if count < 0:
        raise DomainValidationError("token_count_negative")
    if count == 0:
        return member
    await rowcount(
        db,
        update(LoyaltyMember)
        .where(LoyaltyMember.user_id == member.user_id)
        .values(
            spin_tokens_available=LoyaltyMember.spin_tokens_available + count,
            spin_tokens_total=LoyaltyMember.spin_tokens_total + count,
            spin_tokens_last_earned_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False),
    )
    await refresh_async(db, member)
    logger.info("spin tokens granted", extra={"user_id": member.user_id, "tokens": count})
    return member


async def use_token(db: AsyncSession, member: LoyaltyMember, cost: int = 1) -> LoyaltyMember:
    """Consume `cost` tokens and count one spin attempt, or fail without touching the row."""
    touched = await rowcount(
        db,
        update(LoyaltyMember)
        .where(LoyaltyMember.user_id == member.user_id)
        .where(LoyaltyMember.spin_tokens_available >= cost)
        .values(
            spin_tokens_available=LoyaltyMember.spin_tokens_available - cost,
            spins_total=LoyaltyMember.spins_total + 1,
        )
        .execution_options(synchronize_session=False),
    )
    if not touched:
        raise NotEligibleError("no_spin_tokens", "not_eligible: no spin tokens available")
    await refresh_async(db, member)
    return member
