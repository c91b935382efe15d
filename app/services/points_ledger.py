from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import record_points_earned, record_points_redeemed
from app.db.operations import flush_async, refresh_async, rowcount
from app.domain.enums import PointsEntryType, Tier
from app.models.loyalty import LoyaltyMember, PointsEntry
from app.services import spin_tokens, tier_ladder
from app.services.event_bus import emit_loyalty_event
from app.services.exceptions import DomainValidationError, InsufficientBalanceError, ResourceNotFoundError

logger = get_logger(__name__)


@dataclass
class EarnResult:
    points_added: int
    tokens_awarded: int
    tier: str
    tier_progress: float
    upgraded: bool
    previous_tier: str
    entry: PointsEntry


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _member_query(user_id: str):
    return (
        select(LoyaltyMember)
        .where(LoyaltyMember.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


async def get_member(db: AsyncSession, user_id: str) -> LoyaltyMember:
    member = (await db.execute(_member_query(user_id))).scalar_one_or_none()
    if not member:
        raise ResourceNotFoundError("member_not_found")
    return member


async def get_or_create_member(db: AsyncSession, user_id: str) -> LoyaltyMember:
    """Load the member row locked for update, creating the account on first use."""
    member = (await db.execute(_member_query(user_id))).scalar_one_or_none()
    if member:
        return member

    member = LoyaltyMember(
        user_id=user_id,
        tier=Tier.bronze.value,
        points_current=0,
        points_total=0,
        multiplier=Decimal("1"),
    )
    try:
        async with db.begin_nested():
            db.add(member)
            await flush_async(db, member)
    except IntegrityError:
        # Otra transacción creó el miembro primero.
        return await get_member(db, user_id)
    await refresh_async(db, member)
    logger.info("loyalty member created", extra={"user_id": user_id})
    return member


def earned_points(amount: float | int | Decimal, multiplier: float | Decimal) -> int:
    value = Decimal(str(amount)) * Decimal(str(multiplier))
    return math.floor(value)


async def _apply_tier_evaluation(db: AsyncSession, member: LoyaltyMember) -> tier_ladder.TierAdvance:
    previous = member.tier
    advance = tier_ladder.advance_tier(member.points_total, member.tier)
    if advance.upgraded:
        member.tier = advance.tier
        # Persisted progress is measured inside the tier just reached.
        member.tier_progress = tier_ladder.tier_progress(member.points_total, advance.tier)
        member.tier_updated_at = _utcnow()
        tier_multiplier = tier_ladder.tier_multiplier(advance.tier)
        if tier_multiplier > Decimal(member.multiplier):
            member.multiplier = tier_multiplier
        logger.info(
            "tier promoted",
            extra={"user_id": member.user_id, "previous_tier": previous, "tier": advance.tier},
        )
        emit_loyalty_event(
            "tier_upgraded",
            {
                "user_id": member.user_id,
                "previous_tier": previous,
                "tier": advance.tier,
                "points_total": member.points_total,
            },
        )
    else:
        member.tier_progress = advance.progress
    db.add(member)
    await flush_async(db, member)
    return advance


async def earn(
    db: AsyncSession,
    member: LoyaltyMember,
    amount: float | int | Decimal,
    reason: str,
    multiplier: Optional[float | Decimal] = None,
    *,
    entry_type: PointsEntryType = PointsEntryType.earned,
    order_id: Optional[str] = None,
) -> EarnResult:
    """Credit floor(amount * multiplier) points.

    Order of effects: history entry, balances, spin token conversion, one
    tier evaluation. ``multiplier`` defaults to the member's own multiplier.
    """
    if Decimal(str(amount)) < 0:
        raise DomainValidationError("amount_must_be_non_negative")
    factor = Decimal(str(multiplier)) if multiplier is not None else Decimal(member.multiplier)
    if factor < 1:
        raise DomainValidationError("multiplier_must_be_at_least_one")

    points = earned_points(amount, factor)
    previous_tier = member.tier
    now = _utcnow()

    entry = PointsEntry(
        member_id=member.user_id,
        entry_type=entry_type.value,
        amount=points,
        reason=reason,
        order_id=order_id,
        expires_at=now + timedelta(days=settings.LOYALTY_POINTS_EXPIRY_DAYS),
    )
    db.add(entry)
    await flush_async(db, entry)

    await rowcount(
        db,
        update(LoyaltyMember)
        .where(LoyaltyMember.user_id == member.user_id)
        .values(
            points_current=LoyaltyMember.points_current + points,
            points_total=LoyaltyMember.points_total + points,
            token_points=LoyaltyMember.token_points + points,
        )
        .execution_options(synchronize_session=False),
    )
    await refresh_async(db, member)

    threshold = settings.LOYALTY_SPIN_TOKEN_THRESHOLD
    tokens, _remaining = spin_tokens.check_and_award(member.token_points, threshold)
    if tokens:
        await rowcount(
            db,
            update(LoyaltyMember)
            .where(LoyaltyMember.user_id == member.user_id)
            .values(token_points=LoyaltyMember.token_points - tokens * threshold)
            .execution_options(synchronize_session=False),
        )
        await spin_tokens.grant_tokens(db, member, tokens)

    advance = await _apply_tier_evaluation(db, member)
    record_points_earned(entry_type.value, points)
    logger.info(
        "points earned",
        extra={
            "user_id": member.user_id,
            "points": points,
            "entry_type": entry_type.value,
            "reason": reason,
            "tokens_awarded": tokens,
        },
    )
    return EarnResult(
        points_added=points,
        tokens_awarded=tokens,
        tier=member.tier,
        tier_progress=member.tier_progress,
        upgraded=advance.upgraded,
        previous_tier=previous_tier,
        entry=entry,
    )


async def redeem(db: AsyncSession, member: LoyaltyMember, amount: int, reason: str) -> PointsEntry:
    if amount <= 0:
        raise DomainValidationError("amount_must_be_positive")

    touched = await rowcount(
        db,
        update(LoyaltyMember)
        .where(LoyaltyMember.user_id == member.user_id)
        .where(LoyaltyMember.points_current >= amount)
        .values(points_current=LoyaltyMember.points_current - amount)
        .execution_options(synchronize_session=False),
    )
    if not touched:
        await refresh_async(db, member)
        logger.warning(
            "redeem rejected",
            extra={"user_id": member.user_id, "requested": amount, "available": member.points_current},
        )
        raise InsufficientBalanceError(amount, member.points_current)

    entry = PointsEntry(
        member_id=member.user_id,
        entry_type=PointsEntryType.redeemed.value,
        amount=-amount,
        reason=reason,
    )
    db.add(entry)
    await flush_async(db, entry)
    await refresh_async(db, member)
    record_points_redeemed(amount)
    emit_loyalty_event("points_redeemed", {"user_id": member.user_id, "points": amount, "reason": reason})
    return entry


async def expire_points(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Append an `expired` entry for every lapsed credit that has none yet. Returns the count."""
    now = now or _utcnow()
    expired_entry = aliased(PointsEntry)
    stmt = (
        select(PointsEntry)
        .outerjoin(expired_entry, expired_entry.source_entry_id == PointsEntry.id)
        .where(
            and_(
                PointsEntry.entry_type.in_([PointsEntryType.earned.value, PointsEntryType.bonus.value]),
                PointsEntry.expires_at.is_not(None),
                PointsEntry.expires_at <= now,
                PointsEntry.amount > 0,
                expired_entry.id.is_(None),
            )
        )
        .order_by(PointsEntry.member_id, PointsEntry.created_at)
    )
    lapsed = (await db.execute(stmt)).scalars().all()

    count = 0
    for source in lapsed:
        member = await get_member(db, source.member_id)
        deduction = min(source.amount, member.points_current)
        if deduction:
            await rowcount(
                db,
                update(LoyaltyMember)
                .where(LoyaltyMember.user_id == member.user_id)
                .where(LoyaltyMember.points_current >= deduction)
                .values(points_current=LoyaltyMember.points_current - deduction)
                .execution_options(synchronize_session=False),
            )
        db.add(
            PointsEntry(
                member_id=member.user_id,
                entry_type=PointsEntryType.expired.value,
                amount=-deduction,
                reason="points_expired",
                source_entry_id=source.id,
            )
        )
        await flush_async(db)
        count += 1

    if count:
        logger.info("points expired", extra={"entries": count})
    return count


async def list_history(
    db: AsyncSession,
    user_id: str,
    entry_type: Optional[PointsEntryType] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[PointsEntry]:
    stmt = select(PointsEntry).where(PointsEntry.member_id == user_id)
    if entry_type is not None:
        stmt = stmt.where(PointsEntry.entry_type == PointsEntryType(entry_type).value)
    stmt = stmt.order_by(PointsEntry.created_at.desc()).limit(limit).offset(offset)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def reevaluate_tier(db: AsyncSession, user_id: str) -> tier_ladder.TierAdvance:
    """Run one more tier evaluation; callers loop on `upgraded` to cascade."""
    member = await get_member(db, user_id)
    return await _apply_tier_evaluation(db, member)
