from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.db.operations import flush_async
from app.domain.enums import EngagementEvent, PointsEntryType
from app.models.loyalty import LoyaltyMember, PointsEntry
from app.services import badge_service, points_ledger, tier_ladder, wheel_service
from app.services.badge_evaluator import badge_progress, eligible_badges
from app.services.event_bus import emit_loyalty_event
from app.services.exceptions import DomainValidationError, ResourceNotFoundError
from app.services.reward_wheel import RandomSource

logger = get_logger(__name__)


def _next_streak(current: int, last_day: Optional[date], today: date) -> tuple[int, bool]:
    """Consecutive-day streak after activity on `today`; the flag is False for a same-day repeat."""
    if last_day is None:
        return 1, True
    gap = (today - last_day).days
    if gap <= 0:
        return max(current, 1), False
    if gap == 1:
        return current + 1, True
    return 1, True


async def _get_existing_member(db: AsyncSession, user_id: str) -> LoyaltyMember:
    member = await db.get(LoyaltyMember, user_id)
    if not member:
        raise ResourceNotFoundError("member_not_found")
    return member


async def on_purchase_completed(
    db: AsyncSession,
    user_id: str,
    order_amount: float | Decimal,
    occurred_at: Optional[datetime] = None,
    order_id: Optional[str] = None,
) -> dict[str, Any]:
    amount = Decimal(str(order_amount))
    if amount < 0:
        raise DomainValidationError("order_amount_must_be_non_negative")
    occurred_at = occurred_at or datetime.now(timezone.utc)

    member = await points_ledger.get_or_create_member(db, user_id)
    member.purchase_count += 1
    member.total_spent = Decimal(member.total_spent or 0) + amount
    streak, _ = _next_streak(member.purchase_streak, member.last_purchase_on, occurred_at.date())
    member.purchase_streak = streak
    member.longest_purchase_streak = max(member.longest_purchase_streak, streak)
    member.last_purchase_on = occurred_at.date()
    db.add(member)
    await flush_async(db, member)

    base = amount * Decimal(str(settings.LOYALTY_POINTS_PER_CURRENCY_UNIT))
    earned = await points_ledger.earn(db, member, base, "purchase", order_id=order_id)
    awarded = await badge_service.evaluate_and_award(
        db,
        member,
        purchase_time=occurred_at.strftime("%H:%M"),
        order_amount=float(amount),
    )

    summary = {
        "user_id": member.user_id,
        "points_added": earned.points_added,
        "tokens_awarded": earned.tokens_awarded,
        "tier": member.tier,
        "tier_progress": member.tier_progress,
        "upgraded": earned.upgraded,
        "badges_awarded": awarded,
        "points_current": member.points_current,
        "points_total": member.points_total,
    }
    emit_loyalty_event("purchase_processed", {**summary, "order_id": order_id})
    return summary


async def on_engagement_event(
    db: AsyncSession,
    user_id: str,
    event_type: EngagementEvent | str,
    event_value: int = 1,
    occurred_at: Optional[datetime] = None,
) -> dict[str, Any]:
    try:
        event = EngagementEvent(event_type)
    except ValueError:
        raise DomainValidationError(f"unknown_engagement_event: {event_type}") from None
    if event_value < 1:
        raise DomainValidationError("event_value_must_be_positive")
    occurred_at = occurred_at or datetime.now(timezone.utc)

    member = await points_ledger.get_or_create_member(db, user_id)
    bonus = 0
    reason = event.value

    if event is EngagementEvent.review_posted:
        member.review_count += event_value
        bonus = settings.LOYALTY_REVIEW_BONUS_POINTS * event_value
    elif event is EngagementEvent.referral_confirmed:
        member.referral_count += event_value
        bonus = settings.LOYALTY_REFERRAL_BONUS_POINTS * event_value
    else:
        streak, advanced = _next_streak(member.login_streak, member.last_login_on, occurred_at.date())
        member.login_streak = streak
        member.last_login_on = occurred_at.date()
        if advanced and streak >= settings.LOYALTY_LOGIN_STREAK_BONUS_DAYS:
            bonus = settings.LOYALTY_LOGIN_STREAK_BONUS_POINTS
            reason = "login_streak"
    db.add(member)
    await flush_async(db, member)

    points_added = 0
    tokens_awarded = 0
    if bonus:
        earned = await points_ledger.earn(
            db, member, bonus, reason, multiplier=1, entry_type=PointsEntryType.bonus
        )
        points_added = earned.points_added
        tokens_awarded = earned.tokens_awarded

    awarded = await badge_service.evaluate_and_award(db, member)
    summary = {
        "user_id": member.user_id,
        "event_type": event.value,
        "points_added": points_added,
        "tokens_awarded": tokens_awarded,
        "tier": member.tier,
        "badges_awarded": awarded,
    }
    logger.info("engagement event processed", extra=summary)
    return summary


async def request_spin(
    db: AsyncSession,
    user_id: str,
    wheel_id: UUID,
    order_value: Optional[Decimal] = None,
    random_source: Optional[RandomSource] = None,
) -> wheel_service.SpinOutcome:
    wheel = await wheel_service.get_wheel(db, wheel_id)
    member = await points_ledger.get_or_create_member(db, user_id)
    async with db.begin_nested():
        outcome = await wheel_service.spin(
            db, member, wheel, order_value=order_value, random_source=random_source
        )
        outcome.badges_awarded = await badge_service.evaluate_and_award(db, member)
        outcome.spin_tokens_available = member.spin_tokens_available
    return outcome


async def get_eligible_badges(db: AsyncSession, user_id: str) -> set[str]:
    member = await _get_existing_member(db, user_id)
    catalog = await badge_service.list_badges(db)
    held = await badge_service.held_badge_ids(db, user_id)
    return eligible_badges(badge_service.member_stats(member), catalog, held)


async def get_leaderboard(db: AsyncSession, limit: int = 10) -> list[LoyaltyMember]:
    limit = max(1, min(limit, settings.LOYALTY_LEADERBOARD_MAX))
    result = await db.execute(
        select(LoyaltyMember)
        .order_by(LoyaltyMember.points_total.desc(), LoyaltyMember.user_id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_profile(db: AsyncSession, user_id: str) -> dict[str, Any]:
    member = await _get_existing_member(db, user_id)
    catalog = await badge_service.list_badges(db)
    badges = await badge_service.list_member_badges(db, user_id)
    held = {badge.badge_id for badge in badges}
    return {
        "member": member,
        "benefits": tier_ladder.TIER_BENEFITS[member.tier],
        "next_tier": tier_ladder.next_tier_requirements(member.points_total, member.tier),
        "badges": badges,
        "badge_progress": badge_progress(badge_service.member_stats(member), catalog, held),
    }


async def redeem_points(db: AsyncSession, user_id: str, amount: int, reason: str) -> PointsEntry:
    member = await points_ledger.get_member(db, user_id)
    return await points_ledger.redeem(db, member, amount, reason)
