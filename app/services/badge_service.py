from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.logging import get_logger
from app.core.metrics import record_badge_awarded
from app.db.operations import flush_async, refresh_async, rowcount
from app.domain.enums import BadgeRewardType, PointsEntryType
from app.models.badge import BadgeDefinition
from app.models.loyalty import LoyaltyMember, MemberBadge
from app.schemas.badge import BadgeCreate, BadgeUpdate
from app.services import points_ledger, spin_tokens
from app.services.badge_evaluator import eligible_badges, validate_trigger
from app.services.event_bus import emit_loyalty_event
from app.services.exceptions import ConflictError, ResourceNotFoundError

logger = get_logger(__name__)


def member_stats(member: LoyaltyMember, **context: Any) -> dict[str, Any]:
    """Aggregate snapshot fed to the badge evaluator; `context` adds event fields."""
    stats: dict[str, Any] = {
        "purchase_count": member.purchase_count,
        "purchase_value": float(member.total_spent or 0),
        "purchase_streak": member.purchase_streak,
        "loyalty_points": member.points_total,
        "spin_count": member.spins_total,
        "review_count": member.review_count,
        "referral_count": member.referral_count,
        "login_streak": member.login_streak,
        "tier": member.tier,
    }
    stats.update({key: value for key, value in context.items() if value is not None})
    return stats


async def create_badge(db: AsyncSession, payload: BadgeCreate) -> BadgeDefinition:
    trigger = validate_trigger(payload.trigger.model_dump(mode="json"))
    if await db.get(BadgeDefinition, payload.id):
        raise ConflictError("badge_id_already_exists")

    badge = BadgeDefinition(
        id=payload.id,
        name=payload.name,
        description=payload.description,
        icon=payload.icon,
        category=payload.category.value,
        rarity=payload.rarity.value,
        trigger_type=trigger.type.value,
        trigger_value=trigger.value,
        trigger_timeframe=trigger.timeframe.value,
        trigger_conditions=[
            {"field": c.field, "operator": c.operator, "value": c.value} for c in trigger.conditions
        ],
        reward_type=payload.reward.type.value,
        reward_value=payload.reward.value,
        reward_description=payload.reward.description,
        is_active=payload.is_active,
        is_hidden=payload.is_hidden,
        priority=payload.priority,
    )
    db.add(badge)
    await flush_async(db, badge)
    await refresh_async(db, badge)
    return badge


async def update_badge(db: AsyncSession, badge_id: str, payload: BadgeUpdate) -> BadgeDefinition:
    badge = await get_badge(db, badge_id)
    data = payload.model_dump(exclude_unset=True, mode="json")
    reward = data.pop("reward", None)
    if reward:
        badge.reward_type = reward["type"]
        badge.reward_value = reward.get("value")
        badge.reward_description = reward.get("description")
    if "trigger" in data and data["trigger"] is not None:
        trigger = validate_trigger(data.pop("trigger"))
        badge.trigger_type = trigger.type.value
        badge.trigger_value = trigger.value
        badge.trigger_timeframe = trigger.timeframe.value
        badge.trigger_conditions = [
            {"field": c.field, "operator": c.operator, "value": c.value} for c in trigger.conditions
        ]
    for field, value in data.items():
        if value is not None:
            setattr(badge, field, value)
    db.add(badge)
    await flush_async(db, badge)
    await refresh_async(db, badge)
    return badge


async def get_badge(db: AsyncSession, badge_id: str) -> BadgeDefinition:
    badge = await db.get(BadgeDefinition, badge_id)
    if not badge:
        raise ResourceNotFoundError("badge_not_found")
    return badge


async def list_badges(
    db: AsyncSession,
    *,
    category: Optional[str] = None,
    include_hidden: bool = False,
    include_inactive: bool = False,
) -> list[BadgeDefinition]:
    stmt = select(BadgeDefinition)
    if category:
        stmt = stmt.where(BadgeDefinition.category == category)
    if not include_hidden:
        stmt = stmt.where(BadgeDefinition.is_hidden.is_(False))
    if not include_inactive:
        stmt = stmt.where(BadgeDefinition.is_active.is_(True))
    stmt = stmt.order_by(BadgeDefinition.priority, BadgeDefinition.id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_member_badges(db: AsyncSession, user_id: str) -> list[MemberBadge]:
    result = await db.execute(
        select(MemberBadge)
        .where(MemberBadge.member_id == user_id)
        .options(selectinload(MemberBadge.badge))
        .order_by(MemberBadge.earned_at)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def held_badge_ids(db: AsyncSession, user_id: str) -> set[str]:
    result = await db.execute(select(MemberBadge.badge_id).where(MemberBadge.member_id == user_id))
    return set(result.scalars().all())


async def _apply_reward(db: AsyncSession, member: LoyaltyMember, badge: BadgeDefinition) -> dict[str, Any]:
    reward_type = BadgeRewardType(badge.reward_type)
    payload: dict[str, Any] = {"type": reward_type.value, "value": badge.reward_value}
    if reward_type is BadgeRewardType.points and badge.reward_value:
        result = await points_ledger.earn(
            db,
            member,
            int(badge.reward_value),
            f"badge:{badge.id}",
            multiplier=1,
            entry_type=PointsEntryType.bonus,
        )
        payload["points_added"] = result.points_added
    elif reward_type is BadgeRewardType.spin_token and badge.reward_value:
        await spin_tokens.grant_tokens(db, member, int(badge.reward_value))
        payload["tokens_granted"] = int(badge.reward_value)
    return payload


async def award_badge(db: AsyncSession, member: LoyaltyMember, badge: BadgeDefinition) -> Optional[MemberBadge]:
    """Give `badge` to `member` once. Returns None when the member already holds it."""
    now = datetime.now(timezone.utc)
    award = MemberBadge(member_id=member.user_id, badge_id=badge.id, earned_at=now)
    try:
        async with db.begin_nested():
            db.add(award)
            await flush_async(db, award)
    except IntegrityError:
        return None

    await rowcount(
        db,
        update(BadgeDefinition)
        .where(BadgeDefinition.id == badge.id)
        .values(
            total_awarded=BadgeDefinition.total_awarded + 1,
            current_holders=BadgeDefinition.current_holders + 1,
            last_awarded_at=now,
        )
        .execution_options(synchronize_session=False),
    )
    await refresh_async(db, badge)

    award.reward_payload = await _apply_reward(db, member, badge)
    db.add(award)
    await flush_async(db, award)

    record_badge_awarded(badge.id)
    logger.info("badge awarded", extra={"user_id": member.user_id, "badge_id": badge.id})
    emit_loyalty_event("badge_awarded", {"user_id": member.user_id, "badge_id": badge.id})
    return award


async def revoke_badge(db: AsyncSession, user_id: str, badge_id: str) -> None:
    removed = await rowcount(
        db,
        delete(MemberBadge)
        .where(MemberBadge.member_id == user_id, MemberBadge.badge_id == badge_id)
        .execution_options(synchronize_session=False),
    )
    if not removed:
        raise ResourceNotFoundError("member_badge_not_found")
    await rowcount(
        db,
        update(BadgeDefinition)
        .where(BadgeDefinition.id == badge_id, BadgeDefinition.current_holders > 0)
        .values(current_holders=BadgeDefinition.current_holders - 1)
        .execution_options(synchronize_session=False),
    )
    logger.info("badge revoked", extra={"user_id": user_id, "badge_id": badge_id})


async def evaluate_and_award(db: AsyncSession, member: LoyaltyMember, **context: Any) -> list[str]:
    """Award every badge the member newly qualifies for, in catalog priority order.

    Badge rewards can credit points and promote the member, so the catalog is
    re-checked until a pass awards nothing new.
    """
    catalog = await list_badges(db)
    held = await held_badge_ids(db, member.user_id)

    awarded: list[str] = []
    while True:
        eligible = eligible_badges(member_stats(member, **context), catalog, held)
        if not eligible:
            return awarded
        for badge in catalog:
            if badge.id not in eligible:
                continue
            held.add(badge.id)
            if await award_badge(db, member, badge):
                awarded.append(badge.id)
