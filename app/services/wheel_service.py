from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import TIER_ORDER
from app.core.logging import get_logger
from app.core.metrics import record_spin_outcome, record_spin_rejection
from app.db.operations import flush_async, refresh_async, rowcount
from app.domain.enums import PointsEntryType, SlotRewardType
from app.models.loyalty import LoyaltyMember
from app.models.reward_wheel import RewardWheel, SpinRecord
from app.schemas.reward_wheel import RewardWheelCreate
from app.services import points_ledger, spin_tokens
from app.services.event_bus import emit_loyalty_event
from app.services.exceptions import ConflictError, DomainValidationError, NotEligibleError, ResourceNotFoundError
from app.services.reward_wheel import (
    RandomSource,
    WheelSlot,
    check_eligibility,
    draw,
    effective_weights,
    resolve_payload,
)

logger = get_logger(__name__)


@dataclass
class SpinOutcome:
    record: SpinRecord
    slot: WheelSlot
    points_added: int = 0
    spin_tokens_available: int = 0
    badges_awarded: list[str] = field(default_factory=list)


def _validate_wheel(payload: RewardWheelCreate) -> None:
    slot_ids = [slot.id for slot in payload.slots]
    if len(slot_ids) != len(set(slot_ids)):
        raise DomainValidationError("duplicate_slot_id")
    if not any(slot.active and slot.base_weight > 0 for slot in payload.slots):
        raise DomainValidationError("wheel_requires_a_weighted_active_slot")
    unknown_tiers = set(payload.tier_modifiers) - set(TIER_ORDER)
    if unknown_tiers:
        raise DomainValidationError(f"unknown_modifier_tiers: {', '.join(sorted(unknown_tiers))}")
    for modifiers in payload.tier_modifiers.values():
        if set(modifiers) - set(slot_ids):
            raise DomainValidationError("modifier_references_unknown_slot")
    if payload.required_tier and payload.required_tier != "none" and payload.required_tier not in TIER_ORDER:
        raise DomainValidationError("unknown_required_tier")
    if payload.end_date and payload.start_date and payload.end_date <= payload.start_date:
        raise DomainValidationError("end_date_must_follow_start_date")


async def create_wheel(db: AsyncSession, payload: RewardWheelCreate) -> RewardWheel:
    _validate_wheel(payload)
    existing = await db.execute(select(RewardWheel.id).where(RewardWheel.name == payload.name))
    if existing.scalar_one_or_none():
        raise ConflictError("wheel_name_already_exists")

    wheel = RewardWheel(
        name=payload.name,
        description=payload.description,
        is_active=payload.is_active,
        start_date=payload.start_date or datetime.now(timezone.utc),
        end_date=payload.end_date,
        slots=[slot.model_dump(mode="json") for slot in payload.slots],
        tier_modifiers=payload.tier_modifiers,
        required_tier=payload.required_tier,
        required_points=payload.required_points,
        min_order_value=payload.min_order_value,
        spins_per_user=payload.spins_per_user,
        spins_per_day=payload.spins_per_day,
        total_spins_allowed=payload.total_spins_allowed,
        token_cost=payload.token_cost,
    )
    db.add(wheel)
    await flush_async(db, wheel)
    await refresh_async(db, wheel)
    return wheel


async def get_wheel(db: AsyncSession, wheel_id: UUID) -> RewardWheel:
    wheel = await db.get(RewardWheel, wheel_id)
    if not wheel:
        raise ResourceNotFoundError("wheel_not_found")
    return wheel


async def list_active_wheels(db: AsyncSession, now: Optional[datetime] = None) -> list[RewardWheel]:
    now = now or datetime.now(timezone.utc)
    stmt = (
        select(RewardWheel)
        .where(RewardWheel.is_active.is_(True))
        .where(RewardWheel.start_date <= now)
        .where(or_(RewardWheel.end_date.is_(None), RewardWheel.end_date >= now))
        .order_by(RewardWheel.name)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _count_member_spins(db: AsyncSession, wheel_id: UUID, user_id: str, since: Optional[datetime] = None) -> int:
    stmt = select(func.count(SpinRecord.id)).where(SpinRecord.wheel_id == wheel_id, SpinRecord.member_id == user_id)
    if since is not None:
        stmt = stmt.where(SpinRecord.created_at >= since)
    return (await db.execute(stmt)).scalar_one()


async def spin(
    db: AsyncSession,
    member: LoyaltyMember,
    wheel: RewardWheel,
    *,
    order_value: Optional[Decimal] = None,
    random_source: Optional[RandomSource] = None,
    now: Optional[datetime] = None,
) -> SpinOutcome:
    """Gate, consume and draw for a member whose row is already locked by the caller."""
    now = now or datetime.now(timezone.utc)
    start_of_day = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
    member_spins = await _count_member_spins(db, wheel.id, member.user_id)
    member_spins_today = await _count_member_spins(db, wheel.id, member.user_id, since=start_of_day)

    rule = check_eligibility(
        wheel,
        member,
        member_spins=member_spins,
        member_spins_today=member_spins_today,
        order_value=order_value,
        now=now,
    )
    if rule:
        _reject(member, wheel, rule)

    slots = [WheelSlot.from_dict(item) for item in wheel.slots]
    weights = effective_weights(slots, wheel.tier_modifiers, member.tier)
    # Drawn before any counter moves so an empty wheel leaves no trace.
    slot = draw(slots, weights, random_source)

    # Global cap re-checked in the same statement that consumes it.
    reserved = await rowcount(
        db,
        update(RewardWheel)
        .where(RewardWheel.id == wheel.id)
        .where(
            or_(
                RewardWheel.total_spins_allowed.is_(None),
                RewardWheel.current_spins_used < RewardWheel.total_spins_allowed,
            )
        )
        .values(current_spins_used=RewardWheel.current_spins_used + 1)
        .execution_options(synchronize_session=False),
    )
    if not reserved:
        _reject(member, wheel, "total_spin_limit")

    try:
        await spin_tokens.use_token(db, member, wheel.token_cost or 0)
    except NotEligibleError as exc:
        record_spin_rejection(exc.rule)
        raise

    payload = resolve_payload(slot, now)
    record = SpinRecord(
        wheel_id=wheel.id,
        member_id=member.user_id,
        slot_id=slot.id,
        reward_type=slot.reward_type.value,
        reward_payload=payload,
        created_at=now,
    )
    db.add(record)
    await flush_async(db, record)

    points_added = 0
    if slot.reward_type is SlotRewardType.bonus_points and payload.get("points"):
        result = await points_ledger.earn(
            db,
            member,
            payload["points"],
            f"spin:{wheel.name}",
            multiplier=1,
            entry_type=PointsEntryType.bonus,
        )
        points_added = result.points_added

    await refresh_async(db, wheel)
    record_spin_outcome(slot.reward_type.value)
    logger.info(
        "wheel spun",
        extra={
            "user_id": member.user_id,
            "wheel_id": str(wheel.id),
            "slot_id": slot.id,
            "reward_type": slot.reward_type.value,
        },
    )
    emit_loyalty_event(
        "wheel_spun",
        {"user_id": member.user_id, "wheel_id": str(wheel.id), "slot_id": slot.id, "reward": payload},
    )
    return SpinOutcome(
        record=record,
        slot=slot,
        points_added=points_added,
        spin_tokens_available=member.spin_tokens_available,
    )


def _reject(member: LoyaltyMember, wheel: RewardWheel, rule: str) -> None:
    record_spin_rejection(rule)
    logger.info(
        "spin rejected",
        extra={"user_id": member.user_id, "wheel_id": str(wheel.id), "rule": rule},
    )
    raise NotEligibleError(rule)


async def spin_history(
    db: AsyncSession,
    user_id: str,
    wheel_id: Optional[UUID] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[SpinRecord]:
    stmt = select(SpinRecord).where(SpinRecord.member_id == user_id)
    if wheel_id is not None:
        stmt = stmt.where(SpinRecord.wheel_id == wheel_id)
    stmt = stmt.order_by(SpinRecord.created_at.desc()).limit(limit).offset(offset)
    result = await db.execute(stmt)
    return list(result.scalars().all())
