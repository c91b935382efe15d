from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.operations import commit_async
from app.db.session_async import get_async_db
from app.domain.enums import PointsEntryType
from app.schemas.loyalty import (
    EligibleBadgesRead,
    EngagementEventPayload,
    EngagementSummary,
    LeaderboardEntry,
    LoyaltyProfileRead,
    PointsEntryRead,
    PurchaseCompletedPayload,
    PurchaseSummary,
    RedeemPayload,
)
from app.services import loyalty_service, points_ledger

router = APIRouter(prefix="/loyalty", tags=["loyalty"])


@router.post("/events/purchase", response_model=PurchaseSummary, status_code=status.HTTP_200_OK)
async def purchase_completed(payload: PurchaseCompletedPayload, db: AsyncSession = Depends(get_async_db)):
    summary = await loyalty_service.on_purchase_completed(
        db,
        payload.user_id,
        payload.order_amount,
        occurred_at=payload.occurred_at,
        order_id=payload.order_id,
    )
    await commit_async(db)
    return PurchaseSummary(**summary)


@router.post("/events/engagement", response_model=EngagementSummary)
async def engagement_event(payload: EngagementEventPayload, db: AsyncSession = Depends(get_async_db)):
    summary = await loyalty_service.on_engagement_event(
        db,
        payload.user_id,
        payload.event_type,
        payload.event_value,
        occurred_at=payload.occurred_at,
    )
    await commit_async(db)
    return EngagementSummary(**summary)


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def leaderboard(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_async_db),
):
    members = await loyalty_service.get_leaderboard(db, limit)
    return [
        LeaderboardEntry(rank=index, user_id=member.user_id, points_total=member.points_total, tier=member.tier)
        for index, member in enumerate(members, start=1)
    ]


@router.get("/members/{user_id}", response_model=LoyaltyProfileRead)
async def get_profile(user_id: str, db: AsyncSession = Depends(get_async_db)):
    profile = await loyalty_service.get_profile(db, user_id)
    return LoyaltyProfileRead.model_validate(profile, from_attributes=True)


@router.get("/members/{user_id}/history", response_model=list[PointsEntryRead])
async def points_history(
    user_id: str,
    entry_type: Optional[PointsEntryType] = Query(default=None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
):
    entries = await points_ledger.list_history(db, user_id, entry_type=entry_type, limit=limit, offset=offset)
    return [PointsEntryRead.model_validate(entry) for entry in entries]


@router.post("/members/{user_id}/redeem", response_model=PointsEntryRead)
async def redeem_points(user_id: str, payload: RedeemPayload, db: AsyncSession = Depends(get_async_db)):
    entry = await loyalty_service.redeem_points(db, user_id, payload.points, payload.reason)
    await commit_async(db)
    return PointsEntryRead.model_validate(entry)


@router.get("/members/{user_id}/eligible-badges", response_model=EligibleBadgesRead)
async def eligible_badges(user_id: str, db: AsyncSession = Depends(get_async_db)):
    badge_ids = await loyalty_service.get_eligible_badges(db, user_id)
    return EligibleBadgesRead(user_id=user_id, badge_ids=sorted(badge_ids))
