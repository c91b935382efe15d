from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.operations import commit_async, refresh_async
from app.db.session_async import get_async_db
from app.schemas.badge import BadgeAwardPayload, BadgeCreate, BadgeRead, BadgeUpdate, MemberBadgeRead
from app.services import badge_service, points_ledger
from app.services.exceptions import ConflictError

router = APIRouter(prefix="/badges", tags=["badges"])


@router.post("", response_model=BadgeRead, status_code=status.HTTP_201_CREATED)
async def create_badge(payload: BadgeCreate, db: AsyncSession = Depends(get_async_db)):
    badge = await badge_service.create_badge(db, payload)
    await commit_async(db)
    return BadgeRead.model_validate(badge)


@router.get("", response_model=list[BadgeRead])
async def list_badges(
    category: Optional[str] = Query(default=None),
    include_hidden: bool = Query(default=False),
    include_inactive: bool = Query(default=False),
    db: AsyncSession = Depends(get_async_db),
):
    badges = await badge_service.list_badges(
        db, category=category, include_hidden=include_hidden, include_inactive=include_inactive
    )
    return [BadgeRead.model_validate(badge) for badge in badges]


@router.get("/{badge_id}", response_model=BadgeRead)
async def get_badge(badge_id: str, db: AsyncSession = Depends(get_async_db)):
    badge = await badge_service.get_badge(db, badge_id)
    return BadgeRead.model_validate(badge)


@router.patch("/{badge_id}", response_model=BadgeRead)
async def update_badge(badge_id: str, payload: BadgeUpdate, db: AsyncSession = Depends(get_async_db)):
    badge = await badge_service.update_badge(db, badge_id, payload)
    await commit_async(db)
    return BadgeRead.model_validate(badge)


@router.post("/{badge_id}/award", response_model=MemberBadgeRead, status_code=status.HTTP_201_CREATED)
async def award_badge(badge_id: str, payload: BadgeAwardPayload, db: AsyncSession = Depends(get_async_db)):
    badge = await badge_service.get_badge(db, badge_id)
    member = await points_ledger.get_or_create_member(db, payload.user_id)
    award = await badge_service.award_badge(db, member, badge)
    if award is None:
        raise ConflictError("badge_already_held")
    await commit_async(db)
    await refresh_async(db, award, attribute_names=["badge"])
    return MemberBadgeRead.model_validate(award)


@router.delete("/{badge_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_badge(badge_id: str, user_id: str, db: AsyncSession = Depends(get_async_db)):
    await badge_service.revoke_badge(db, user_id, badge_id)
    await commit_async(db)


@router.get("/members/{user_id}", response_model=list[MemberBadgeRead])
async def list_member_badges(user_id: str, db: AsyncSession = Depends(get_async_db)):
    badges = await badge_service.list_member_badges(db, user_id)
    return [MemberBadgeRead.model_validate(badge) for badge in badges]
