from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.operations import commit_async
from app.db.session_async import get_async_db
from app.schemas.reward_wheel import (
    RewardWheelCreate,
    RewardWheelRead,
    SpinRecordRead,
    SpinRequest,
    SpinResult,
)
from app.services import loyalty_service, wheel_service

router = APIRouter(prefix="/wheels", tags=["wheels"])


@router.post("", response_model=RewardWheelRead, status_code=status.HTTP_201_CREATED)
async def create_wheel(payload: RewardWheelCreate, db: AsyncSession = Depends(get_async_db)):
    wheel = await wheel_service.create_wheel(db, payload)
    await commit_async(db)
    return RewardWheelRead.model_validate(wheel)


@router.get("/active", response_model=list[RewardWheelRead])
async def list_active_wheels(db: AsyncSession = Depends(get_async_db)):
    wheels = await wheel_service.list_active_wheels(db)
    return [RewardWheelRead.model_validate(wheel) for wheel in wheels]


@router.get("/{wheel_id}", response_model=RewardWheelRead)
async def get_wheel(wheel_id: UUID, db: AsyncSession = Depends(get_async_db)):
    wheel = await wheel_service.get_wheel(db, wheel_id)
    return RewardWheelRead.model_validate(wheel)


@router.post("/{wheel_id}/spin", response_model=SpinResult)
async def spin_wheel(wheel_id: UUID, payload: SpinRequest, db: AsyncSession = Depends(get_async_db)):
    outcome = await loyalty_service.request_spin(db, payload.user_id, wheel_id, order_value=payload.order_value)
    await commit_async(db)
    return SpinResult(
        spin=SpinRecordRead.model_validate(outcome.record),
        slot_name=outcome.slot.name,
        spin_tokens_available=outcome.spin_tokens_available,
        badges_awarded=outcome.badges_awarded,
        points_added=outcome.points_added,
    )


@router.get("/history/{user_id}", response_model=list[SpinRecordRead])
async def spin_history(
    user_id: str,
    wheel_id: Optional[UUID] = Query(default=None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
):
    records = await wheel_service.spin_history(db, user_id, wheel_id=wheel_id, limit=limit, offset=offset)
    return [SpinRecordRead.model_validate(record) for record in records]
