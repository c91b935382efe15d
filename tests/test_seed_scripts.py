import pytest
from sqlalchemy import func, select

from app.models.badge import BadgeDefinition
from app.models.reward_wheel import RewardWheel
from scripts import seed_loyalty_catalog


@pytest.mark.asyncio
async def test_seed_loyalty_catalog_populates_badges_and_wheels(async_db_session):
    await seed_loyalty_catalog.seed_loyalty_catalog()

    total_badges = (
        await async_db_session.execute(select(func.count(BadgeDefinition.id)))
    ).scalar_one()
    assert total_badges == len(seed_loyalty_catalog.DEFAULT_BADGES)

    total_wheels = (
        await async_db_session.execute(select(func.count(RewardWheel.id)))
    ).scalar_one()
    assert total_wheels == len(seed_loyalty_catalog.DEFAULT_WHEELS)

    early_bird = (
        await async_db_session.execute(select(BadgeDefinition).where(BadgeDefinition.id == "early_bird"))
    ).scalar_one()
    assert early_bird.trigger_type == "custom"
    assert early_bird.trigger_conditions[0]["field"] == "purchase_time"

    gold_member = (
        await async_db_session.execute(select(BadgeDefinition).where(BadgeDefinition.id == "gold_member"))
    ).scalar_one()
    assert gold_member.trigger_type == "tier_upgrade"
    assert gold_member.trigger_value == 3

    wheels = (await async_db_session.execute(select(RewardWheel))).scalars().all()
    for wheel in wheels:
        assert sum(slot["base_weight"] for slot in wheel.slots if slot["active"]) > 0


@pytest.mark.asyncio
async def test_seed_loyalty_catalog_is_idempotent(async_db_session):
    await seed_loyalty_catalog.seed_loyalty_catalog()
    await seed_loyalty_catalog.seed_loyalty_catalog()

    total_badges = (
        await async_db_session.execute(select(func.count(BadgeDefinition.id)))
    ).scalar_one()
    total_wheels = (
        await async_db_session.execute(select(func.count(RewardWheel.id)))
    ).scalar_one()

    assert total_badges == len(seed_loyalty_catalog.DEFAULT_BADGES)
    assert total_wheels == len(seed_loyalty_catalog.DEFAULT_WHEELS)
