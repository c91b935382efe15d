"""Seed script for the default badge catalog and reward wheels."""

from __future__ import annotations

import asyncio
import logging

import sys
from pathlib import Path

# Ensure project root is on PYTHONPATH when running as a script.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import select

from app.core.config import settings
from app.db.session_async import AsyncSessionLocal
from app.models.badge import BadgeDefinition
from app.models.reward_wheel import RewardWheel
from app.schemas.badge import BadgeCreate
from app.schemas.reward_wheel import RewardWheelCreate
from app.services import badge_service, wheel_service


def _badge(
    badge_id: str,
    name: str,
    description: str,
    icon: str,
    category: str,
    rarity: str,
    trigger: dict,
    points: int,
    priority: int,
) -> BadgeCreate:
    return BadgeCreate(
        id=badge_id,
        name=name,
        description=description,
        icon=icon,
        category=category,
        rarity=rarity,
        trigger=trigger,
        reward={"type": "points", "value": points, "description": f"{points} bonus points"},
        priority=priority,
    )


DEFAULT_BADGES: tuple[BadgeCreate, ...] = (
    _badge("first_purchase", "First Purchase", "Made your first purchase", "🛍️", "purchase", "common",
           {"type": "purchase_count", "value": 1, "timeframe": "once"}, 100, 1),
    _badge("frequent_shopper", "Frequent Shopper", "Made 5 purchases", "🛒", "purchase", "uncommon",
           {"type": "purchase_count", "value": 5, "timeframe": "lifetime"}, 250, 2),
    _badge("big_spender", "Big Spender", "Spent over 10,000", "💰", "purchase", "rare",
           {"type": "purchase_value", "value": 10000, "timeframe": "lifetime"}, 500, 3),
    _badge("streak_master", "Streak Master", "Made purchases for 3 consecutive days", "🔥", "streak", "epic",
           {"type": "purchase_streak", "value": 3, "timeframe": "once"}, 1000, 4),
    _badge("bronze_member", "Bronze Member", "Reached Bronze tier", "🥉", "tier", "common",
           {"type": "tier_upgrade", "value": 1, "timeframe": "once"}, 200, 5),
    _badge("silver_member", "Silver Member", "Reached Silver tier", "🥈", "tier", "uncommon",
           {"type": "tier_upgrade", "value": 2, "timeframe": "once"}, 500, 6),
    _badge("gold_member", "Gold Member", "Reached Gold tier", "🥇", "tier", "rare",
           {"type": "tier_upgrade", "value": 3, "timeframe": "once"}, 1000, 7),
    _badge("platinum_member", "Platinum Member", "Reached Platinum tier", "💎", "tier", "epic",
           {"type": "tier_upgrade", "value": 4, "timeframe": "once"}, 2500, 8),
    _badge("diamond_member", "Diamond Member", "Reached Diamond tier", "👑", "tier", "legendary",
           {"type": "tier_upgrade", "value": 5, "timeframe": "once"}, 5000, 9),
    _badge("reviewer", "Reviewer", "Left 5 product reviews", "✍️", "social", "uncommon",
           {"type": "review_count", "value": 5, "timeframe": "lifetime"}, 300, 10),
    _badge("referral_master", "Referral Master", "Referred 3 friends", "👥", "social", "rare",
           {"type": "referral_count", "value": 3, "timeframe": "lifetime"}, 750, 11),
    _badge("early_bird", "Early Bird", "Made a purchase before 10 AM", "🌅", "achievement", "common",
           {"type": "custom", "value": 1, "timeframe": "once",
            "conditions": [{"field": "purchase_time", "operator": "less_than", "value": "10:00"}]}, 150, 12),
    _badge("night_owl", "Night Owl", "Made a purchase after 10 PM", "🦉", "achievement", "uncommon",
           {"type": "custom", "value": 1, "timeframe": "once",
            "conditions": [{"field": "purchase_time", "operator": "greater_than", "value": "22:00"}]}, 200, 13),
)


DEFAULT_WHEELS: tuple[RewardWheelCreate, ...] = (
    RewardWheelCreate(
        name="Daily Rewards Wheel",
        description="Spin daily to win amazing rewards!",
        slots=[
            {"id": "try_again", "name": "Try Again", "reward_type": "try_again", "base_weight": 40},
            {"id": "small_coupon", "name": "5% Off Coupon", "reward_type": "coupon", "reward_value": 5, "base_weight": 25},
            {"id": "medium_coupon", "name": "10% Off Coupon", "reward_type": "coupon", "reward_value": 10, "base_weight": 20},
            {"id": "free_shipping", "name": "Free Shipping", "reward_type": "free_shipping", "base_weight": 10},
            {"id": "bonus_points", "name": "Bonus Points", "reward_type": "bonus_points", "reward_value": 100, "base_weight": 5},
        ],
        tier_modifiers={
            "bronze": {},
            "silver": {"small_coupon": 2, "medium_coupon": 3, "free_shipping": 2, "bonus_points": 1},
            "gold": {"small_coupon": 3, "medium_coupon": 4, "free_shipping": 3, "bonus_points": 2},
            "platinum": {"small_coupon": 4, "medium_coupon": 5, "free_shipping": 4, "bonus_points": 3},
            "diamond": {"small_coupon": 5, "medium_coupon": 6, "free_shipping": 5, "bonus_points": 4},
        },
        spins_per_user=None,
        spins_per_day=1,
    ),
    RewardWheelCreate(
        name="VIP Rewards Wheel",
        description="Exclusive wheel for VIP members with better odds!",
        slots=[
            {"id": "try_again", "name": "Try Again", "reward_type": "try_again", "base_weight": 25},
            {"id": "medium_coupon", "name": "15% Off Coupon", "reward_type": "coupon", "reward_value": 15, "base_weight": 30},
            {"id": "large_coupon", "name": "25% Off Coupon", "reward_type": "coupon", "reward_value": 25, "base_weight": 20},
            {"id": "free_shipping", "name": "Free Shipping", "reward_type": "free_shipping", "base_weight": 15},
            {"id": "bonus_points", "name": "Bonus Points", "reward_type": "bonus_points", "reward_value": 250, "base_weight": 10},
        ],
        tier_modifiers={
            "bronze": {},
            "silver": {},
            "gold": {"medium_coupon": 2, "large_coupon": 2, "free_shipping": 2, "bonus_points": 2},
            "platinum": {"medium_coupon": 3, "large_coupon": 3, "free_shipping": 3, "bonus_points": 3},
            "diamond": {"medium_coupon": 4, "large_coupon": 4, "free_shipping": 4, "bonus_points": 4},
        },
        min_order_value=5000,
        spins_per_user=None,
        spins_per_day=2,
    ),
)


async def seed_loyalty_catalog() -> None:
    """Insert the default badges and wheels that are not present yet."""
    logger = logging.getLogger("seed_loyalty_catalog")
    logger.info("Seeding loyalty catalog into %s", settings.ASYNC_DATABASE_URL)

    badges_created = 0
    wheels_created = 0

    async with AsyncSessionLocal() as session:
        for badge in DEFAULT_BADGES:
            if await session.get(BadgeDefinition, badge.id):
                logger.debug("Skipped badge %s (already exists)", badge.id)
                continue
            await badge_service.create_badge(session, badge)
            badges_created += 1
            logger.debug("Created badge %s", badge.id)

        for wheel in DEFAULT_WHEELS:
            existing = await session.execute(select(RewardWheel.id).where(RewardWheel.name == wheel.name))
            if existing.scalar_one_or_none():
                logger.debug("Skipped wheel %s (already exists)", wheel.name)
                continue
            await wheel_service.create_wheel(session, wheel)
            wheels_created += 1
            logger.debug("Created wheel %s", wheel.name)

        await session.commit()

    logger.info("Seed completed: %s badges, %s wheels created", badges_created, wheels_created)


async def main() -> None:
    await seed_loyalty_catalog()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
