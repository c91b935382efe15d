# tests/test_loyalty_service.py
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.services import badge_service, loyalty_service, points_ledger
from app.services.exceptions import DomainValidationError, ResourceNotFoundError
from app.services.loyalty_service import _next_streak

MORNING = datetime(2026, 3, 2, 8, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("current", "last_day", "today", "expected"),
    [
        (0, None, date(2026, 3, 2), (1, True)),
        (3, date(2026, 3, 1), date(2026, 3, 2), (4, True)),
        (3, date(2026, 3, 2), date(2026, 3, 2), (3, False)),
        (6, date(2026, 2, 20), date(2026, 3, 2), (1, True)),
    ],
)
def test_next_streak(current, last_day, today, expected):
    assert _next_streak(current, last_day, today) == expected


@pytest.mark.asyncio
async def test_purchase_summary_for_new_member(async_db_session, make_badge):
    make_badge("first_purchase", trigger_type="purchase_count", trigger_value=1)
    make_badge("silver_member", trigger_type="tier_upgrade", trigger_value=2)
    make_badge("gold_member", trigger_type="tier_upgrade", trigger_value=3)

    summary = await loyalty_service.on_purchase_completed(
        async_db_session, "buyer-1", Decimal("1200"), occurred_at=MORNING, order_id="order-1"
    )

    assert summary["user_id"] == "buyer-1"
    assert summary["points_added"] == 1200
    assert summary["tokens_awarded"] == 2
    assert summary["tier"] == "silver"
    assert summary["tier_progress"] == 5.0
    assert summary["upgraded"] is True
    assert summary["badges_awarded"] == ["first_purchase", "silver_member"]
    assert summary["points_current"] == 1200

    history = await points_ledger.list_history(async_db_session, "buyer-1")
    assert history[0].order_id == "order-1"


@pytest.mark.asyncio
async def test_badge_points_reward_promotion_awards_tier_badge(async_db_session, make_badge):
    make_badge("first_purchase", trigger_type="purchase_count", trigger_value=1, reward_value=100)
    make_badge("silver_member", trigger_type="tier_upgrade", trigger_value=2)

    # 950 de compra + 100 del bono cruzan el umbral de silver.
    summary = await loyalty_service.on_purchase_completed(async_db_session, "buyer-10", 950, occurred_at=MORNING)

    assert summary["tier"] == "silver"
    assert summary["badges_awarded"] == ["first_purchase", "silver_member"]
    assert await badge_service.held_badge_ids(async_db_session, "buyer-10") == {"first_purchase", "silver_member"}


@pytest.mark.asyncio
async def test_badges_are_awarded_once(async_db_session, make_badge):
    make_badge("first_purchase", trigger_type="purchase_count", trigger_value=1)

    first = await loyalty_service.on_purchase_completed(async_db_session, "buyer-2", 10, occurred_at=MORNING)
    second = await loyalty_service.on_purchase_completed(
        async_db_session, "buyer-2", 10, occurred_at=MORNING + timedelta(days=1)
    )

    assert first["badges_awarded"] == ["first_purchase"]
    assert second["badges_awarded"] == []
    badge = await badge_service.get_badge(async_db_session, "first_purchase")
    assert badge.total_awarded == 1
    assert badge.current_holders == 1


@pytest.mark.asyncio
async def test_badge_point_reward_is_credited_without_multiplier(async_db_session, make_badge):
    make_badge("first_purchase", trigger_type="purchase_count", trigger_value=1, reward_type="points", reward_value=100)

    summary = await loyalty_service.on_purchase_completed(async_db_session, "buyer-3", 10, occurred_at=MORNING)

    member = await points_ledger.get_member(async_db_session, "buyer-3")
    assert summary["points_added"] == 10
    assert member.points_total == 110
    awarded = await badge_service.list_member_badges(async_db_session, "buyer-3")
    assert awarded[0].reward_payload["points_added"] == 100


@pytest.mark.asyncio
async def test_early_bird_condition_uses_purchase_time(async_db_session, make_badge):
    make_badge(
        "early_bird",
        trigger_type="custom",
        conditions=[{"field": "purchase_time", "operator": "less_than", "value": "10:00"}],
    )

    evening = await loyalty_service.on_purchase_completed(
        async_db_session, "buyer-4", 10, occurred_at=MORNING.replace(hour=21)
    )
    morning = await loyalty_service.on_purchase_completed(
        async_db_session, "buyer-4", 10, occurred_at=MORNING + timedelta(days=1)
    )

    assert evening["badges_awarded"] == []
    assert morning["badges_awarded"] == ["early_bird"]


@pytest.mark.asyncio
async def test_purchase_streak_tracks_consecutive_days(async_db_session):
    for offset in (0, 1, 2, 5):
        await loyalty_service.on_purchase_completed(
            async_db_session, "buyer-5", 10, occurred_at=MORNING + timedelta(days=offset)
        )

    member = await points_ledger.get_member(async_db_session, "buyer-5")
    assert member.purchase_count == 4
    assert member.purchase_streak == 1
    assert member.longest_purchase_streak == 3
    assert Decimal(member.total_spent) == Decimal("40")


@pytest.mark.asyncio
async def test_negative_order_amount_is_rejected(async_db_session):
    with pytest.raises(DomainValidationError):
        await loyalty_service.on_purchase_completed(async_db_session, "buyer-6", -5)


@pytest.mark.asyncio
async def test_referral_event_awards_bonus_and_badge(async_db_session, make_badge):
    make_badge("referrer", trigger_type="referral_count", trigger_value=1)

    summary = await loyalty_service.on_engagement_event(async_db_session, "fan-1", "referral_confirmed")

    assert summary["points_added"] == 100
    assert summary["badges_awarded"] == ["referrer"]
    member = await points_ledger.get_member(async_db_session, "fan-1")
    assert member.referral_count == 1
    bonus = await points_ledger.list_history(async_db_session, "fan-1")
    assert [(entry.entry_type, entry.amount) for entry in bonus] == [("bonus", 100)]


@pytest.mark.asyncio
async def test_login_streak_bonus_after_seven_days(async_db_session):
    summaries = []
    for offset in range(7):
        summaries.append(
            await loyalty_service.on_engagement_event(
                async_db_session, "fan-2", "daily_login", occurred_at=MORNING + timedelta(days=offset)
            )
        )
    repeat = await loyalty_service.on_engagement_event(
        async_db_session, "fan-2", "daily_login", occurred_at=MORNING + timedelta(days=6, hours=3)
    )

    assert [summary["points_added"] for summary in summaries] == [0, 0, 0, 0, 0, 0, 50]
    assert repeat["points_added"] == 0
    member = await points_ledger.get_member(async_db_session, "fan-2")
    assert member.login_streak == 7


@pytest.mark.asyncio
async def test_review_event_counts_without_bonus(async_db_session, make_badge):
    make_badge("reviewer", trigger_type="review_count", trigger_value=2)

    first = await loyalty_service.on_engagement_event(async_db_session, "fan-3", "review_posted")
    second = await loyalty_service.on_engagement_event(async_db_session, "fan-3", "review_posted")

    assert first["points_added"] == 0
    assert first["badges_awarded"] == []
    assert second["badges_awarded"] == ["reviewer"]


@pytest.mark.asyncio
async def test_unknown_engagement_event(async_db_session):
    with pytest.raises(DomainValidationError):
        await loyalty_service.on_engagement_event(async_db_session, "fan-4", "liked_a_post")


@pytest.mark.asyncio
async def test_leaderboard_orders_by_total_then_user(async_db_session):
    for user_id, amount in (("lb-b", 300), ("lb-a", 300), ("lb-c", 900)):
        member = await points_ledger.get_or_create_member(async_db_session, user_id)
        await points_ledger.earn(async_db_session, member, amount, "purchase")

    board = await loyalty_service.get_leaderboard(async_db_session, limit=10)
    assert [member.user_id for member in board] == ["lb-c", "lb-a", "lb-b"]
    assert len(await loyalty_service.get_leaderboard(async_db_session, limit=2)) == 2


@pytest.mark.asyncio
async def test_eligible_badges_excludes_held_and_does_not_create_members(async_db_session, make_badge):
    make_badge("first_purchase", trigger_type="purchase_count", trigger_value=1)
    make_badge("three_purchases", trigger_type="purchase_count", trigger_value=3)

    with pytest.raises(ResourceNotFoundError):
        await loyalty_service.get_eligible_badges(async_db_session, "ghost")

    await loyalty_service.on_purchase_completed(async_db_session, "buyer-7", 10, occurred_at=MORNING)
    assert await loyalty_service.get_eligible_badges(async_db_session, "buyer-7") == set()


@pytest.mark.asyncio
async def test_profile_includes_benefits_next_tier_and_progress(async_db_session, make_badge):
    make_badge("first_purchase", trigger_type="purchase_count", trigger_value=1)
    make_badge("ten_purchases", trigger_type="purchase_count", trigger_value=10)

    await loyalty_service.on_purchase_completed(async_db_session, "buyer-8", 1200, occurred_at=MORNING)
    profile = await loyalty_service.get_profile(async_db_session, "buyer-8")

    assert profile["member"].tier == "silver"
    assert profile["benefits"]["multiplier"] == Decimal("1.2")
    assert profile["next_tier"]["tier"] == "gold"
    assert profile["next_tier"]["points_needed"] == 3800
    assert [badge.badge_id for badge in profile["badges"]] == ["first_purchase"]
    assert profile["badge_progress"][0]["badge_id"] == "ten_purchases"
    assert profile["badge_progress"][0]["percent"] == 10.0


@pytest.mark.asyncio
async def test_redeem_points_requires_existing_member(async_db_session):
    with pytest.raises(ResourceNotFoundError):
        await loyalty_service.redeem_points(async_db_session, "ghost", 10, "coupon")
