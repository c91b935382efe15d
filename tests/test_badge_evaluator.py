# tests/test_badge_evaluator.py
import pytest

from app.models.badge import BadgeDefinition
from app.services.badge_evaluator import (
    Condition,
    badge_progress,
    eligible_badges,
    evaluate_condition,
    validate_trigger,
)
from app.services.exceptions import InvalidTriggerError


def _badge(badge_id, trigger_type, value, *, conditions=None, active=True, hidden=False, timeframe="once"):
    return BadgeDefinition(
        id=badge_id,
        name=badge_id,
        category="achievement",
        rarity="common",
        trigger_type=trigger_type,
        trigger_value=value,
        trigger_timeframe=timeframe,
        trigger_conditions=conditions or [],
        reward_type="points",
        reward_value=0,
        is_active=active,
        is_hidden=hidden,
        priority=0,
    )


STATS = {
    "purchase_count": 5,
    "purchase_value": 12000.0,
    "purchase_streak": 2,
    "loyalty_points": 1500,
    "spin_count": 0,
    "review_count": 1,
    "referral_count": 3,
    "tier": "silver",
    "purchase_time": "08:45",
    "tags": ["vip", "beta"],
}


def test_threshold_triggers_compare_greater_or_equal():
    catalog = [
        _badge("five_purchases", "purchase_count", 5),
        _badge("six_purchases", "purchase_count", 6),
        _badge("big_spender", "purchase_value", 10000),
        _badge("streak", "purchase_streak", 3),
        _badge("referrals", "referral_count", 3),
    ]
    assert eligible_badges(STATS, catalog) == {"five_purchases", "big_spender", "referrals"}


def test_tier_upgrade_uses_one_based_rank():
    catalog = [
        _badge("bronze_member", "tier_upgrade", 1),
        _badge("silver_member", "tier_upgrade", 2),
        _badge("gold_member", "tier_upgrade", 3),
    ]
    assert eligible_badges(STATS, catalog) == {"bronze_member", "silver_member"}


def test_custom_conditions_are_a_conjunction():
    early = _badge(
        "early_bird",
        "custom",
        1,
        conditions=[{"field": "purchase_time", "operator": "less_than", "value": "10:00"}],
    )
    early_vip = _badge(
        "early_vip",
        "custom",
        1,
        conditions=[
            {"field": "purchase_time", "operator": "less_than", "value": "10:00"},
            {"field": "tags", "operator": "contains", "value": "vip"},
        ],
    )
    early_gold = _badge(
        "early_gold",
        "custom",
        1,
        conditions=[
            {"field": "purchase_time", "operator": "less_than", "value": "10:00"},
            {"field": "tier", "operator": "equals", "value": "gold"},
        ],
    )
    assert eligible_badges(STATS, [early, early_vip, early_gold]) == {"early_bird", "early_vip"}


def test_custom_with_empty_conditions_is_vacuously_true():
    assert eligible_badges(STATS, [_badge("anything", "custom", 1)]) == {"anything"}


def test_missing_field_is_false_not_error():
    condition = Condition(field="unknown_field", operator="equals", value=1)
    assert evaluate_condition(condition, STATS) is False


def test_malformed_operator_is_false():
    condition = Condition(field="purchase_count", operator="between", value=1)
    assert evaluate_condition(condition, STATS) is False


def test_incomparable_operands_are_false():
    condition = Condition(field="purchase_time", operator="greater_than", value=5)
    assert evaluate_condition(condition, STATS) is False


@pytest.mark.parametrize(
    ("operator", "value", "expected"),
    [
        ("equals", 5, True),
        ("not_equals", 5, False),
        ("greater_than", 4, True),
        ("less_than", 5, False),
    ],
)
def test_operators(operator, value, expected):
    assert evaluate_condition(Condition("purchase_count", operator, value), STATS) is expected


def test_contains_on_strings_is_substring():
    assert evaluate_condition(Condition("purchase_time", "contains", "08:"), STATS) is True


def test_inactive_and_hidden_badges_are_skipped():
    catalog = [
        _badge("inactive", "purchase_count", 1, active=False),
        _badge("hidden", "purchase_count", 1, hidden=True),
    ]
    assert eligible_badges(STATS, catalog) == set()


def test_evaluation_is_idempotent_and_excludes_held():
    catalog = [_badge("first", "purchase_count", 1), _badge("five", "purchase_count", 5)]
    first = eligible_badges(STATS, catalog)
    assert eligible_badges(STATS, catalog) == first == {"first", "five"}
    assert eligible_badges(STATS, catalog, held={"first"}) == {"five"}


def test_windowed_aggregate_overrides_lifetime_value():
    monthly = _badge("monthly_buyer", "purchase_count", 3, timeframe="monthly")
    stats = {**STATS, "purchase_count:monthly": 1}
    assert eligible_badges(stats, [monthly]) == set()
    assert eligible_badges(STATS, [monthly]) == {"monthly_buyer"}


@pytest.mark.parametrize(
    "raw",
    [
        {"value": 3},
        {"type": "purchase_count"},
        {"type": "purchase_count", "value": ""},
        {"type": "not_a_trigger", "value": 1},
        {"type": "purchase_count", "value": "many"},
        {"type": "tier_upgrade", "value": 9},
        {"type": "custom", "value": 1, "conditions": [{"operator": "equals"}]},
        {"type": "custom", "value": 1, "conditions": "purchase_time < 10"},
    ],
)
def test_validate_trigger_rejects_invalid_definitions(raw):
    with pytest.raises(InvalidTriggerError):
        validate_trigger(raw)


def test_validate_trigger_accepts_zero_value():
    trigger = validate_trigger({"type": "spin_count", "value": 0})
    assert trigger.value == 0


def test_badge_progress_for_threshold_badges():
    catalog = [_badge("ten_reviews", "review_count", 10), _badge("silver_member", "tier_upgrade", 2)]
    progress = badge_progress(STATS, catalog)
    assert progress == [
        {"badge_id": "ten_reviews", "name": "ten_reviews", "current": 1, "target": 10, "percent": 10.0}
    ]
