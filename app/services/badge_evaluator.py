"""Badge trigger evaluation.

Everything here is pure: the caller passes a snapshot of the member's
aggregate stats and the badge catalog, and gets back the badge ids the
member newly qualifies for. Awarding happens in ``badge_service``.

Stats mapping keys match the trigger types (``purchase_count``,
``purchase_value``, ``purchase_streak``, ``loyalty_points``, ``spin_count``,
``review_count``, ``referral_count``) plus ``tier`` and any event context the
caller adds for custom conditions (``purchase_time``, ``order_amount``...).
A windowed aggregate may be supplied as ``"<stat>:<timeframe>"``; without it
the timeframe falls back to the lifetime value.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from app.core.logging import get_logger
from app.domain.enums import ConditionOperator, TriggerTimeframe, TriggerType
from app.models.badge import BadgeDefinition
from app.services.exceptions import InvalidTriggerError
from app.services.tier_ladder import tier_rank

logger = get_logger(__name__)

THRESHOLD_TRIGGERS = frozenset(
    {
        TriggerType.purchase_count,
        TriggerType.purchase_value,
        TriggerType.purchase_streak,
        TriggerType.loyalty_points,
        TriggerType.spin_count,
        TriggerType.review_count,
        TriggerType.referral_count,
    }
)


@dataclass(frozen=True)
class Condition:
    field: str
    operator: str
    value: Any


@dataclass(frozen=True)
class BadgeTrigger:
    type: TriggerType
    value: Any
    timeframe: TriggerTimeframe = TriggerTimeframe.once
    conditions: tuple[Condition, ...] = field(default_factory=tuple)


def validate_trigger(raw: Mapping[str, Any]) -> BadgeTrigger:
    """Build a trigger from its stored form or raise InvalidTriggerError."""
    if not isinstance(raw, Mapping):
        raise InvalidTriggerError("trigger_required")
    try:
        trigger_type = TriggerType(raw.get("type"))
    except ValueError:
        raise InvalidTriggerError(f"invalid_trigger_type: {raw.get('type')!r}") from None

    value = raw.get("value")
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidTriggerError("trigger_value_required")
    if trigger_type in THRESHOLD_TRIGGERS and (isinstance(value, bool) or not isinstance(value, (int, float))):
        raise InvalidTriggerError(f"trigger_value_must_be_numeric: {trigger_type.value}")
    if trigger_type is TriggerType.tier_upgrade and (
        isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5
    ):
        raise InvalidTriggerError("tier_upgrade_value_must_be_rank_1_to_5")

    try:
        timeframe = TriggerTimeframe(raw.get("timeframe") or TriggerTimeframe.once.value)
    except ValueError:
        raise InvalidTriggerError(f"invalid_trigger_timeframe: {raw.get('timeframe')!r}") from None

    raw_conditions = raw.get("conditions") or []
    if not isinstance(raw_conditions, (list, tuple)):
        raise InvalidTriggerError("trigger_conditions_must_be_list")
    conditions = []
    for item in raw_conditions:
        if not isinstance(item, Mapping) or not item.get("field") or "operator" not in item:
            raise InvalidTriggerError("trigger_condition_requires_field_and_operator")
        conditions.append(Condition(field=str(item["field"]), operator=str(item["operator"]), value=item.get("value")))

    return BadgeTrigger(type=trigger_type, value=value, timeframe=timeframe, conditions=tuple(conditions))


def trigger_from_badge(badge: BadgeDefinition) -> BadgeTrigger:
    return validate_trigger(
        {
            "type": badge.trigger_type,
            "value": badge.trigger_value,
            "timeframe": badge.trigger_timeframe,
            "conditions": badge.trigger_conditions,
        }
    )


def evaluate_condition(condition: Condition, stats: Mapping[str, Any]) -> bool:
    if condition.field not in stats or stats[condition.field] is None:
        return False
    actual = stats[condition.field]
    expected = condition.value
    try:
        operator = ConditionOperator(condition.operator)
    except ValueError:
        logger.debug("unknown condition operator", extra={"operator": condition.operator})
        return False
    try:
        if operator is ConditionOperator.equals:
            return actual == expected
        if operator is ConditionOperator.not_equals:
            return actual != expected
        if operator is ConditionOperator.greater_than:
            return actual > expected
        if operator is ConditionOperator.less_than:
            return actual < expected
        if isinstance(actual, (list, tuple, set, frozenset)):
            return expected in actual
        return str(expected) in str(actual)
    except TypeError:
        logger.debug(
            "incomparable condition operands",
            extra={"field": condition.field, "operator": operator.value},
        )
        return False


def _stat_value(trigger: BadgeTrigger, stats: Mapping[str, Any]) -> Any:
    windowed = f"{trigger.type.value}:{trigger.timeframe.value}"
    if windowed in stats:
        return stats[windowed]
    return stats.get(trigger.type.value)


def evaluate_trigger(trigger: BadgeTrigger, stats: Mapping[str, Any]) -> bool:
    if trigger.type in THRESHOLD_TRIGGERS:
        current = _stat_value(trigger, stats)
        if current is None:
            return False
        return current >= trigger.value

    if trigger.type is TriggerType.tier_upgrade:
        tier = stats.get("tier")
        if tier is None:
            return False
        try:
            return tier_rank(tier) >= trigger.value - 1
        except ValueError:
            return False

    return all(evaluate_condition(condition, stats) for condition in trigger.conditions)


def eligible_badges(
    stats: Mapping[str, Any],
    catalog: Iterable[BadgeDefinition],
    held: Optional[Iterable[str]] = None,
) -> set[str]:
    """Ids of active, visible catalog badges whose trigger passes and that are not held yet."""
    held_ids = set(held or ())
    eligible: set[str] = set()
    for badge in catalog:
        if not badge.is_active or badge.is_hidden or badge.id in held_ids:
            continue
        try:
            trigger = trigger_from_badge(badge)
        except InvalidTriggerError as exc:
            logger.warning("badge with invalid trigger skipped", extra={"badge_id": badge.id, "detail": exc.detail})
            continue
        if evaluate_trigger(trigger, stats):
            eligible.add(badge.id)
    return eligible


def badge_progress(stats: Mapping[str, Any], catalog: Iterable[BadgeDefinition], held: Optional[Iterable[str]] = None) -> list[dict]:
    held_ids = set(held or ())
    progress = []
    for badge in catalog:
        if not badge.is_active or badge.is_hidden or badge.id in held_ids:
            continue
        try:
            trigger = trigger_from_badge(badge)
        except InvalidTriggerError:
            continue
        if trigger.type not in THRESHOLD_TRIGGERS:
            continue
        current = _stat_value(trigger, stats) or 0
        percent = min(100.0, float(current) / float(trigger.value) * 100) if trigger.value else 100.0
        progress.append(
            {
                "badge_id": badge.id,
                "name": badge.name,
                "current": current,
                "target": trigger.value,
                "percent": round(percent, 2),
            }
        )
    return progress
