# app/domain/enums.py
import enum


class Tier(str, enum.Enum):
    bronze = "bronze"
    silver = "silver"
    gold = "gold"
    platinum = "platinum"
    diamond = "diamond"


class PointsEntryType(str, enum.Enum):
    earned = "earned"
    bonus = "bonus"
    redeemed = "redeemed"
    expired = "expired"


class TriggerType(str, enum.Enum):
    purchase_count = "purchase_count"
    purchase_value = "purchase_value"
    purchase_streak = "purchase_streak"
    loyalty_points = "loyalty_points"
    tier_upgrade = "tier_upgrade"
    spin_count = "spin_count"
    review_count = "review_count"
    referral_count = "referral_count"
    custom = "custom"


class TriggerTimeframe(str, enum.Enum):
    once = "once"
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"
    lifetime = "lifetime"


class ConditionOperator(str, enum.Enum):
    equals = "equals"
    not_equals = "not_equals"
    greater_than = "greater_than"
    less_than = "less_than"
    contains = "contains"


class BadgeCategory(str, enum.Enum):
    purchase = "purchase"
    loyalty = "loyalty"
    social = "social"
    achievement = "achievement"
    special = "special"
    tier = "tier"
    streak = "streak"


class BadgeRarity(str, enum.Enum):
    common = "common"
    uncommon = "uncommon"
    rare = "rare"
    epic = "epic"
    legendary = "legendary"


class BadgeRewardType(str, enum.Enum):
    points = "points"
    coupon = "coupon"
    free_shipping = "free_shipping"
    spin_token = "spin_token"
    tier_boost = "tier_boost"
    exclusive_access = "exclusive_access"


class SlotRewardType(str, enum.Enum):
    coupon = "coupon"
    free_shipping = "free_shipping"
    bonus_points = "bonus_points"
    try_again = "try_again"


class EngagementEvent(str, enum.Enum):
    review_posted = "review_posted"
    referral_confirmed = "referral_confirmed"
    daily_login = "daily_login"
