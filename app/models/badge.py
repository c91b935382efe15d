from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base
from app.domain.enums import BadgeRarity, BadgeRewardType, TriggerTimeframe


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BadgeDefinition(Base):
    """Admin managed badge catalog entry shared by every member."""

    __tablename__ = "loyalty_badges"
    __table_args__ = (
        Index("ix_loyalty_badges_category", "category"),
        Index("ix_loyalty_badges_trigger_type", "trigger_type"),
        Index("ix_loyalty_badges_active", "is_active"),
    )

    id: Mapped[str] = mapped_column(String(80), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(40), nullable=True)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    rarity: Mapped[str] = mapped_column(String(20), nullable=False, default=BadgeRarity.common.value)

    trigger_type: Mapped[str] = mapped_column(String(30), nullable=False)
    trigger_value: Mapped[Any] = mapped_column(JSON, nullable=False)
    trigger_timeframe: Mapped[str] = mapped_column(String(20), nullable=False, default=TriggerTimeframe.once.value)
    trigger_conditions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    reward_type: Mapped[str] = mapped_column(String(30), nullable=False, default=BadgeRewardType.points.value)
    reward_value: Mapped[Any] = mapped_column(JSON, nullable=True)
    reward_description: Mapped[str | None] = mapped_column(String(200), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Aggregates; only ever changed with SQL-side increments.
    total_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_holders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_awarded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
