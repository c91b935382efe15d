import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RewardWheel(Base):
    __tablename__ = "loyalty_reward_wheels"
    __table_args__ = (Index("ix_loyalty_reward_wheels_window", "is_active", "start_date", "end_date"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # [{id, name, reward_type, reward_value, base_weight, active}, ...] in draw order
    slots: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    # {tier: {slot_id: bonus_weight}}
    tier_modifiers: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # Eligibility
    required_tier: Mapped[str | None] = mapped_column(String(20), nullable=True)
    required_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_order_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    spins_per_user: Mapped[int | None] = mapped_column(Integer, nullable=True, default=1)
    spins_per_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_spins_allowed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    token_cost: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    current_spins_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class SpinRecord(Base):
    """Spin log shared by the wheel (campaign log) and the member (spin history)."""

    __tablename__ = "loyalty_spin_records"
    __table_args__ = (
        Index("ix_loyalty_spin_records_wheel_member", "wheel_id", "member_id"),
        Index("ix_loyalty_spin_records_member_created", "member_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    wheel_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("loyalty_reward_wheels.id", ondelete="CASCADE"), nullable=False)
    member_id: Mapped[str] = mapped_column(String(64), ForeignKey("loyalty_members.user_id", ondelete="CASCADE"), nullable=False)
    slot_id: Mapped[str] = mapped_column(String(80), nullable=False)
    reward_type: Mapped[str] = mapped_column(String(30), nullable=False)
    reward_payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
