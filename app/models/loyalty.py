import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.session import Base
from app.domain.enums import Tier
from app.models.badge import BadgeDefinition


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoyaltyMember(Base):
    """Loyalty account of a shop user, created lazily on the first loyalty event."""

    __tablename__ = "loyalty_members"
    __table_args__ = (
        Index("ix_loyalty_members_points_total", "points_total"),
        Index("ix_loyalty_members_tier", "tier"),
    )

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Points
    points_current: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    multiplier: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("1"))

    # Tier
    tier: Mapped[str] = mapped_column(String(20), nullable=False, default=Tier.bronze.value)
    tier_progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tier_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Spin tokens; token_points accumulates earned points until the next token threshold.
    token_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    spin_tokens_available: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    spin_tokens_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    spin_tokens_last_earned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    spins_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Aggregates for badge triggers
    purchase_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_spent: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    purchase_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_purchase_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_purchase_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    referral_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    login_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_login_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class PointsEntry(Base):
    """Append-only ledger line. Rows are never updated after insert."""

    __tablename__ = "loyalty_points_entries"
    __table_args__ = (
        Index("ix_loyalty_points_entries_member_created", "member_id", "created_at"),
        Index("ix_loyalty_points_entries_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id: Mapped[str] = mapped_column(String(64), ForeignKey("loyalty_members.user_id", ondelete="CASCADE"), nullable=False)
    entry_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Set on 'expired' entries: the earned entry whose points lapsed.
    source_entry_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("loyalty_points_entries.id", ondelete="SET NULL"), nullable=True, unique=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class MemberBadge(Base):
    __tablename__ = "loyalty_member_badges"
    __table_args__ = (UniqueConstraint("member_id", "badge_id", name="uq_loyalty_member_badge"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id: Mapped[str] = mapped_column(String(64), ForeignKey("loyalty_members.user_id", ondelete="CASCADE"), nullable=False)
    badge_id: Mapped[str] = mapped_column(String(80), ForeignKey("loyalty_badges.id", ondelete="CASCADE"), nullable=False)
    reward_payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    badge: Mapped[BadgeDefinition] = relationship(BadgeDefinition, lazy="selectin")
