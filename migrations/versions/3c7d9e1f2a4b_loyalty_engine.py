"""loyalty engine: members, ledger, badges, reward wheels

Revision ID: 3c7d9e1f2a4b
Revises:
Create Date: 2026-10-19 10:00:00.000000
"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c7d9e1f2a4b"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "loyalty_members",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("points_current", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("multiplier", sa.Numeric(6, 2), nullable=False, server_default="1"),
        sa.Column("tier", sa.String(length=20), nullable=False, server_default="bronze"),
        sa.Column("tier_progress", sa.Float(), nullable=False, server_default="0"),
        sa.Column("tier_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("token_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("spin_tokens_available", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("spin_tokens_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("spin_tokens_last_earned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("spins_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("purchase_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_spent", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("purchase_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_purchase_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_purchase_on", sa.Date(), nullable=True),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("referral_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("login_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_login_on", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_loyalty_members_points_total", "loyalty_members", ["points_total"])
    op.create_index("ix_loyalty_members_tier", "loyalty_members", ["tier"])

    op.create_table(
        "loyalty_points_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "member_id",
            sa.String(length=64),
            sa.ForeignKey("loyalty_members.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("entry_type", sa.String(length=20), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=200), nullable=True),
        sa.Column("order_id", sa.String(length=64), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "source_entry_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("loyalty_points_entries.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_loyalty_points_entries_member_created", "loyalty_points_entries", ["member_id", "created_at"]
    )
    op.create_index("ix_loyalty_points_entries_expires_at", "loyalty_points_entries", ["expires_at"])

    op.create_table(
        "loyalty_badges",
        sa.Column("id", sa.String(length=80), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(length=40), nullable=True),
        sa.Column("category", sa.String(length=30), nullable=False),
        sa.Column("rarity", sa.String(length=20), nullable=False, server_default="common"),
        sa.Column("trigger_type", sa.String(length=30), nullable=False),
        sa.Column("trigger_value", sa.JSON(), nullable=False),
        sa.Column("trigger_timeframe", sa.String(length=20), nullable=False, server_default="once"),
        sa.Column("trigger_conditions", sa.JSON(), nullable=False),
        sa.Column("reward_type", sa.String(length=30), nullable=False, server_default="points"),
        sa.Column("reward_value", sa.JSON(), nullable=True),
        sa.Column("reward_description", sa.String(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_awarded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_holders", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_awarded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_loyalty_badges_category", "loyalty_badges", ["category"])
    op.create_index("ix_loyalty_badges_trigger_type", "loyalty_badges", ["trigger_type"])
    op.create_index("ix_loyalty_badges_active", "loyalty_badges", ["is_active"])

    op.create_table(
        "loyalty_member_badges",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "member_id",
            sa.String(length=64),
            sa.ForeignKey("loyalty_members.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "badge_id",
            sa.String(length=80),
            sa.ForeignKey("loyalty_badges.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reward_payload", sa.JSON(), nullable=True),
        sa.Column("earned_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("member_id", "badge_id", name="uq_loyalty_member_badge"),
    )

    op.create_table(
        "loyalty_reward_wheels",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("slots", sa.JSON(), nullable=False),
        sa.Column("tier_modifiers", sa.JSON(), nullable=False),
        sa.Column("required_tier", sa.String(length=20), nullable=True),
        sa.Column("required_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_order_value", sa.Numeric(12, 2), nullable=True),
        sa.Column("spins_per_user", sa.Integer(), nullable=True),
        sa.Column("spins_per_day", sa.Integer(), nullable=True),
        sa.Column("total_spins_allowed", sa.Integer(), nullable=True),
        sa.Column("token_cost", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("current_spins_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_loyalty_reward_wheels_window", "loyalty_reward_wheels", ["is_active", "start_date", "end_date"]
    )

    op.create_table(
        "loyalty_spin_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "wheel_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("loyalty_reward_wheels.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "member_id",
            sa.String(length=64),
            sa.ForeignKey("loyalty_members.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("slot_id", sa.String(length=80), nullable=False),
        sa.Column("reward_type", sa.String(length=30), nullable=False),
        sa.Column("reward_payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_loyalty_spin_records_wheel_member", "loyalty_spin_records", ["wheel_id", "member_id"])
    op.create_index(
        "ix_loyalty_spin_records_member_created", "loyalty_spin_records", ["member_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_loyalty_spin_records_member_created", table_name="loyalty_spin_records")
    op.drop_index("ix_loyalty_spin_records_wheel_member", table_name="loyalty_spin_records")
    op.drop_table("loyalty_spin_records")
    op.drop_index("ix_loyalty_reward_wheels_window", table_name="loyalty_reward_wheels")
    op.drop_table("loyalty_reward_wheels")
    op.drop_table("loyalty_member_badges")
    op.drop_index("ix_loyalty_badges_active", table_name="loyalty_badges")
    op.drop_index("ix_loyalty_badges_trigger_type", table_name="loyalty_badges")
    op.drop_index("ix_loyalty_badges_category", table_name="loyalty_badges")
    op.drop_table("loyalty_badges")
    op.drop_index("ix_loyalty_points_entries_expires_at", table_name="loyalty_points_entries")
    op.drop_index("ix_loyalty_points_entries_member_created", table_name="loyalty_points_entries")
    op.drop_table("loyalty_points_entries")
    op.drop_index("ix_loyalty_members_tier", table_name="loyalty_members")
    op.drop_index("ix_loyalty_members_points_total", table_name="loyalty_members")
    op.drop_table("loyalty_members")
