"""referral_ledger_core

Revision ID: 5d2e8f1a7c34
Revises:
Create Date: 2026-10-16 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "5d2e8f1a7c34"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("username", sa.Text(), nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("referral_code", sa.String(64), nullable=True),
        sa.Column("referred_by_user_id", sa.BigInteger(), nullable=True),
        sa.Column("referral_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("active_days_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "referred_by_user_id IS NULL OR referred_by_user_id <> id",
            name="ck_users_no_self_referral",
        ),
        sa.CheckConstraint("active_days_count >= 0", name="ck_users_active_days_non_negative"),
        sa.ForeignKeyConstraint(["referred_by_user_id"], ["users.id"]),
        sa.UniqueConstraint("referral_code", name="uq_users_referral_code"),
    )
    op.create_index("idx_users_email", "users", ["email"])
    op.create_index(
        "idx_users_referred_by_completed",
        "users",
        ["referred_by_user_id", "referral_completed_at"],
    )
    op.create_index("idx_users_created_at", "users", ["created_at"])
    op.create_index("idx_users_last_active", "users", ["last_active_at"])

    op.create_table(
        "referral_activity_days",
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("activity_date", sa.Date(), nullable=False),
        sa.Column("first_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("user_id", "activity_date"),
    )
    op.create_index(
        "idx_referral_activity_days_activity_date",
        "referral_activity_days",
        ["activity_date"],
    )

    op.create_table(
        "referral_rewards",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("beneficiary_user_id", sa.BigInteger(), nullable=False),
        sa.Column("referred_user_id", sa.BigInteger(), nullable=False),
        sa.Column("reward_type", sa.String(16), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("redemption_method", sa.String(32), nullable=True),
        sa.Column("redemption_details", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("settlement_ref", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("available_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('PENDING','AVAILABLE','REDEEMED','EXPIRED')",
            name="ck_referral_rewards_status",
        ),
        sa.CheckConstraint(
            "reward_type IN ('CASH','CREDIT','DISCOUNT','BONUS')",
            name="ck_referral_rewards_reward_type",
        ),
        sa.CheckConstraint("amount >= 0", name="ck_referral_rewards_amount_non_negative"),
        sa.CheckConstraint(
            "beneficiary_user_id <> referred_user_id",
            name="ck_referral_rewards_no_self_referral",
        ),
        sa.ForeignKeyConstraint(["beneficiary_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["referred_user_id"], ["users.id"]),
        sa.UniqueConstraint(
            "beneficiary_user_id",
            "referred_user_id",
            name="uq_referral_rewards_beneficiary_referred",
        ),
    )
    op.create_index(
        "idx_referral_rewards_beneficiary_status",
        "referral_rewards",
        ["beneficiary_user_id", "status"],
    )
    op.create_index("idx_referral_rewards_referred", "referral_rewards", ["referred_user_id"])
    op.create_index(
        "idx_referral_rewards_status_created",
        "referral_rewards",
        ["status", "created_at"],
    )

    op.create_table(
        "referral_settings",
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("email_notifications", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("push_notifications", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("privacy_mode", sa.String(16), nullable=False, server_default=sa.text("'public'")),
        sa.Column("custom_referral_code", sa.String(64), nullable=True),
        sa.Column("use_custom_code", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "preferred_redemption_method",
            sa.String(32),
            nullable=False,
            server_default=sa.text("'account_credit'"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "privacy_mode IN ('public','friends_only','private')",
            name="ck_referral_settings_privacy_mode",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("user_id"),
        sa.UniqueConstraint("custom_referral_code", name="uq_referral_settings_custom_referral_code"),
    )


def downgrade() -> None:
    op.drop_table("referral_settings")
    op.drop_index("idx_referral_rewards_status_created", table_name="referral_rewards")
    op.drop_index("idx_referral_rewards_referred", table_name="referral_rewards")
    op.drop_index("idx_referral_rewards_beneficiary_status", table_name="referral_rewards")
    op.drop_table("referral_rewards")
    op.drop_index("idx_referral_activity_days_activity_date", table_name="referral_activity_days")
    op.drop_table("referral_activity_days")
    op.drop_index("idx_users_last_active", table_name="users")
    op.drop_index("idx_users_created_at", table_name="users")
    op.drop_index("idx_users_referred_by_completed", table_name="users")
    op.drop_index("idx_users_email", table_name="users")
    op.drop_table("users")
