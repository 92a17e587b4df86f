"""Referral system schema

Revision ID: 001_referral
Revises: None
Create Date: 2026-10-19

Creates:
- user_accounts: local mirror of auth provider users
- user_referral_codes: one active HB-XXXXXXXX code per user
- referrals: one row per referred email, pending/completed/expired
- referral_rewards: completed-referral counter and premium grant per referrer
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_referral"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create referral system tables."""

    # User accounts (mirror)
    op.create_table(
        "user_accounts",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_accounts_email", "user_accounts", ["email"], unique=True)

    # Referral codes
    op.create_table(
        "user_referral_codes",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("code", sa.String(11), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user_accounts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_referral_codes_code", "user_referral_codes", ["code"], unique=True)
    op.create_index("ix_user_referral_codes_user_id", "user_referral_codes", ["user_id"], unique=False)
    op.create_index(
        "uq_referral_codes_active_user",
        "user_referral_codes",
        ["user_id"],
        unique=True,
        sqlite_where=sa.text("is_active = 1"),
        postgresql_where=sa.text("is_active"),
    )

    # Referrals
    op.create_table(
        "referrals",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("referrer_id", sa.String(36), nullable=False),
        sa.Column("referred_email", sa.String(255), nullable=False),
        sa.Column("referral_code_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("expires_at > created_at", name="referral_expires_future"),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'expired')",
            name="referral_status_valid",
        ),
        sa.ForeignKeyConstraint(["referrer_id"], ["user_accounts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["referral_code_id"], ["user_referral_codes.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("referred_email"),
    )
    op.create_index("ix_referrals_referrer_id", "referrals", ["referrer_id"], unique=False)
    op.create_index("ix_referrals_status_created", "referrals", ["status", "created_at"], unique=False)
    op.create_index("ix_referrals_status_expires", "referrals", ["status", "expires_at"], unique=False)

    # Referral rewards
    op.create_table(
        "referral_rewards",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("completed_referrals", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("premium_granted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("premium_granted_at", sa.DateTime(), nullable=True),
        sa.Column("premium_expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("completed_referrals >= 0", name="reward_count_non_negative"),
        sa.ForeignKeyConstraint(["user_id"], ["user_accounts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )
    op.create_index(
        "ix_referral_rewards_premium",
        "referral_rewards",
        ["premium_granted", "premium_granted_at"],
        unique=False,
    )


def downgrade() -> None:
    """Drop referral system tables."""
    op.drop_table("referral_rewards")
    op.drop_table("referrals")
    op.drop_index("uq_referral_codes_active_user", table_name="user_referral_codes")
    op.drop_table("user_referral_codes")
    op.drop_table("user_accounts")
