"""Initial schema: users, evidence, streaks, weekly challenges, ledger, settings

Revision ID: 3c9e7a41b2d0
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "3c9e7a41b2d0"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("registration_date", sa.String(10), nullable=False),
        sa.Column("trophies", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_premium", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
    )

    op.create_table(
        "weekly_challenges",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.String(10), nullable=False),
        sa.Column("end_date", sa.String(10), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="active"),
        sa.Column("completed_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rest_days_available", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "start_date", name="uq_weekly_challenges_user_start"),
    )
    op.create_index(
        "ix_weekly_challenges_user_status", "weekly_challenges", ["user_id", "status"]
    )

    op.create_table(
        "daily_uploads",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("challenge_id", sa.Integer(), nullable=True),
        sa.Column("upload_date", sa.String(10), nullable=False),
        sa.Column("photo_path", sa.String(500), nullable=True),
        sa.Column("verification_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["challenge_id"], ["weekly_challenges.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "upload_date", name="uq_daily_uploads_user_date"),
    )
    op.create_index("ix_daily_uploads_status", "daily_uploads", ["verification_status"])
    op.create_index("ix_daily_uploads_challenge", "daily_uploads", ["challenge_id"])

    op.create_table(
        "rest_days",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("challenge_id", sa.Integer(), nullable=False),
        sa.Column("rest_date", sa.String(10), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["challenge_id"], ["weekly_challenges.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("challenge_id", "rest_date", name="uq_rest_days_challenge_date"),
        sa.UniqueConstraint("user_id", "rest_date", name="uq_rest_days_user_date"),
    )

    op.create_table(
        "streaks",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_activity_date", sa.String(10), nullable=True),
        sa.Column("last_rollup_date", sa.String(10), nullable=True),
        sa.Column("admin_baseline_date", sa.String(10), nullable=True),
        sa.Column("admin_baseline_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("admin_baseline_longest", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("user_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "trophy_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("upload_id", sa.Integer(), nullable=True),
        sa.Column("challenge_id", sa.Integer(), nullable=True),
        sa.Column("reason_kind", sa.String(30), nullable=False),
        sa.Column("reason_date", sa.String(10), nullable=True),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["upload_id"], ["daily_uploads.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["challenge_id"], ["weekly_challenges.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_trophy_tx_user", "trophy_transactions", ["user_id"])
    op.create_index("ix_trophy_tx_upload", "trophy_transactions", ["upload_id"])
    op.create_index(
        "ix_trophy_tx_challenge_kind", "trophy_transactions", ["challenge_id", "reason_kind"]
    )
    op.create_index(
        "ix_trophy_tx_user_kind_date",
        "trophy_transactions",
        ["user_id", "reason_kind", "reason_date"],
    )

    op.create_table(
        "settings",
        sa.Column("key", sa.String(100), nullable=False),
        sa.Column("value_json", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("key"),
    )
    op.create_index("ix_settings_category", "settings", ["category"])


def downgrade() -> None:
    op.drop_index("ix_settings_category", table_name="settings")
    op.drop_table("settings")
    op.drop_index("ix_trophy_tx_user_kind_date", table_name="trophy_transactions")
    op.drop_index("ix_trophy_tx_challenge_kind", table_name="trophy_transactions")
    op.drop_index("ix_trophy_tx_upload", table_name="trophy_transactions")
    op.drop_index("ix_trophy_tx_user", table_name="trophy_transactions")
    op.drop_table("trophy_transactions")
    op.drop_table("streaks")
    op.drop_table("rest_days")
    op.drop_index("ix_daily_uploads_challenge", table_name="daily_uploads")
    op.drop_index("ix_daily_uploads_status", table_name="daily_uploads")
    op.drop_table("daily_uploads")
    op.drop_index("ix_weekly_challenges_user_status", table_name="weekly_challenges")
    op.drop_table("weekly_challenges")
    op.drop_table("users")
