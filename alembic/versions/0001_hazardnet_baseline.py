"""HazardNet baseline schema

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_baseline"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, **kw) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), **kw)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("role", sa.String(10), nullable=False, server_default="user"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_reports", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("notification_settings", postgresql.JSONB(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_users_points_desc", "users", ["points"])
    op.create_index("ix_users_lat_lng", "users", ["latitude", "longitude"])

    op.create_table(
        "user_badges",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column(
            "user_id", sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("badge_name", sa.String(50), nullable=False),
        _timestamp("earned_at"),
        sa.UniqueConstraint("user_id", "badge_name", name="uq_user_badges_user_badge"),
    )

    op.create_table(
        "incident_reports",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column(
            "user_id", sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("severity", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("location_name", sa.String(200), nullable=False, server_default=""),
        sa.Column("address", sa.String(300), nullable=False, server_default=""),
        sa.Column("city", sa.String(100), nullable=False, server_default=""),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("status", sa.String(10), nullable=False, server_default="pending"),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "verified_by", sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("upvotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("downvotes", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_reports_user", "incident_reports", ["user_id"])
    op.create_index("ix_reports_status_time", "incident_reports", ["status", "created_at"])
    op.create_index("ix_reports_lat_lng", "incident_reports", ["latitude", "longitude"])

    op.create_table(
        "points_transactions",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column(
            "user_id", sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "related_report_id", sa.BigInteger(),
            sa.ForeignKey("incident_reports.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("idempotency_key", sa.String(120), nullable=True),
        _timestamp("timestamp"),
    )
    op.create_index(
        "ix_points_tx_idempotent", "points_transactions", ["idempotency_key"],
        unique=True, postgresql_where=sa.text("idempotency_key IS NOT NULL"),
    )
    op.create_index("ix_points_tx_user_time", "points_transactions", ["user_id", "timestamp"])
    op.create_index("ix_points_tx_time", "points_transactions", ["timestamp"])

    op.create_table(
        "report_votes",
        sa.Column(
            "report_id", sa.BigInteger(),
            sa.ForeignKey("incident_reports.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "user_id", sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("direction", sa.String(4), nullable=False),
        _timestamp("created_at"),
    )

    op.create_table(
        "report_comments",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column(
            "report_id", sa.BigInteger(),
            sa.ForeignKey("incident_reports.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "user_id", sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_report_comments_report", "report_comments", ["report_id", "id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column(
            "user_id", sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "report_id", sa.BigInteger(),
            sa.ForeignKey("incident_reports.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "created_by_user_id", sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("type", sa.String(20), nullable=False, server_default="new_alert"),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("category", sa.String(20), nullable=True),
        sa.Column("severity", sa.String(10), nullable=True),
        sa.Column("location", sa.String(300), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at", nullable=False),
    )
    op.create_index(
        "ix_notifications_user_time", "notifications",
        ["user_id", sa.text("created_at DESC")],
    )
    op.create_index(
        "ix_notifications_user_read_time", "notifications",
        ["user_id", "read", sa.text("created_at DESC")],
    )
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])

    op.create_table(
        "activity_log",
        sa.Column("id", sa.BigInteger(), autoincrement=True, primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("related_report_id", sa.BigInteger(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        _timestamp("timestamp"),
    )
    op.create_index("ix_activity_log_user_time", "activity_log", ["user_id", "timestamp"])


def downgrade() -> None:
    op.drop_table("activity_log")
    op.drop_table("notifications")
    op.drop_table("report_comments")
    op.drop_table("report_votes")
    op.drop_table("points_transactions")
    op.drop_table("incident_reports")
    op.drop_table("user_badges")
    op.drop_table("users")
