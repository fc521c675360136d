"""
hazardnet.database.models — SQLAlchemy 2.0 Data Models
=======================================================

Tables:
- users                — Accounts with points, report counter, location, preferences
- user_badges          — Earned badges (unique per user, id order = unlock order)
- points_transactions  — Append-only points ledger with optional idempotency key
- incident_reports     — Hazard reports and their moderation status
- report_votes         — One up/down vote per (report, user)
- report_comments      — Ordered, append-only comment thread
- notifications        — Per-recipient alert inbox, purged 30 days after creation
- activity_log         — Append-only admin audit trail
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all HazardNet ORM models."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class UserRole(enum.StrEnum):
    USER = "user"
    ADMIN = "admin"


class ReportStatus(enum.StrEnum):
    """Moderation lifecycle: pending → verified | rejected; verified → resolved."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    RESOLVED = "resolved"


class PointsAction(enum.StrEnum):
    """Every action that can append to the points ledger."""
    SUBMIT_REPORT = "submit_report"
    REPORT_VERIFIED = "report_verified"
    VOTE = "vote"
    COMMENT = "comment"
    BONUS = "bonus"


class NotificationType(enum.StrEnum):
    NEW_ALERT = "new_alert"
    COMMENT = "comment"
    UPVOTE = "upvote"
    DOWNVOTE = "downvote"
    REPLY = "reply"


class VoteDirection(enum.StrEnum):
    UP = "up"
    DOWN = "down"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(255), default=None)
    role: Mapped[str] = mapped_column(String(10), nullable=False, default=UserRole.USER.value)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_reports: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    latitude: Mapped[float | None] = mapped_column(Float, default=None)
    longitude: Mapped[float | None] = mapped_column(Float, default=None)
    # Sparse: only keys the user changed are stored; see preferences_service
    notification_settings: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    badges: Mapped[list[UserBadge]] = relationship(
        back_populates="user", cascade="all, delete-orphan", order_by="UserBadge.id"
    )

    __table_args__ = (
        Index("ix_users_points_desc", "points"),
        Index("ix_users_lat_lng", "latitude", "longitude"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.username!r} points={self.points}>"


# ---------------------------------------------------------------------------
# UserBadge — earned badges
# ---------------------------------------------------------------------------
class UserBadge(Base):
    __tablename__ = "user_badges"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    badge_name: Mapped[str] = mapped_column(String(50), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="badges")

    __table_args__ = (
        UniqueConstraint("user_id", "badge_name", name="uq_user_badges_user_badge"),
    )

    def __repr__(self) -> str:
        return f"<UserBadge user={self.user_id} badge={self.badge_name!r}>"


# ---------------------------------------------------------------------------
# PointsTransaction — append-only ledger
# ---------------------------------------------------------------------------
class PointsTransaction(Base):
    __tablename__ = "points_transactions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    related_report_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("incident_reports.id", ondelete="SET NULL"), nullable=True
    )
    idempotency_key: Mapped[str | None] = mapped_column(String(120), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        # Partial unique index: keyed awards apply at most once
        Index(
            "ix_points_tx_idempotent",
            "idempotency_key",
            unique=True,
            postgresql_where=idempotency_key.isnot(None),
        ),
        Index("ix_points_tx_user_time", "user_id", "timestamp"),
        Index("ix_points_tx_time", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<PointsTransaction id={self.id} user={self.user_id} "
            f"action={self.action} points={self.points}>"
        )


# ---------------------------------------------------------------------------
# IncidentReport — hazard reports
# ---------------------------------------------------------------------------
class IncidentReport(Base):
    __tablename__ = "incident_reports"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    severity: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")

    location_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    address: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    latitude: Mapped[float | None] = mapped_column(Float, default=None)
    longitude: Mapped[float | None] = mapped_column(Float, default=None)

    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=ReportStatus.PENDING.value
    )
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_by: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    rejection_reason: Mapped[str | None] = mapped_column(Text, default=None)

    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    creator: Mapped[User] = relationship(foreign_keys=[user_id])
    comments: Mapped[list[ReportComment]] = relationship(
        back_populates="report", cascade="all, delete-orphan", order_by="ReportComment.id"
    )
    votes: Mapped[list[ReportVote]] = relationship(
        back_populates="report", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_reports_user", "user_id"),
        Index("ix_reports_status_time", "status", "created_at"),
        Index("ix_reports_lat_lng", "latitude", "longitude"),
    )

    @property
    def location_label(self) -> str:
        return self.location_name or self.address

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def __repr__(self) -> str:
        return f"<IncidentReport id={self.id} category={self.category!r} status={self.status}>"


# ---------------------------------------------------------------------------
# ReportVote — membership of upvotedBy / downvotedBy
# ---------------------------------------------------------------------------
class ReportVote(Base):
    __tablename__ = "report_votes"

    report_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("incident_reports.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    direction: Mapped[str] = mapped_column(String(4), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    report: Mapped[IncidentReport] = relationship(back_populates="votes")

    def __repr__(self) -> str:
        return f"<ReportVote report={self.report_id} user={self.user_id} {self.direction}>"


# ---------------------------------------------------------------------------
# ReportComment — ordered comment thread
# ---------------------------------------------------------------------------
class ReportComment(Base):
    __tablename__ = "report_comments"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    report_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("incident_reports.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    report: Mapped[IncidentReport] = relationship(back_populates="comments")

    __table_args__ = (
        Index("ix_report_comments_report", "report_id", "id"),
    )

    def __repr__(self) -> str:
        return f"<ReportComment id={self.id} report={self.report_id} user={self.user_id}>"


# ---------------------------------------------------------------------------
# Notification — per-recipient alert inbox
# ---------------------------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    report_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("incident_reports.id", ondelete="CASCADE"), nullable=False
    )
    created_by_user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=NotificationType.NEW_ALERT.value
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(String(20), default=None)
    severity: Mapped[str | None] = mapped_column(String(10), default=None)
    location: Mapped[str | None] = mapped_column(String(300), default=None)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_notifications_user_time", "user_id", created_at.desc()),
        Index("ix_notifications_user_read_time", "user_id", "read", created_at.desc()),
        Index("ix_notifications_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} user={self.user_id} read={self.read}>"


# ---------------------------------------------------------------------------
# ActivityLog — append-only admin audit trail
# ---------------------------------------------------------------------------
class ActivityLog(Base):
    __tablename__ = "activity_log"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    details: Mapped[str | None] = mapped_column(Text, default=None)
    related_report_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_activity_log_user_time", "user_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<ActivityLog id={self.id} user={self.user_id} action={self.action}>"
