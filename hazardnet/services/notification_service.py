"""
hazardnet.services.notification_service — Per-User Notification Store
=======================================================================

Every query is scoped by recipient: a notification that exists but belongs
to somebody else is reported as "not found", never as "forbidden".

Notifications live 30 days from ``created_at``; removal is lazy (see
:mod:`hazardnet.services.retention_service`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select, update

from hazardnet.constants import NOTIFICATION_LIST_LIMIT
from hazardnet.database.engine import get_session
from hazardnet.database.models import Notification, NotificationType, User
from hazardnet.errors import NotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class NotificationDraft:
    """Fields of a notification before it is persisted."""

    user_id: int
    report_id: int
    created_by_user_id: int
    title: str
    message: str
    type: str = NotificationType.NEW_ALERT.value
    category: str | None = None
    severity: str | None = None
    location: str | None = None

    def to_model(self) -> Notification:
        return Notification(
            user_id=self.user_id,
            report_id=self.report_id,
            created_by_user_id=self.created_by_user_id,
            type=self.type,
            title=self.title,
            message=self.message,
            category=self.category,
            severity=self.severity,
            location=self.location,
            read=False,
        )


def serialize(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "userId": notification.user_id,
        "reportId": notification.report_id,
        "createdBy": notification.created_by_user_id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "category": notification.category,
        "severity": notification.severity,
        "location": notification.location,
        "read": notification.read,
        "readAt": notification.read_at.isoformat() if notification.read_at else None,
        "createdAt": notification.created_at.isoformat() if notification.created_at else None,
    }


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------
def create_notification(engine: Engine, draft: NotificationDraft) -> Notification:
    """Persist one unread notification for an existing recipient."""
    with get_session(engine, expire_on_commit=False) as session:
        if session.get(User, draft.user_id) is None:
            raise NotFoundError("User not found")
        notification = draft.to_model()
        session.add(notification)
        session.flush()
        session.expunge(notification)
    return notification


def create_notifications(
    engine: Engine,
    drafts: Iterable[NotificationDraft],
    batch_size: int = 500,
) -> list[Notification]:
    """Bulk insert, one transaction per *batch_size* rows.

    Recipients are assumed to exist (fan-out selects them from ``users``).
    Returned objects are detached and safe to serialize after the call.
    """
    pending = list(drafts)
    created: list[Notification] = []

    for start in range(0, len(pending), batch_size):
        chunk = [d.to_model() for d in pending[start:start + batch_size]]
        with get_session(engine, expire_on_commit=False) as session:
            session.add_all(chunk)
            session.flush()
            for row in chunk:
                session.expunge(row)
        created.extend(chunk)
        logger.debug("Notification batch written: %d rows", len(chunk))

    return created


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------
def unread_count(engine: Engine, user_id: int) -> int:
    with get_session(engine) as session:
        return _unread_count(session, user_id)


def _unread_count(session, user_id: int) -> int:
    return session.scalar(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
    ) or 0


def list_for_user(
    engine: Engine,
    user_id: int,
    limit: int = NOTIFICATION_LIST_LIMIT,
) -> tuple[list[dict], int]:
    """Newest-first page of the caller's notifications plus the unread count."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        ).all()
        return [serialize(n) for n in rows], _unread_count(session, user_id)


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------
def mark_read(engine: Engine, notification_id: int, user_id: int) -> dict:
    with get_session(engine) as session:
        notification = session.scalar(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        if notification is None:
            raise NotFoundError("Notification not found")
        if not notification.read:
            notification.read = True
            notification.read_at = datetime.now(UTC)
        session.flush()
        return serialize(notification)


def mark_all_read(engine: Engine, user_id: int) -> int:
    """Flip every unread notification of *user_id*; returns the number changed."""
    with get_session(engine) as session:
        result = session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True, read_at=datetime.now(UTC))
        )
        return result.rowcount or 0


def delete_notification(engine: Engine, notification_id: int, user_id: int) -> None:
    with get_session(engine) as session:
        result = session.execute(
            delete(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        if not result.rowcount:
            raise NotFoundError("Notification not found")
