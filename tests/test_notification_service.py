"""
tests/test_notification_service.py — Per-user notification store
=================================================================
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hazardnet.database.models import Notification
from hazardnet.errors import NotFoundError
from hazardnet.services import notification_service
from hazardnet.services.notification_service import NotificationDraft


@pytest.fixture
def people(db_engine, make_user, make_report):
    owner = make_user("owner")
    other = make_user("other")
    report = make_report(owner)
    return owner, other, report


def _draft(user_id: int, report_id: int, actor: int, title: str = "Alert") -> NotificationDraft:
    return NotificationDraft(
        user_id=user_id,
        report_id=report_id,
        created_by_user_id=actor,
        title=title,
        message="Something happened",
        category="flood",
        severity="high",
        location="Main St",
    )


def _parse(ts: str) -> datetime:
    return datetime.fromisoformat(ts).replace(tzinfo=None)


class TestCreate:
    def test_create_is_unread(self, db_engine, people):
        owner, other, report = people
        n = notification_service.create_notification(db_engine, _draft(other, report, owner))
        assert n.id is not None
        assert n.read is False
        assert n.read_at is None
        assert n.created_at is not None

    def test_missing_recipient(self, db_engine, people):
        owner, _, report = people
        with pytest.raises(NotFoundError):
            notification_service.create_notification(db_engine, _draft(999, report, owner))

    def test_batch_create_spans_batches(self, db_engine, people):
        owner, other, report = people
        drafts = [_draft(other, report, owner, f"#{i}") for i in range(7)]
        created = notification_service.create_notifications(db_engine, drafts, batch_size=3)

        assert len(created) == 7
        assert all(n.id is not None for n in created)
        # Detached objects stay readable
        assert [n.title for n in created] == [f"#{i}" for i in range(7)]
        with Session(db_engine) as session:
            assert session.scalar(select(func.count()).select_from(Notification)) == 7


class TestList:
    def test_newest_first_capped_at_fifty(self, db_engine, people):
        owner, other, report = people
        base = datetime(2026, 1, 1)
        with Session(db_engine) as session:
            for i in range(60):
                n = _draft(other, report, owner, f"#{i}").to_model()
                n.created_at = base + timedelta(minutes=i)
                session.add(n)
            session.commit()

        data, unread = notification_service.list_for_user(db_engine, other)
        assert len(data) == 50
        assert data[0]["title"] == "#59"
        assert data[-1]["title"] == "#10"
        assert unread == 60

    def test_only_own_notifications(self, db_engine, people):
        owner, other, report = people
        notification_service.create_notification(db_engine, _draft(other, report, owner))
        data, unread = notification_service.list_for_user(db_engine, owner)
        assert data == []
        assert unread == 0


class TestMarkRead:
    def test_round_trip(self, db_engine, people):
        owner, other, report = people
        n = notification_service.create_notification(db_engine, _draft(other, report, owner))

        notification_service.mark_read(db_engine, n.id, other)
        data, unread = notification_service.list_for_user(db_engine, other)

        assert unread == 0
        assert data[0]["read"] is True
        assert _parse(data[0]["readAt"]) >= _parse(data[0]["createdAt"])

    def test_other_users_notification_is_not_found(self, db_engine, people):
        owner, other, report = people
        n = notification_service.create_notification(db_engine, _draft(other, report, owner))

        with pytest.raises(NotFoundError, match="Notification not found"):
            notification_service.mark_read(db_engine, n.id, owner)
        assert notification_service.unread_count(db_engine, other) == 1

    def test_mark_all_read_is_idempotent(self, db_engine, people):
        owner, other, report = people
        for i in range(3):
            notification_service.create_notification(db_engine, _draft(other, report, owner, f"{i}"))
        notification_service.create_notification(db_engine, _draft(owner, report, other))

        assert notification_service.mark_all_read(db_engine, other) == 3
        assert notification_service.mark_all_read(db_engine, other) == 0
        assert notification_service.unread_count(db_engine, other) == 0
        assert notification_service.unread_count(db_engine, owner) == 1


class TestDelete:
    def test_delete_own(self, db_engine, people):
        owner, other, report = people
        n = notification_service.create_notification(db_engine, _draft(other, report, owner))
        notification_service.delete_notification(db_engine, n.id, other)
        assert notification_service.list_for_user(db_engine, other) == ([], 0)

    def test_delete_foreign_is_not_found(self, db_engine, people):
        owner, other, report = people
        n = notification_service.create_notification(db_engine, _draft(other, report, owner))
        with pytest.raises(NotFoundError):
            notification_service.delete_notification(db_engine, n.id, owner)
        assert notification_service.unread_count(db_engine, other) == 1
