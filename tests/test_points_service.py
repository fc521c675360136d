"""
tests/test_points_service.py — Points ledger, badges and leaderboard
=====================================================================
Uses an in-memory SQLite database via the shared conftest fixtures.
"""

from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from hazardnet.database.models import (
    IncidentReport,
    PointsAction,
    PointsTransaction,
    ReportStatus,
    User,
    UserBadge,
)
from hazardnet.engine.badges import BRONZE_REPORTER, GUARDIAN, SILVER_REPORTER
from hazardnet.errors import AwardFailure, NotFoundError, ValidationError
from hazardnet.services import points_service


@pytest.fixture
def engine(db_engine):
    return db_engine


def _points(engine, user_id: int) -> int:
    with Session(engine) as session:
        return session.get(User, user_id).points


def _ledger(engine, user_id: int) -> list[PointsTransaction]:
    with Session(engine) as session:
        return session.scalars(
            select(PointsTransaction)
            .where(PointsTransaction.user_id == user_id)
            .order_by(PointsTransaction.id)
        ).all()


class TestAwardPoints:
    def test_increments_points_and_appends_ledger(self, engine, make_user):
        uid = make_user("ana")
        result = points_service.award_points(engine, uid, 5, "comment", "Commented")

        assert result.points_awarded == 5
        assert result.total_points == 5
        assert result.new_badges == []
        assert _points(engine, uid) == 5

        ledger = _ledger(engine, uid)
        assert len(ledger) == 1
        assert ledger[0].action == PointsAction.COMMENT
        assert ledger[0].description == "Commented"

    def test_sum_matches_randomised_sequence(self, engine, make_user):
        uid = make_user("ben")
        rng = random.Random(42)
        actions = list(PointsAction)
        amounts = [rng.randint(1, 40) for _ in range(25)]
        for amount in amounts:
            points_service.award_points(engine, uid, amount, rng.choice(actions))

        assert _points(engine, uid) == sum(amounts)
        assert sum(tx.points for tx in _ledger(engine, uid)) == sum(amounts)

    def test_unknown_user_raises_not_found(self, engine):
        with pytest.raises(NotFoundError):
            points_service.award_points(engine, 999, 5, "comment")

    def test_unknown_related_report_raises_not_found(self, engine, make_user, make_report):
        uid = make_user("reese")
        rid = make_report(uid)
        with pytest.raises(NotFoundError, match="Report not found"):
            points_service.award_points(engine, uid, 5, "bonus", "Cleanup", rid + 100)
        assert _points(engine, uid) == 0
        assert _ledger(engine, uid) == []

        points_service.award_points(engine, uid, 5, "bonus", "Cleanup", rid)
        assert _ledger(engine, uid)[0].related_report_id == rid

    @pytest.mark.parametrize("points", [0, -5, 2.5, True, None])
    def test_rejects_non_positive_or_non_int_points(self, engine, make_user, points):
        uid = make_user("cy")
        with pytest.raises(ValidationError):
            points_service.award_points(engine, uid, points, "comment")

    def test_rejects_unknown_action(self, engine, make_user):
        uid = make_user("di")
        with pytest.raises(ValidationError, match="Invalid action"):
            points_service.award_points(engine, uid, 5, "teleport")

    def test_store_error_becomes_award_failure(self, engine, make_user):
        uid = make_user("ed")
        with patch.object(
            points_service, "count_verified_reports",
            side_effect=OperationalError("SELECT", {}, Exception("db gone")),
        ):
            with pytest.raises(AwardFailure):
                points_service.award_points(engine, uid, 5, "comment")
        # Rolled back: nothing applied
        assert _points(engine, uid) == 0
        assert _ledger(engine, uid) == []


class TestBadgeUnlocks:
    def test_crossing_two_thresholds_at_once(self, engine, make_user):
        uid = make_user("fay", points=40)
        result = points_service.award_points(engine, uid, 170, "bonus")

        assert result.total_points == 210
        assert result.new_badges == [BRONZE_REPORTER, SILVER_REPORTER]
        assert result.badges == [BRONZE_REPORTER, SILVER_REPORTER]

    def test_badge_granted_only_once(self, engine, make_user):
        uid = make_user("gus")
        first = points_service.award_points(engine, uid, 60, "bonus")
        second = points_service.award_points(engine, uid, 5, "comment")

        assert first.new_badges == [BRONZE_REPORTER]
        assert second.new_badges == []
        assert second.badges == [BRONZE_REPORTER]
        with Session(engine) as session:
            count = session.scalar(
                select(func.count()).select_from(UserBadge).where(UserBadge.user_id == uid)
            )
        assert count == 1

    def test_concurrent_grant_is_dropped_from_new_badges(self, engine, make_user):
        """A badge row inserted by a racing award is not reported again."""
        uid = make_user("hal")
        with patch.object(points_service, "get_badge_names", return_value=[]):
            with Session(engine) as session:
                session.add(UserBadge(user_id=uid, badge_name=BRONZE_REPORTER))
                session.commit()
            result = points_service.award_points(engine, uid, 60, "bonus")

        assert result.new_badges == []
        assert _points(engine, uid) == 60

    def test_guardian_from_verified_reports(self, engine, make_user, make_report):
        uid = make_user("ivy")
        for i in range(10):
            make_report(uid, title=f"r{i}", status=ReportStatus.VERIFIED.value, is_verified=True)

        result = points_service.award_points(engine, uid, 5, "comment")
        assert GUARDIAN in result.new_badges
        assert BRONZE_REPORTER not in result.new_badges

    def test_no_guardian_below_ten(self, engine, make_user, make_report):
        uid = make_user("jon")
        for i in range(9):
            make_report(uid, title=f"r{i}", status=ReportStatus.VERIFIED.value, is_verified=True)
        make_report(uid, title="pending one")

        result = points_service.award_points(engine, uid, 5, "comment")
        assert GUARDIAN not in result.new_badges


class TestIdempotency:
    def test_keyed_award_applies_once(self, engine, make_user):
        uid = make_user("kim")
        first = points_service.award_points(engine, uid, 20, "bonus", idempotency_key="k-1")
        second = points_service.award_points(engine, uid, 20, "bonus", idempotency_key="k-1")

        assert not first.duplicate
        assert second.duplicate
        assert second.points_awarded == 0
        assert second.total_points == 20
        assert _points(engine, uid) == 20
        assert len(_ledger(engine, uid)) == 1

    def test_unkeyed_awards_always_apply(self, engine, make_user):
        uid = make_user("lee")
        points_service.award_points(engine, uid, 5, "comment")
        points_service.award_points(engine, uid, 5, "comment")
        assert _points(engine, uid) == 10


class TestCompositeVerificationAward:
    def test_awards_both_steps(self, engine, make_user, make_report):
        uid = make_user("max", points=25)
        rid = make_report(uid)

        result = points_service.award_report_verification(
            engine, report_id=rid, creator_id=uid, title="Flooded underpass",
        )
        assert result.points_awarded == 30
        assert result.new_badges == [BRONZE_REPORTER]
        assert [tx.action for tx in _ledger(engine, uid)] == [
            PointsAction.SUBMIT_REPORT, PointsAction.REPORT_VERIFIED,
        ]
        assert all(tx.related_report_id == rid for tx in _ledger(engine, uid))

    def test_second_run_pays_nothing(self, engine, make_user, make_report):
        uid = make_user("ned")
        rid = make_report(uid)
        points_service.award_report_verification(engine, report_id=rid, creator_id=uid, title="t")
        again = points_service.award_report_verification(engine, report_id=rid, creator_id=uid, title="t")

        assert again.points_awarded == 0
        assert again.duplicate
        assert _points(engine, uid) == 30

    def test_partial_failure_keeps_first_step(self, engine, make_user, make_report):
        uid = make_user("oli")
        rid = make_report(uid)
        real_award = points_service.award_points

        def flaky(engine_, user_id, points, action, *args, **kwargs):
            if action == PointsAction.REPORT_VERIFIED:
                raise AwardFailure("boom")
            return real_award(engine_, user_id, points, action, *args, **kwargs)

        with patch.object(points_service, "award_points", side_effect=flaky):
            result = points_service.award_report_verification(
                engine, report_id=rid, creator_id=uid, title="t",
            )
        assert result.points_awarded == 10
        assert _points(engine, uid) == 10

    def test_total_failure_returns_none(self, engine, make_user, make_report):
        uid = make_user("pam")
        rid = make_report(uid)
        with patch.object(points_service, "award_points", side_effect=AwardFailure("down")):
            assert points_service.award_report_verification(
                engine, report_id=rid, creator_id=uid, title="t",
            ) is None

    def test_users_do_not_cross_contaminate(self, engine, make_user, make_report):
        commenter = make_user("quin")
        creator = make_user("rae")
        rid = make_report(creator)
        for _ in range(3):
            points_service.award_points(engine, commenter, 5, "comment", related_report_id=rid)
        points_service.award_report_verification(engine, report_id=rid, creator_id=creator, title="t")

        assert _points(engine, commenter) == 15
        assert _points(engine, creator) == 30


class TestSnapshots:
    def test_user_points_snapshot(self, engine, make_user, make_report):
        uid = make_user("sam", points=0, total_reports=3)
        make_report(uid, status=ReportStatus.VERIFIED.value, is_verified=True)
        points_service.award_points(engine, uid, 55, "bonus")

        snap = points_service.get_user_points(engine, uid)
        assert snap["userId"] == uid
        assert snap["points"] == 55
        assert snap["badges"] == [BRONZE_REPORTER]
        assert snap["totalReports"] == 3
        assert snap["verifiedReports"] == 1
        assert snap["pointsToNextBadge"] == 145

    def test_snapshot_unknown_user(self, engine):
        with pytest.raises(NotFoundError):
            points_service.get_user_points(engine, 404)


class TestLeaderboard:
    def test_all_time_orders_by_points_and_skips_admins(self, engine, make_user):
        make_user("low", points=10)
        make_user("high", points=300)
        make_user("boss", points=9000, role="admin")

        board = points_service.get_leaderboard(engine, "all-time", 10)
        assert [e["username"] for e in board] == ["high", "low"]
        assert board[0]["rank"] == 1
        assert board[0]["points"] == board[0]["totalPoints"] == 300

    def test_week_ranks_by_recent_ledger(self, engine, make_user):
        veteran = make_user("veteran", points=1000)
        rookie = make_user("rookie")
        with Session(engine) as session:
            session.add(PointsTransaction(
                user_id=veteran, action="bonus", points=1000, description="old",
                timestamp=datetime.now(UTC) - timedelta(days=40),
            ))
            session.commit()
        points_service.award_points(engine, veteran, 5, "comment")
        points_service.award_points(engine, rookie, 20, "bonus")

        board = points_service.get_leaderboard(engine, "week", 10)
        assert [(e["username"], e["points"]) for e in board] == [("rookie", 20), ("veteran", 5)]
        assert board[1]["totalPoints"] == 1005

    def test_limit(self, engine, make_user):
        for i in range(5):
            make_user(f"u{i}", points=i)
        assert len(points_service.get_leaderboard(engine, "all-time", 3)) == 3

    def test_unknown_period(self, engine):
        with pytest.raises(ValidationError, match="Invalid period"):
            points_service.get_leaderboard(engine, "decade")
