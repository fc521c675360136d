"""
hazardnet.services.points_service — Points Ledger & Badge Persistence
======================================================================

Shared service called by the report, alert and points routers.  Handles
ledger appends, the atomic points increment, badge unlocks and the
leaderboard.

Concurrency rules:
- ``users.points`` is only ever changed with ``UPDATE ... SET points =
  points + :n`` so two awards racing on the same user cannot lose an
  increment.
- Badges are inserted one row at a time under the
  ``(user_id, badge_name)`` unique constraint; a concurrent grant that wins
  the race makes the loser drop the badge from its ``new_badges``.
- Keyed awards (``idempotency_key``) apply at most once: the ledger row is
  the guard, enforced by a unique index.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hazardnet.database.models import (
    IncidentReport,
    PointsAction,
    PointsTransaction,
    ReportStatus,
    User,
    UserBadge,
    UserRole,
)
from hazardnet.engine.badges import BadgeContext, check_badges, points_needed_for_next
from hazardnet.engine.points import (
    REPORT_VERIFIED_POINTS,
    SUBMIT_REPORT_POINTS,
    AwardResult,
    composite_key,
)
from hazardnet.errors import AwardFailure, NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

LEADERBOARD_PERIODS: dict[str, timedelta | None] = {
    "all-time": None,
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


# ---------------------------------------------------------------------------
# Read helpers (session-scoped)
# ---------------------------------------------------------------------------
def count_verified_reports(session: Session, user_id: int) -> int:
    return session.scalar(
        select(func.count())
        .select_from(IncidentReport)
        .where(
            IncidentReport.user_id == user_id,
            IncidentReport.status == ReportStatus.VERIFIED.value,
        )
    ) or 0


def get_badge_names(session: Session, user_id: int) -> list[str]:
    """Badge names in unlock order."""
    return list(session.scalars(
        select(UserBadge.badge_name)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.id)
    ).all())


def _badges_by_user(session: Session, user_ids: list[int]) -> dict[int, list[str]]:
    if not user_ids:
        return {}
    rows = session.execute(
        select(UserBadge.user_id, UserBadge.badge_name)
        .where(UserBadge.user_id.in_(user_ids))
        .order_by(UserBadge.id)
    ).all()
    result: dict[int, list[str]] = {uid: [] for uid in user_ids}
    for row in rows:
        result[row.user_id].append(row.badge_name)
    return result


def _validate_award(points, action) -> PointsAction:
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise ValidationError("points must be a positive integer")
    try:
        return PointsAction(action)
    except ValueError:
        valid = ", ".join(a.value for a in PointsAction)
        raise ValidationError(f"Invalid action: {action}. Valid actions are: {valid}") from None


def _grant_badges(session: Session, user_id: int, names: list[str]) -> list[str]:
    """Insert badge rows; names already granted by a concurrent award are skipped."""
    granted: list[str] = []
    for name in names:
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(UserBadge(user_id=user_id, badge_name=name))
                session.flush()
        except IntegrityError:
            logger.info("Badge %r for user %d was granted concurrently", name, user_id)
            continue
        granted.append(name)
    return granted


# ---------------------------------------------------------------------------
# awardPoints
# ---------------------------------------------------------------------------
def award_points(
    engine: Engine,
    user_id: int,
    points: int,
    action: PointsAction | str,
    description: str = "",
    related_report_id: int | None = None,
    *,
    idempotency_key: str | None = None,
) -> AwardResult:
    """Credit *points* to *user_id*, append a ledger row, unlock badges.

    Raises
    ------
    ValidationError
        If *points* is not a positive integer or *action* is unknown.
    NotFoundError
        If the user does not exist or *related_report_id* names no report.
    AwardFailure
        If the store rejected the write.
    """
    action = _validate_award(points, action)

    try:
        with Session(engine) as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFoundError("User not found")
            if (
                related_report_id is not None
                and session.get(IncidentReport, related_report_id) is None
            ):
                raise NotFoundError("Report not found")

            tx = PointsTransaction(
                user_id=user_id,
                action=action.value,
                points=points,
                description=description or "",
                related_report_id=related_report_id,
                idempotency_key=idempotency_key,
            )

            if idempotency_key is not None:
                already = session.scalar(
                    select(PointsTransaction.id)
                    .where(PointsTransaction.idempotency_key == idempotency_key)
                )
                if already is not None:
                    return _duplicate_result(session, user)
                try:
                    with session.begin_nested():   # SAVEPOINT
                        session.add(tx)
                        session.flush()
                except IntegrityError:
                    # Lost the race against an identical keyed award.
                    session.commit()
                    return _duplicate_result(session, user)
            else:
                session.add(tx)

            session.execute(
                update(User)
                .where(User.id == user_id)
                .values(points=User.points + points)
            )
            total = session.scalar(select(User.points).where(User.id == user_id)) or 0

            earned = get_badge_names(session, user_id)
            ctx = BadgeContext(
                points=total,
                verified_reports=count_verified_reports(session, user_id),
            )
            new_badges = _grant_badges(session, user_id, check_badges(ctx, earned))

            session.commit()
    except SQLAlchemyError as exc:
        raise AwardFailure(f"Could not award points to user {user_id}") from exc

    if new_badges:
        logger.info("User %d unlocked badges: %s", user_id, ", ".join(new_badges))
    logger.debug("Awarded %d points (%s) to user %d → %d", points, action, user_id, total)

    return AwardResult(
        user_id=user_id,
        points_awarded=points,
        total_points=total,
        badges=earned + new_badges,
        new_badges=new_badges,
    )


def _duplicate_result(session: Session, user: User) -> AwardResult:
    session.refresh(user)
    return AwardResult(
        user_id=user.id,
        points_awarded=0,
        total_points=user.points,
        badges=get_badge_names(session, user.id),
        duplicate=True,
    )


# ---------------------------------------------------------------------------
# Side-effect awards (never fail the primary action)
# ---------------------------------------------------------------------------
def try_award(
    engine: Engine,
    user_id: int,
    points: int,
    action: PointsAction,
    description: str = "",
    related_report_id: int | None = None,
    *,
    idempotency_key: str | None = None,
) -> AwardResult | None:
    """``award_points`` for side effects: failures are logged, never raised."""
    try:
        return award_points(
            engine,
            user_id,
            points,
            action,
            description,
            related_report_id,
            idempotency_key=idempotency_key,
        )
    except (AwardFailure, NotFoundError, ValidationError):
        logger.exception(
            "Points award failed (user=%d action=%s report=%s)",
            user_id, action, related_report_id,
        )
        return None


def merge_results(results: list[AwardResult]) -> AwardResult:
    """Combine awards to one user into one result; badge names deduplicated."""
    last = results[-1]
    new_badges: list[str] = []
    for result in results:
        new_badges.extend(result.new_badges)
    return AwardResult(
        user_id=last.user_id,
        points_awarded=sum(r.points_awarded for r in results),
        total_points=last.total_points,
        badges=last.badges,
        new_badges=list(dict.fromkeys(new_badges)),
        duplicate=all(r.duplicate for r in results),
    )


def award_report_verification(
    engine: Engine,
    *,
    report_id: int,
    creator_id: int,
    title: str,
) -> AwardResult | None:
    """Composite award for a verified report: +10 submit, then +20 bonus.

    Each step is keyed by report and action, so re-verifying a report (for
    example after a rejection) never pays twice.  Returns ``None`` only when
    both steps failed.
    """
    steps = (
        (PointsAction.SUBMIT_REPORT, SUBMIT_REPORT_POINTS, f"Report verified: {title}"),
        (PointsAction.REPORT_VERIFIED, REPORT_VERIFIED_POINTS, f"Bonus for verified report: {title}"),
    )
    results: list[AwardResult] = []
    for action, points, description in steps:
        result = try_award(
            engine,
            creator_id,
            points,
            action,
            description,
            report_id,
            idempotency_key=composite_key(report_id, action),
        )
        if result is not None:
            results.append(result)

    if not results:
        return None
    return merge_results(results)


# ---------------------------------------------------------------------------
# Snapshots & leaderboard
# ---------------------------------------------------------------------------
def get_user_points(engine: Engine, user_id: int) -> dict:
    """Point/badge snapshot for the public profile card."""
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return {
            "userId": user.id,
            "username": user.username,
            "points": user.points or 0,
            "badges": get_badge_names(session, user.id),
            "totalReports": user.total_reports or 0,
            "verifiedReports": count_verified_reports(session, user.id),
            "pointsToNextBadge": points_needed_for_next(user.points or 0),
        }


def get_leaderboard(engine: Engine, period: str = "all-time", limit: int = 20) -> list[dict]:
    """Top ``user``-role accounts by total points or by points earned in a window."""
    if period not in LEADERBOARD_PERIODS:
        valid = ", ".join(LEADERBOARD_PERIODS)
        raise ValidationError(f"Invalid period: {period}. Valid periods are: {valid}")
    window = LEADERBOARD_PERIODS[period]

    with Session(engine) as session:
        if window is None:
            users = session.scalars(
                select(User)
                .where(User.role == UserRole.USER.value)
                .order_by(User.points.desc(), User.id)
                .limit(limit)
            ).all()
            ranked = [(u, u.points or 0) for u in users]
        else:
            since = datetime.now(UTC) - window
            period_points = func.sum(PointsTransaction.points).label("period_points")
            rows = session.execute(
                select(User, period_points)
                .join(PointsTransaction, PointsTransaction.user_id == User.id)
                .where(
                    PointsTransaction.timestamp >= since,
                    User.role == UserRole.USER.value,
                )
                .group_by(User.id)
                .order_by(period_points.desc(), User.id)
                .limit(limit)
            ).all()
            ranked = [(row[0], int(row[1] or 0)) for row in rows]

        badges = _badges_by_user(session, [u.id for u, _ in ranked])
        return [
            {
                "rank": i + 1,
                "userId": u.id,
                "username": u.username,
                "points": score,
                "totalPoints": u.points or 0,
                "badges": badges.get(u.id, []),
                "totalReports": u.total_reports or 0,
            }
            for i, (u, score) in enumerate(ranked)
        ]
