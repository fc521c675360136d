"""
hazardnet.services.report_service — Report Actions Feeding the Points Engine
=============================================================================

Creation, vote toggles and comments.  Each primary write commits first;
points are awarded afterwards as a side effect whose failure is logged and
reported as ``None`` fields, never as an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select, update

from hazardnet.constants import CATEGORIES, SEVERITIES
from hazardnet.database.engine import get_session
from hazardnet.database.models import (
    IncidentReport,
    PointsAction,
    ReportComment,
    ReportStatus,
    ReportVote,
    User,
    VoteDirection,
)
from hazardnet.engine.geo import valid_coordinates
from hazardnet.engine.points import COMMENT_POINTS, VOTE_POINTS, AwardResult, vote_key
from hazardnet.errors import NotFoundError, ValidationError
from hazardnet.services.points_service import try_award

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class VoteResult:
    upvotes: int
    downvotes: int
    user_vote: str | None
    points_awarded: int | None = 0
    new_badges: list[str] | None = None


@dataclass(slots=True)
class CommentResult:
    comment: dict
    points_awarded: int | None = 0
    new_badges: list[str] | None = None


def serialize_report(report: IncidentReport) -> dict:
    return {
        "id": report.id,
        "userId": report.user_id,
        "title": report.title,
        "description": report.description,
        "category": report.category,
        "severity": report.severity,
        "status": report.status,
        "isVerified": report.is_verified,
        "location": (
            {"lat": report.latitude, "lng": report.longitude}
            if report.has_location else None
        ),
        "locationName": report.location_name,
        "address": report.address,
        "city": report.city,
        "upvotes": report.upvotes,
        "downvotes": report.downvotes,
        "verifiedBy": report.verified_by,
        "verifiedAt": report.verified_at.isoformat() if report.verified_at else None,
        "rejectionReason": report.rejection_reason,
        "createdAt": report.created_at.isoformat() if report.created_at else None,
    }


def _award_fields(result: AwardResult | None) -> tuple[int | None, list[str] | None]:
    if result is None:
        return None, None
    return result.points_awarded, result.new_badges


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------
def _required(value: str | None, field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return value


def _coordinates(latitude, longitude) -> tuple[float | None, float | None]:
    if latitude is None and longitude is None:
        return None, None
    try:
        lat, lng = float(latitude), float(longitude)
    except (TypeError, ValueError):
        raise ValidationError("Both latitude and longitude must be numbers") from None
    if not valid_coordinates(lat, lng):
        raise ValidationError("Coordinates out of range")
    return lat, lng


def create_report(
    engine: Engine,
    user_id: int,
    *,
    title: str,
    description: str,
    category: str,
    severity: str = "medium",
    latitude: float | None = None,
    longitude: float | None = None,
    location_name: str = "",
    address: str = "",
    city: str = "",
) -> dict:
    """Persist a ``pending`` report and bump the creator's report counter.

    No points are awarded here; the creator is paid on verification.
    """
    title = _required(title, "Title")
    description = _required(description, "Description")
    category = _required(category, "Category").lower()
    if category not in CATEGORIES:
        raise ValidationError(f"Invalid category: {category}")
    severity = (severity or "medium").lower()
    if severity not in SEVERITIES:
        raise ValidationError(f"Invalid severity: {severity}")
    lat, lng = _coordinates(latitude, longitude)

    with get_session(engine) as session:
        if session.get(User, user_id) is None:
            raise NotFoundError("User not found")
        report = IncidentReport(
            user_id=user_id,
            title=title,
            description=description,
            category=category,
            severity=severity,
            latitude=lat,
            longitude=lng,
            location_name=location_name or "",
            address=address or "",
            city=city or "",
            status=ReportStatus.PENDING.value,
            is_verified=False,
            upvotes=0,
            downvotes=0,
        )
        session.add(report)
        session.execute(
            update(User)
            .where(User.id == user_id)
            .values(total_reports=User.total_reports + 1)
        )
        session.flush()
        data = serialize_report(report)

    logger.info("Report %d (%s) created by user %d", data["id"], category, user_id)
    return data


# ---------------------------------------------------------------------------
# Votes
# ---------------------------------------------------------------------------
_COUNTERS = {
    VoteDirection.UP: IncidentReport.upvotes,
    VoteDirection.DOWN: IncidentReport.downvotes,
}


def _bump(session: Session, report_id: int, direction: VoteDirection, delta: int) -> None:
    column = _COUNTERS[direction]
    session.execute(
        update(IncidentReport)
        .where(IncidentReport.id == report_id)
        .values({column: column + delta})
    )


def toggle_vote(
    engine: Engine,
    report_id: int,
    user_id: int,
    direction: VoteDirection | str,
) -> VoteResult:
    """Apply one vote click.

    Same direction again removes the vote; the other direction switches it.
    Adding or switching earns the voter points once per direction per report.
    """
    direction = VoteDirection(direction)

    with get_session(engine) as session:
        report = session.get(IncidentReport, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        title = report.title

        existing = session.get(ReportVote, (report_id, user_id))
        if existing is None:
            session.add(ReportVote(report_id=report_id, user_id=user_id, direction=direction.value))
            _bump(session, report_id, direction, +1)
            user_vote: str | None = direction.value
        elif existing.direction == direction.value:
            session.delete(existing)
            _bump(session, report_id, direction, -1)
            user_vote = None
        else:
            _bump(session, report_id, VoteDirection(existing.direction), -1)
            existing.direction = direction.value
            _bump(session, report_id, direction, +1)
            user_vote = direction.value

        session.flush()
        counts = session.execute(
            select(IncidentReport.upvotes, IncidentReport.downvotes)
            .where(IncidentReport.id == report_id)
        ).one()

    result = VoteResult(
        upvotes=counts.upvotes,
        downvotes=counts.downvotes,
        user_vote=user_vote,
        new_badges=[],
    )
    if user_vote is None:
        return result

    award = try_award(
        engine,
        user_id,
        VOTE_POINTS,
        PointsAction.VOTE,
        f"{direction.value.capitalize()}voted report: {title}",
        report_id,
        idempotency_key=vote_key(report_id, user_id, direction.value),
    )
    result.points_awarded, result.new_badges = _award_fields(award)
    return result


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
def add_comment(engine: Engine, report_id: int, user_id: int, content: str | None) -> CommentResult:
    content = _required(content, "Comment content")

    with get_session(engine) as session:
        report = session.get(IncidentReport, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        author = session.get(User, user_id)
        if author is None:
            raise NotFoundError("User not found")
        title = report.title

        comment = ReportComment(report_id=report_id, user_id=user_id, content=content)
        session.add(comment)
        session.flush()
        data = {
            "id": comment.id,
            "reportId": report_id,
            "userId": user_id,
            "username": author.username,
            "content": comment.content,
            "createdAt": comment.created_at.isoformat(),
        }

    award = try_award(
        engine,
        user_id,
        COMMENT_POINTS,
        PointsAction.COMMENT,
        f"Commented on report: {title}",
        report_id,
    )
    points, badges = _award_fields(award)
    return CommentResult(comment=data, points_awarded=points, new_badges=badges)
