"""
hazardnet.services.alert_service — Alert Dispatch Orchestrator
===============================================================

Coordinates the report flows:

* **Report created fan-out** — notify every user except the creator, push
  ``new_alert`` to each recipient's room, then one ``alert_broadcast`` to
  all sessions for map refresh.
* **Admin mass alert** — users of role ``user`` inside a radius around the
  report, minus those whose preferences opt out of the category.
* **Moderation** — verify or reject; verification pays the creator a
  composite points award and re-notifies nobody.  Every admin action
  lands in the activity log, which also feeds the dashboard.

Notifications are written in batches; each ``new_alert`` is emitted only
after the batch holding its notification committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from hazardnet.constants import ALERT_EMOJI, CATEGORIES, DEFAULT_ALERT_RADIUS_M
from hazardnet.database.engine import get_session, run_db
from hazardnet.database.models import (
    ActivityLog,
    IncidentReport,
    Notification,
    ReportStatus,
    User,
    UserRole,
)
from hazardnet.engine.geo import bounding_box, distance_m
from hazardnet.errors import NotFoundError, ValidationError
from hazardnet.services.notification_service import NotificationDraft, create_notifications
from hazardnet.services.points_service import award_report_verification
from hazardnet.services.preferences_service import accepts_alert
from hazardnet.services.report_service import serialize_report

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

    from hazardnet.services.realtime import ConnectionManager

logger = logging.getLogger(__name__)

ADMIN_SENDER = "Admin"

# Accounts created inside this window count as active on the dashboard
ACTIVE_USER_WINDOW = timedelta(days=30)
ACTIVITY_LIMIT = 10


@dataclass(slots=True)
class MassAlertResult:
    report_id: int
    users_notified: int
    total_users_in_radius: int
    radius_m: float

    @property
    def radius_km(self) -> float:
        return round(self.radius_m / 1000, 2)


@dataclass(slots=True)
class VerificationResult:
    report: dict
    points_awarded: int | None
    new_badges: list[str] | None


@dataclass(slots=True)
class _Dispatch:
    """Everything the async half needs once the sync DB half is done."""

    report_id: int
    drafts: list[NotificationDraft]
    created_by: str
    broadcast: dict | None = None
    total_candidates: int = 0


def alert_payload(notification: Notification, created_by: str) -> dict:
    """``new_alert`` event body for one persisted notification."""
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "category": notification.category,
        "severity": notification.severity,
        "location": notification.location,
        "createdBy": created_by,
        "createdAt": notification.created_at.isoformat() if notification.created_at else None,
        "reportId": notification.report_id,
    }


def _emit_alerts(
    manager: ConnectionManager,
    notifications: list[Notification],
    created_by: str,
) -> int:
    delivered = 0
    for notification in notifications:
        delivered += manager.emit_to_user(
            notification.user_id, "new_alert", alert_payload(notification, created_by),
        )
    return delivered


def _log_activity(session: Session, admin_id: int, action: str, details: str,
                  report_id: int | None = None, metadata: dict | None = None) -> None:
    session.add(ActivityLog(
        user_id=admin_id,
        action=action,
        details=details,
        related_report_id=report_id,
        metadata_=metadata,
    ))


# ---------------------------------------------------------------------------
# Report created fan-out
# ---------------------------------------------------------------------------
def _prepare_report_created(engine: Engine, report_id: int) -> _Dispatch:
    with get_session(engine) as session:
        report = session.get(IncidentReport, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        creator = report.creator.username
        category = report.category
        location = report.location_label

        recipient_ids = session.scalars(
            select(User.id).where(User.id != report.user_id).order_by(User.id)
        ).all()

        title = f"{ALERT_EMOJI} New {category.upper()} Alert!"
        message = f"{creator} reported a {report.severity} severity {category} at {location}"
        drafts = [
            NotificationDraft(
                user_id=uid,
                report_id=report.id,
                created_by_user_id=report.user_id,
                title=title,
                message=message,
                category=category,
                severity=report.severity,
                location=location,
            )
            for uid in recipient_ids
        ]
        broadcast = {
            "reportId": report.id,
            "title": report.title,
            "category": category,
            "severity": report.severity,
            "location": (
                {"lat": report.latitude, "lng": report.longitude}
                if report.has_location else None
            ),
            "locationName": location,
            "createdBy": creator,
        }
    return _Dispatch(report_id=report_id, drafts=drafts, created_by=creator, broadcast=broadcast)


async def dispatch_report_created(
    engine: Engine,
    report_id: int,
    manager: ConnectionManager,
    *,
    batch_size: int = 500,
) -> int:
    """Notify everyone but the creator; returns the number of notifications written."""
    dispatch = await run_db(_prepare_report_created, engine, report_id)
    notifications = await run_db(create_notifications, engine, dispatch.drafts, batch_size)
    delivered = _emit_alerts(manager, notifications, dispatch.created_by)
    manager.broadcast_all("alert_broadcast", dispatch.broadcast)
    logger.info(
        "Report %d fan-out: %d notifications, %d live sessions",
        report_id, len(notifications), delivered,
    )
    return len(notifications)


# ---------------------------------------------------------------------------
# Admin mass alert
# ---------------------------------------------------------------------------
def find_users_in_radius(session: Session, lat: float, lng: float, radius_m: float) -> list[User]:
    """``user``-role accounts within *radius_m* metres, nearest first."""
    box = bounding_box(lat, lng, radius_m)
    candidates = session.scalars(
        select(User).where(
            User.role == UserRole.USER.value,
            User.latitude.is_not(None),
            User.longitude.is_not(None),
            User.latitude.between(box.min_lat, box.max_lat),
            User.longitude.between(box.min_lng, box.max_lng),
        )
    ).all()
    scored = [
        (distance_m(lat, lng, u.latitude, u.longitude), u.id, u)
        for u in candidates
    ]
    return [u for dist, _, u in sorted(scored, key=lambda t: (t[0], t[1])) if dist <= radius_m]


def _radius(radius_m) -> float:
    if radius_m is None:
        return float(DEFAULT_ALERT_RADIUS_M)
    try:
        value = float(radius_m)
    except (TypeError, ValueError):
        raise ValidationError("Radius must be a number of metres") from None
    if value <= 0:
        raise ValidationError("Radius must be positive")
    return value


def _prepare_mass_alert(
    engine: Engine,
    admin_id: int,
    report_id: int | None,
    radius_m: float,
    message: str | None,
) -> _Dispatch:
    if report_id is None:
        raise ValidationError("Report ID is required")

    with get_session(engine) as session:
        report = session.get(IncidentReport, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        if not report.has_location:
            raise ValidationError("Report location is required")

        in_radius = find_users_in_radius(session, report.latitude, report.longitude, radius_m)
        recipients = [u for u in in_radius if accepts_alert(u.notification_settings, report.category)]

        category = report.category.upper()
        location = report.location_label
        title = f"{ALERT_EMOJI} Verified {category} Alert"
        body = (message or "").strip() or (
            f"{ALERT_EMOJI} Admin Alert: {category} hazard verified at {location}"
        )
        drafts = [
            NotificationDraft(
                user_id=u.id,
                report_id=report.id,
                created_by_user_id=admin_id,
                title=title,
                message=body,
                category=report.category,
                severity=report.severity,
                location=location,
            )
            for u in recipients
        ]
    return _Dispatch(
        report_id=report_id,
        drafts=drafts,
        created_by=ADMIN_SENDER,
        total_candidates=len(in_radius),
    )


def _record_mass_alert(engine: Engine, admin_id: int, result: MassAlertResult) -> None:
    with get_session(engine) as session:
        _log_activity(
            session,
            admin_id,
            "mass_alert",
            f"Sent alert for report {result.report_id} to {result.users_notified} users",
            result.report_id,
            {
                "radius": result.radius_m,
                "usersNotified": result.users_notified,
                "totalUsersInRadius": result.total_users_in_radius,
            },
        )


async def send_mass_alert(
    engine: Engine,
    manager: ConnectionManager,
    *,
    admin_id: int,
    report_id: int | None,
    radius_m: float | None = None,
    message: str | None = None,
    batch_size: int = 500,
) -> MassAlertResult:
    """Notify nearby users who accept the report category.

    Raises
    ------
    ValidationError
        If *report_id* is missing, the report has no coordinates, or the
        radius is not a positive number.
    NotFoundError
        If the report does not exist.
    """
    radius = _radius(radius_m)
    dispatch = await run_db(_prepare_mass_alert, engine, admin_id, report_id, radius, message)
    notifications = await run_db(create_notifications, engine, dispatch.drafts, batch_size)
    _emit_alerts(manager, notifications, dispatch.created_by)

    result = MassAlertResult(
        report_id=dispatch.report_id,
        users_notified=len(notifications),
        total_users_in_radius=dispatch.total_candidates,
        radius_m=radius,
    )
    await run_db(_record_mass_alert, engine, admin_id, result)
    logger.info(
        "Mass alert for report %d: %d/%d users within %.0fm notified",
        result.report_id, result.users_notified, result.total_users_in_radius, radius,
    )
    return result


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------
def verify_report(engine: Engine, report_id: int, admin_id: int) -> VerificationResult:
    """Mark a pending or rejected report verified, then pay the creator.

    The status change commits before any award; award failures only null
    the points fields of the result.
    """
    with get_session(engine) as session:
        report = session.get(IncidentReport, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        if report.status == ReportStatus.VERIFIED.value:
            raise ValidationError("Report is already verified")
        if report.status not in (ReportStatus.PENDING.value, ReportStatus.REJECTED.value):
            raise ValidationError(f"Cannot verify a {report.status} report")

        report.status = ReportStatus.VERIFIED.value
        report.is_verified = True
        report.verified_by = admin_id
        report.verified_at = datetime.now(UTC)
        report.rejection_reason = None
        _log_activity(session, admin_id, "verify_report", f"Verified report: {report.title}", report.id)
        session.flush()

        creator_id = report.user_id
        title = report.title
        data = serialize_report(report)

    logger.info("Report %d verified by admin %d", report_id, admin_id)

    award = award_report_verification(
        engine, report_id=report_id, creator_id=creator_id, title=title,
    )
    if award is None:
        return VerificationResult(report=data, points_awarded=None, new_badges=None)
    return VerificationResult(
        report=data,
        points_awarded=award.points_awarded,
        new_badges=award.new_badges,
    )


def reject_report(engine: Engine, report_id: int, admin_id: int, reason: str | None = None) -> dict:
    """Mark a pending or verified report rejected; points already paid stay."""
    with get_session(engine) as session:
        report = session.get(IncidentReport, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        if report.status == ReportStatus.REJECTED.value:
            raise ValidationError("Report is already rejected")
        if report.status not in (ReportStatus.PENDING.value, ReportStatus.VERIFIED.value):
            raise ValidationError(f"Cannot reject a {report.status} report")

        report.status = ReportStatus.REJECTED.value
        report.is_verified = False
        report.rejection_reason = (reason or "").strip() or None
        _log_activity(
            session, admin_id, "reject_report", f"Rejected report: {report.title}", report.id,
            {"reason": report.rejection_reason},
        )
        session.flush()
        data = serialize_report(report)

    logger.info("Report %d rejected by admin %d", report_id, admin_id)
    return data


# ---------------------------------------------------------------------------
# Dashboard and audit trail
# ---------------------------------------------------------------------------
def _count(session: Session, model, *criteria) -> int:
    return session.scalar(select(func.count()).select_from(model).where(*criteria)) or 0


def _counts_by(session: Session, column) -> dict[str, int]:
    rows = session.execute(select(column, func.count()).group_by(column)).all()
    return {key: count for key, count in rows}


def get_dashboard_stats(engine: Engine, *, now: datetime | None = None) -> dict:
    """Report and user counts for the admin dashboard.

    "Today" starts at UTC midnight.  Status and category breakdowns list
    every known value, zero-filled.
    """
    now = now or datetime.now(UTC)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    with get_session(engine) as session:
        by_status = _counts_by(session, IncidentReport.status)
        by_category = _counts_by(session, IncidentReport.category)
        reports_today = _count(session, IncidentReport, IncidentReport.created_at >= midnight)
        active_users = _count(session, User, User.created_at >= now - ACTIVE_USER_WINDOW)
        total_users = _count(session, User, User.role == UserRole.USER.value)

    return {
        "totalReportsToday": reports_today,
        "pendingVerifications": by_status.get(ReportStatus.PENDING.value, 0),
        "verifiedHazards": by_status.get(ReportStatus.VERIFIED.value, 0),
        "activeUsers": active_users,
        "totalUsers": total_users,
        "reportsByStatus": {s.value: by_status.get(s.value, 0) for s in ReportStatus},
        "reportsByCategory": {c: by_category.get(c, 0) for c in CATEGORIES},
    }


def serialize_activity(entry: ActivityLog) -> dict:
    return {
        "id": entry.id,
        "userId": entry.user_id,
        "action": entry.action,
        "details": entry.details or "",
        "relatedReportId": entry.related_report_id,
        "metadata": entry.metadata_,
        "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
    }


def get_user_activity(engine: Engine, user_id: int, limit: int = ACTIVITY_LIMIT) -> list[dict]:
    """Most recent activity-log entries recorded for *user_id*, newest first."""
    with get_session(engine) as session:
        entries = session.scalars(
            select(ActivityLog)
            .where(ActivityLog.user_id == user_id)
            .order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
            .limit(limit)
        ).all()
        return [serialize_activity(e) for e in entries]
