"""
hazardnet.api.routes.reports — Report creation, votes and comments
===================================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError

from hazardnet.api.deps import get_config, get_current_user, get_engine, get_manager
from hazardnet.config import HazardNetConfig
from hazardnet.database.engine import run_db
from hazardnet.database.models import VoteDirection
from hazardnet.services import alert_service, report_service
from hazardnet.services.realtime import ConnectionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ReportCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    description: str | None = None
    category: str | None = None
    severity: str = "medium"
    latitude: float | None = None
    longitude: float | None = None
    location_name: str = Field("", alias="locationName")
    address: str = ""
    city: str = ""


class CommentCreate(BaseModel):
    content: str | None = None


def _vote_response(result: report_service.VoteResult) -> dict:
    return {
        "success": True,
        "data": {
            "upvotes": result.upvotes,
            "downvotes": result.downvotes,
            "userVote": result.user_vote,
            "pointsAwarded": result.points_awarded,
            "newBadges": result.new_badges,
        },
    }


@router.post("", status_code=201)
async def create_report(
    body: ReportCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    cfg: HazardNetConfig = Depends(get_config),
    hub: ConnectionManager = Depends(get_manager),
):
    report = await run_db(
        report_service.create_report,
        engine,
        user["id"],
        title=body.title,
        description=body.description,
        category=body.category,
        severity=body.severity,
        latitude=body.latitude,
        longitude=body.longitude,
        location_name=body.location_name,
        address=body.address,
        city=body.city,
    )

    # The report is committed; a failed fan-out must not turn into a retry.
    try:
        await alert_service.dispatch_report_created(
            engine, report["id"], hub, batch_size=cfg.fanout_batch_size,
        )
    except SQLAlchemyError:
        logger.exception("Fan-out for report %d failed", report["id"])

    return {"success": True, "message": "Report created successfully", "data": report}


@router.post("/{report_id}/upvote")
def upvote(
    report_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return _vote_response(
        report_service.toggle_vote(engine, report_id, user["id"], VoteDirection.UP)
    )


@router.post("/{report_id}/downvote")
def downvote(
    report_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return _vote_response(
        report_service.toggle_vote(engine, report_id, user["id"], VoteDirection.DOWN)
    )


@router.post("/{report_id}/comments", status_code=201)
def add_comment(
    report_id: int,
    body: CommentCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    result = report_service.add_comment(engine, report_id, user["id"], body.content)
    return {
        "success": True,
        "data": result.comment,
        "pointsAwarded": result.points_awarded,
        "newBadges": result.new_badges,
    }
