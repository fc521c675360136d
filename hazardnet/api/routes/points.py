"""
hazardnet.api.routes.points — Points awards, snapshots and leaderboard
=======================================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from hazardnet.api.deps import get_config, get_current_user, get_engine
from hazardnet.config import HazardNetConfig
from hazardnet.errors import ValidationError
from hazardnet.services import points_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["points"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ManualAward(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int | None = Field(None, alias="userId")
    points: int | None = None
    action: str | None = None
    description: str = ""
    report_id: int | None = Field(None, alias="reportId")


@router.post("/points/award")
def award_points(
    body: ManualAward,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Internal manual award; any authenticated caller may use it."""
    if body.user_id is None or body.points is None or not body.action:
        raise ValidationError("userId, points and action are required")

    result = points_service.award_points(
        engine,
        body.user_id,
        body.points,
        body.action,
        body.description,
        body.report_id,
    )
    logger.info(
        "Manual award of %d %s points to user %d by user %d",
        body.points, body.action, body.user_id, user["id"],
    )
    return {
        "success": True,
        "data": {
            "userId": result.user_id,
            "points": result.total_points,
            "pointsAwarded": result.points_awarded,
            "badges": result.badges,
            "newBadges": result.new_badges,
        },
    }


@router.get("/points/user/{user_id}")
def user_points(user_id: int, engine=Depends(get_engine)):
    return {"success": True, "data": points_service.get_user_points(engine, user_id)}


@router.get("/leaderboard")
def leaderboard(
    period: str = Query("all-time"),
    limit: int | None = Query(None, ge=1, le=100),
    engine=Depends(get_engine),
    cfg: HazardNetConfig = Depends(get_config),
):
    data = points_service.get_leaderboard(engine, period, limit or cfg.leaderboard_limit)
    return {"success": True, "period": period, "data": data}
