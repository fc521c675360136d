"""
hazardnet.api.routes.users — Per-user activity trail (self or admin)
=====================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from hazardnet.api.deps import get_current_user, get_engine
from hazardnet.database.models import UserRole
from hazardnet.errors import ForbiddenError
from hazardnet.services import alert_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}/activity")
def user_activity(
    user_id: int,
    limit: int = Query(alert_service.ACTIVITY_LIMIT, ge=1, le=100),
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    if user["id"] != user_id and user["role"] != UserRole.ADMIN.value:
        raise ForbiddenError("Not authorized to view this activity")

    entries = alert_service.get_user_activity(engine, user_id, limit)
    return {"success": True, "count": len(entries), "data": entries}
