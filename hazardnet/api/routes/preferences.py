"""
hazardnet.api.routes.preferences — Caller's notification preferences
=====================================================================
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from hazardnet.api.deps import get_current_user, get_engine
from hazardnet.services import preferences_service

router = APIRouter(prefix="/user/preferences", tags=["preferences"])


@router.get("")
def get_preferences(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return {"success": True, "data": preferences_service.get_preferences(engine, user["id"])}


@router.put("")
def update_preferences(
    changes: dict[str, Any] = Body(...),
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    data = preferences_service.update_preferences(engine, user["id"], changes)
    return {"success": True, "message": "Preferences updated", "data": data}
