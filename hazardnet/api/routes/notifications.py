"""
hazardnet.api.routes.notifications — Caller's notification inbox
=================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from hazardnet.api.deps import get_current_user, get_engine
from hazardnet.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    data, unread = notification_service.list_for_user(engine, user["id"])
    return {"success": True, "data": data, "unreadCount": unread}


@router.get("/unread-count")
def unread_count(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return {"success": True, "unreadCount": notification_service.unread_count(engine, user["id"])}


@router.patch("/mark-all-read")
def mark_all_read(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    modified = notification_service.mark_all_read(engine, user["id"])
    return {
        "success": True,
        "message": "All notifications marked as read",
        "modified": modified,
    }


@router.patch("/{notification_id}/read")
def mark_read(
    notification_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    data = notification_service.mark_read(engine, notification_id, user["id"])
    return {"success": True, "data": data}


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    notification_service.delete_notification(engine, notification_id, user["id"])
    return {"success": True, "message": "Notification deleted"}
