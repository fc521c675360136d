"""
hazardnet.api.routes.admin — Dashboard, moderation and mass alerts (admin JWT)
===============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from hazardnet.api.deps import get_config, get_current_admin, get_engine, get_manager
from hazardnet.config import HazardNetConfig
from hazardnet.services import alert_service
from hazardnet.services.realtime import ConnectionManager

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class MassAlertRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    report_id: int | None = Field(None, alias="reportId")
    radius: float | None = None  # metres
    message: str | None = None


class RejectRequest(BaseModel):
    reason: str | None = None


@router.get("/stats")
def dashboard_stats(
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return {"success": True, "data": alert_service.get_dashboard_stats(engine)}


@router.post("/alerts")
async def send_mass_alert(
    body: MassAlertRequest,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
    cfg: HazardNetConfig = Depends(get_config),
    hub: ConnectionManager = Depends(get_manager),
):
    result = await alert_service.send_mass_alert(
        engine,
        hub,
        admin_id=admin["id"],
        report_id=body.report_id,
        radius_m=body.radius,
        message=body.message,
        batch_size=cfg.fanout_batch_size,
    )
    return {
        "success": True,
        "message": (
            f"Alert sent to {result.users_notified} users "
            f"within {result.radius_km:g}km radius"
        ),
        "data": {
            "reportId": result.report_id,
            "usersNotified": result.users_notified,
            "totalUsersInRadius": result.total_users_in_radius,
            "radius": result.radius_km,
        },
    }


@router.put("/reports/{report_id}/verify")
def verify_report(
    report_id: int,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    result = alert_service.verify_report(engine, report_id, admin["id"])
    return {
        "success": True,
        "message": "Report verified successfully",
        "data": result.report,
        "pointsAwarded": result.points_awarded,
        "newBadges": result.new_badges,
    }


@router.put("/reports/{report_id}/reject")
def reject_report(
    report_id: int,
    body: RejectRequest | None = None,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    reason = body.reason if body else None
    report = alert_service.reject_report(engine, report_id, admin["id"], reason)
    return {"success": True, "message": "Report rejected", "data": report}
