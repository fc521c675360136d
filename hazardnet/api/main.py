"""
hazardnet.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn hazardnet.api.main:app --reload --port 8000
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from hazardnet.api.deps import get_config, get_engine, get_manager  # noqa: E402
from hazardnet.api.routes.admin import router as admin_router  # noqa: E402
from hazardnet.api.routes.notifications import router as notifications_router  # noqa: E402
from hazardnet.api.routes.points import router as points_router  # noqa: E402
from hazardnet.api.routes.preferences import router as preferences_router  # noqa: E402
from hazardnet.api.routes.realtime import router as realtime_router  # noqa: E402
from hazardnet.api.routes.reports import router as reports_router  # noqa: E402
from hazardnet.api.routes.users import router as users_router  # noqa: E402
from hazardnet.errors import HazardNetError  # noqa: E402
from hazardnet.services.retention_service import retention_loop  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the engine, run the retention job."""
    engine = get_engine()
    cfg = get_config()
    retention = asyncio.create_task(
        retention_loop(engine, cfg.retention_interval_minutes * 60)
    )
    logger.info("%s API started — engine ready (%s)", cfg.app_name, engine.url.database)
    yield
    retention.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await retention
    await get_manager().drain()
    logger.info("%s API shutting down", cfg.app_name)


app = FastAPI(
    title="HazardNet API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error envelope: {"success": false, "message": ...}
# ---------------------------------------------------------------------------
@app.exception_handler(HazardNetError)
async def _domain_error(request: Request, exc: HazardNetError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


@app.exception_handler(HTTPException)
async def _http_error(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def _request_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        where = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{where}: {first.get('msg')}" if where else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "message": message})


# Mount routers
app.include_router(admin_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(points_router, prefix="/api")
app.include_router(preferences_router, prefix="/api")
app.include_router(reports_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(realtime_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
