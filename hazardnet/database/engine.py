"""
hazardnet.database.engine — Database Connection & Async Helper
===============================================================

The API runs on an ``asyncio`` event loop while SQLAlchemy + psycopg2 is
synchronous.  Calling the DB directly from a coroutine would stall every
open WebSocket until the query returns, so async code hands sync service
functions to a worker thread:

    1. A request or socket event arrives (async world).
    2. The handler calls ``await run_db(some_function, engine, arg1)``.
    3. ``run_db`` ships the synchronous function to the default thread pool
       via ``asyncio.to_thread()``.
    4. The DB work happens on a background thread; the loop keeps serving
       sockets and emitting fan-out events.

Usage::

    from hazardnet.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    # Inside an async route:
    result = await run_db(points_service.award_points, engine, user_id, 5, "comment")
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from hazardnet.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine() -> Engine:
    """Build a SQLAlchemy :class:`Engine` from the ``DATABASE_URL`` env var.

    Pool sizing targets a single API process:
    * ``pool_size=10`` — fan-out batches and request handlers share it.
    * ``max_overflow=10`` — burst headroom during mass alerts.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    Raises
    ------
    RuntimeError
        If ``DATABASE_URL`` is not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    engine = create_engine(
        url,
        echo=False,
        pool_size=10,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`hazardnet.database.models`.

    Safe on every startup.  Production schemas are managed by Alembic
    (``alembic upgrade head``); this is the dev/test fallback.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine, *, expire_on_commit: bool = True):
    """Yield a :class:`Session` that commits on success and rolls back
    on exception.

    Usage::

        with get_session(engine) as session:
            session.add(User(username="ana"))
            # commit happens automatically on block exit
    """
    session = Session(engine, expire_on_commit=expire_on_commit)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Every DB call made from a coroutine goes through this wrapper::

        notifications = await run_db(create_notifications, engine, rows)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
