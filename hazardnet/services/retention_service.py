"""
hazardnet.services.retention_service — Notification Expiry
===========================================================

Notifications expire 30 days after ``created_at`` regardless of read state.
Expired rows are not filtered on read; this job removes them.

**Deletion is batched** so the purge never holds long row locks on a
table that fan-out writes into.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import Engine, delete, select

from hazardnet.constants import NOTIFICATION_TTL_SECONDS
from hazardnet.database.engine import get_session, run_db
from hazardnet.database.models import Notification

logger = logging.getLogger(__name__)

# How many rows to delete in each batch
BATCH_SIZE = 5_000


def purge_expired_notifications(
    engine: Engine,
    ttl_seconds: int = NOTIFICATION_TTL_SECONDS,
    *,
    now: datetime | None = None,
    batch_size: int = BATCH_SIZE,
) -> int:
    """Delete notifications created more than *ttl_seconds* ago; returns the count."""
    cutoff = (now or datetime.now(UTC)) - timedelta(seconds=ttl_seconds)
    deleted = 0

    while True:
        with get_session(engine) as session:
            ids = session.scalars(
                select(Notification.id)
                .where(Notification.created_at < cutoff)
                .limit(batch_size)
            ).all()
            if not ids:
                break

            result = session.execute(delete(Notification).where(Notification.id.in_(ids)))
            deleted += result.rowcount or 0

    if deleted:
        logger.info(
            "Retention: purged %d expired notifications (cutoff=%s)",
            deleted, cutoff.isoformat(),
        )
    return deleted


async def retention_loop(engine: Engine, interval_seconds: float) -> None:
    """Run the purge forever; a failed pass is logged and retried next tick."""
    while True:
        try:
            await run_db(purge_expired_notifications, engine)
        except Exception:
            logger.exception("Retention purge failed")
        await asyncio.sleep(interval_seconds)
