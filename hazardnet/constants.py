"""
hazardnet.constants — Shared Constants & Helpers
==================================================

Single source of truth for fixed product values.  Import from here
instead of duplicating literals in services and routers.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Report taxonomy
# ---------------------------------------------------------------------------
CATEGORIES: tuple[str, ...] = (
    "accident",
    "fire",
    "flood",
    "crime",
    "pollution",
    "earthquake",
    "cyclone",
    "other",
)

SEVERITIES: tuple[str, ...] = ("low", "medium", "high", "critical")

NOTIFICATION_METHODS: tuple[str, ...] = ("push", "email", "sms", "all")


# ---------------------------------------------------------------------------
# Notification store
# ---------------------------------------------------------------------------
NOTIFICATION_TTL_SECONDS = 2_592_000  # 30 days
NOTIFICATION_LIST_LIMIT = 50


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------
DEFAULT_ALERT_RADIUS_M = 10_000
ALERT_EMOJI = "\U0001f6a8"  # 🚨


# ---------------------------------------------------------------------------
# Real-time rooms
# ---------------------------------------------------------------------------
def user_room(user_id: int) -> str:
    """Name of the logical channel every session of *user_id* joins."""
    return f"user_{user_id}"
