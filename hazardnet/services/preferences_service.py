"""
hazardnet.services.preferences_service — Notification Preferences
==================================================================

Stored settings are sparse: only keys a user changed are persisted, and
the effective view merges them over :data:`DEFAULT_SETTINGS`.  An unset
category therefore counts as opted in.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from hazardnet.constants import CATEGORIES, NOTIFICATION_METHODS
from hazardnet.database.engine import get_session
from hazardnet.database.models import User
from hazardnet.errors import NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: dict[str, Any] = {
    **{category: True for category in CATEGORIES},
    "method": "push",
    "enabled": True,
}


def effective_settings(stored: dict | None) -> dict[str, Any]:
    return {**DEFAULT_SETTINGS, **(stored or {})}


def accepts_alert(stored: dict | None, category: str) -> bool:
    """False when alerts are disabled globally or for *category* explicitly."""
    stored = stored or {}
    if stored.get("enabled") is False:
        return False
    return stored.get(category) is not False


def validate_settings(changes: dict) -> dict[str, Any]:
    if not isinstance(changes, dict):
        raise ValidationError("Preferences must be an object")

    cleaned: dict[str, Any] = {}
    for key, value in changes.items():
        if key in CATEGORIES or key == "enabled":
            if not isinstance(value, bool):
                raise ValidationError(f"Preference {key!r} must be true or false")
        elif key == "method":
            if value not in NOTIFICATION_METHODS:
                valid = ", ".join(NOTIFICATION_METHODS)
                raise ValidationError(f"Invalid method: {value}. Valid methods are: {valid}")
        else:
            raise ValidationError(f"Unknown preference: {key}")
        cleaned[key] = value
    return cleaned


def get_preferences(engine: Engine, user_id: int) -> dict[str, Any]:
    with get_session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return effective_settings(user.notification_settings)


def update_preferences(engine: Engine, user_id: int, changes: dict) -> dict[str, Any]:
    """Merge *changes* into the stored settings and return the effective view."""
    cleaned = validate_settings(changes)
    with get_session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        # Reassign so the JSONB column is flagged dirty.
        user.notification_settings = {**(user.notification_settings or {}), **cleaned}
        merged = effective_settings(user.notification_settings)
    logger.info("User %d updated notification preferences: %s", user_id, sorted(cleaned))
    return merged
