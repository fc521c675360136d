"""
hazardnet.config — YAML Configuration Loader
=============================================

Reads ``config.yaml`` for **deployment** settings (display name, port,
background job cadence, fan-out batch size).  Gameplay values — point
awards, badge thresholds, notification TTL — are code constants in
:mod:`hazardnet.constants` and are deliberately not tunable here.

Usage::

    from hazardnet.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.app_name)          # "HazardNet"
    print(cfg.fanout_batch_size) # 500
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class HazardNetConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    app_name: str = "HazardNet"

    # HTTP
    api_port: int = 8000

    # Background jobs
    retention_interval_minutes: int = 60

    # Alert fan-out: notifications written per transaction
    fanout_batch_size: int = 500

    # Leaderboard default page length
    leaderboard_limit: int = 20


def _positive_int(raw: dict, key: str, default: int) -> int:
    value = raw.get(key, default)
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"config key {key!r} must be an integer, got {value!r}") from None
    if value <= 0:
        raise ValueError(f"config key {key!r} must be positive, got {value}")
    return value


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> HazardNetConfig:
    """Read *path* and return a :class:`HazardNetConfig` instance.

    A missing file is not fatal: the service runs on defaults and logs a
    warning so the omission is visible in deployment logs.

    Raises
    ------
    ValueError
        If a numeric key is not a positive integer.
    """
    config_path = Path(path)
    if not config_path.exists():
        logger.warning(
            "Configuration file not found: %s — using defaults "
            "(copy config.yaml.example → config.yaml to customise)",
            config_path.resolve(),
        )
        return HazardNetConfig()

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = HazardNetConfig()
    return HazardNetConfig(
        app_name=str(raw.get("app_name", defaults.app_name)),
        api_port=_positive_int(raw, "api_port", defaults.api_port),
        retention_interval_minutes=_positive_int(
            raw, "retention_interval_minutes", defaults.retention_interval_minutes,
        ),
        fanout_batch_size=_positive_int(
            raw, "fanout_batch_size", defaults.fanout_batch_size,
        ),
        leaderboard_limit=_positive_int(
            raw, "leaderboard_limit", defaults.leaderboard_limit,
        ),
    )
