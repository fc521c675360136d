"""
HazardNet — Community Hazard Reporting Backend
================================================
Citizens report hazards with a location, neighbours vote and comment,
admins verify reports and broadcast alerts to everyone nearby.  A points
and badge layer rewards people who keep the map accurate.

Package layout::

    hazardnet/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Categories, point values, TTLs
    ├── errors.py          # Domain exception taxonomy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # All ORM models
    ├── engine/
    │   ├── badges.py      # Badge threshold evaluation (pure)
    │   ├── points.py      # PointsAction values + AwardResult
    │   └── geo.py         # Haversine distance + bounding boxes
    ├── services/
    │   ├── points_service.py        # Ledger + badge persistence, leaderboard
    │   ├── notification_service.py  # Per-user notification store
    │   ├── realtime.py              # WebSocket room fan-out
    │   ├── alert_service.py         # Alert dispatch orchestrator
    │   ├── report_service.py        # Report creation, votes, comments
    │   ├── preferences_service.py   # Notification preferences
    │   └── retention_service.py     # Notification expiry purge
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine, JWT auth dependencies
        └── routes/        # REST + WebSocket endpoints
"""

__version__ = "0.1.0"
