"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of hazardnet.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite has no JSONB, so the type renders as TEXT and BigInteger as
# INTEGER (needed for autoincrement primary keys).
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from hazardnet.database.models import Base, IncidentReport, User  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB and BigInteger (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all HazardNet tables.

    StaticPool keeps one shared connection so the worker threads used by
    ``run_db`` see the same in-memory database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def make_user(db_engine):
    """Factory: insert a user and return its id."""

    def _make(username: str, **fields) -> int:
        with Session(db_engine) as session:
            user = User(username=username, **fields)
            session.add(user)
            session.commit()
            return user.id

    return _make


@pytest.fixture
def make_report(db_engine):
    """Factory: insert a report owned by *user_id* and return its id."""

    def _make(user_id: int, **fields) -> int:
        values = {
            "title": "Flooded underpass",
            "description": "Water over the kerb",
            "category": "flood",
            "severity": "high",
            "location_name": "Main St underpass",
            "latitude": 12.9716,
            "longitude": 77.5946,
        }
        values.update(fields)
        with Session(db_engine) as session:
            report = IncidentReport(user_id=user_id, **values)
            session.add(report)
            session.commit()
            return report.id

    return _make


def make_token(user_id: int, role: str = "user", username: str = "tester") -> str:
    """Create a signed bearer token for *user_id*."""
    import jwt

    from hazardnet.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": str(user_id), "username": username, "role": role},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth(user_id: int, role: str = "user") -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest.fixture
def client(db_engine):
    """TestClient bound to the SQLite engine; lifespan (retention loop) is not run."""
    from fastapi.testclient import TestClient

    from hazardnet.api.deps import get_engine
    from hazardnet.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
