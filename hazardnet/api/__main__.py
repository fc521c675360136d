"""
hazardnet.api.__main__ — Entry point for ``python -m hazardnet.api``
=====================================================================

Wiring:
1. Load .env (secrets, DATABASE_URL).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Serve the FastAPI app with uvicorn (blocking).
"""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

from hazardnet.config import load_config
from hazardnet.database.engine import create_db_engine, init_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("hazardnet")


def main() -> None:
    """Bootstrap the schema and run the API server."""
    load_dotenv()

    cfg = load_config()
    logger.info("Starting %s on port %d", cfg.app_name, cfg.api_port)

    engine = create_db_engine()
    init_db(engine)
    engine.dispose()

    uvicorn.run("hazardnet.api.main:app", host="0.0.0.0", port=cfg.api_port, log_config=None)


if __name__ == "__main__":
    main()
