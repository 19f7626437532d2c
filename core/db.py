# app/core/db.py
"""
Database Connection Utilities
"""
from __future__ import annotations
from sqlalchemy import create_engine, event
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
import logging

logger = logging.getLogger(__name__)


def get_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for ``url``.

    SQLite connections are shared across Streamlit's script threads, and an
    in-memory database keeps a single connection so every session sees the
    same tables.
    """
    kwargs = {"echo": echo, "future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True

    engine = create_engine(url, **kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def init_db(engine: Engine) -> None:
    """Verify the engine answers before installers run."""
    with engine.connect() as conn:
        conn.execute(sa_text("SELECT 1"))
    logger.info(f"Database ready: {engine.url.render_as_string(hide_password=True)}")

