# seogen_receiver/db.py
"""
SEOgen Receiver - Database Layer

Synchronous PostgreSQL connection pooling via psycopg3 + psycopg_pool.
Request handlers run in FastAPI's threadpool, so a blocking pool fits.

Implements:
- Exponential backoff retry on pool open
- Structured logging of DSN host/port/dbname/user (never the password)
- Schema bootstrap for content_items, import_locks and receiver_options
"""

from __future__ import annotations

import random
import time
from typing import Optional
from urllib.parse import urlparse

from loguru import logger
from psycopg_pool import ConnectionPool

from . import __version__

MAX_RETRY_ATTEMPTS = 4
BASE_DELAY_SECONDS = 1.0

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS content_items (
    id            BIGSERIAL PRIMARY KEY,
    canonical_key TEXT NOT NULL DEFAULT '',
    local_key     TEXT NOT NULL DEFAULT '',
    title         TEXT NOT NULL DEFAULT '',
    slug          TEXT NOT NULL DEFAULT '',
    page_mode     TEXT NOT NULL DEFAULT 'service_city',
    status        TEXT NOT NULL DEFAULT 'publish',
    payload       JSONB NOT NULL DEFAULT '{}'::jsonb,
    metadata      JSONB NOT NULL DEFAULT '{}'::jsonb,
    job_id        TEXT NOT NULL DEFAULT '',
    item_index    INTEGER NOT NULL DEFAULT 0,
    imported_via  TEXT NOT NULL DEFAULT '',
    imported_at   TIMESTAMPTZ,
    modified_at   TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS content_items_canonical_key_idx
    ON content_items (canonical_key) WHERE status <> 'trash';

CREATE INDEX IF NOT EXISTS content_items_local_key_idx
    ON content_items (local_key) WHERE status <> 'trash';

CREATE TABLE IF NOT EXISTS import_locks (
    lock_key   TEXT PRIMARY KEY,
    owner      TEXT NOT NULL,
    expires_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS receiver_options (
    name       TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""


def _parse_dsn_for_logging(dsn: str) -> dict[str, str | None]:
    """Parse DSN and extract loggable components (no password)."""
    parsed = urlparse(dsn)
    return {
        "host": parsed.hostname,
        "port": str(parsed.port) if parsed.port else "5432",
        "dbname": parsed.path.lstrip("/") if parsed.path else None,
        "user": parsed.username,
    }


def open_pool(dsn: str, min_size: int = 1, max_size: int = 10) -> ConnectionPool:
    """
    Open a connection pool, retrying with exponential backoff.

    Raises:
        RuntimeError: If every attempt fails
    """
    dsn_info = _parse_dsn_for_logging(dsn)
    logger.info(
        "Database connection parameters host={host} port={port} dbname={dbname} user={user}",
        **dsn_info,
    )

    safe_version = __version__.replace(".", "_")
    last_error: Exception | None = None

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        pool: Optional[ConnectionPool] = None
        try:
            pool = ConnectionPool(
                dsn,
                min_size=min_size,
                max_size=max_size,
                kwargs={"application_name": f"seogen_receiver_v{safe_version}"},
                open=False,
            )
            pool.open(wait=True, timeout=10.0)
            logger.info(f"Database pool opened (attempt {attempt})")
            return pool
        except Exception as e:
            last_error = e
            if pool is not None:
                pool.close()
            logger.warning(f"DB pool open attempt {attempt} failed: {type(e).__name__}: {e}")
            if attempt < MAX_RETRY_ATTEMPTS:
                delay = BASE_DELAY_SECONDS * (2 ** (attempt - 1))
                time.sleep(delay + random.uniform(0, delay * 0.3))

    raise RuntimeError(
        f"Failed to open database pool after {MAX_RETRY_ATTEMPTS} attempts: {last_error}"
    )


def close_pool(pool: Optional[ConnectionPool]) -> None:
    if pool is not None:
        pool.close()
        logger.info("Database pool closed")


def ensure_schema(pool: ConnectionPool) -> None:
    """Create receiver tables if missing. Safe to run repeatedly."""
    with pool.connection() as conn:
        conn.execute(SCHEMA_SQL)
    logger.info("Receiver schema ensured")
