"""
SEOgen Receiver - Postgres Stores

psycopg3 implementations of the content, lock and option stores. Each
operation checks a connection out of the pool; the pool commits on clean
exit and rolls back on error.

Tables are created by seogen_receiver.db.ensure_schema().
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from .base import (
    LIVE_STATUSES,
    STATUS_TRASH,
    ContentDraft,
    ContentItem,
    ContentNotFoundError,
    ContentStoreError,
)

logger = logging.getLogger(__name__)

_LIVE = list(LIVE_STATUSES)

_ITEM_COLUMNS = """
    id, canonical_key, local_key, title, slug, page_mode, status, payload,
    metadata, job_id, item_index, imported_via, imported_at, modified_at
"""


def _row_to_item(row: Dict[str, Any]) -> ContentItem:
    return ContentItem(
        id=int(row["id"]),
        canonical_key=row["canonical_key"],
        local_key=row["local_key"],
        title=row["title"],
        slug=row["slug"],
        page_mode=row["page_mode"],
        status=row["status"],
        payload=row["payload"] or {},
        metadata=row["metadata"] or {},
        job_id=row["job_id"],
        item_index=row["item_index"],
        imported_via=row["imported_via"],
        imported_at=row["imported_at"],
        modified_at=row["modified_at"],
    )


# =============================================================================
# Content store
# =============================================================================


class PostgresContentStore:
    """Content items in the content_items table."""

    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    def find_by_canonical_key(self, canonical_key: str) -> Optional[int]:
        with self._pool.connection() as conn:
            row = conn.execute(
                """
                SELECT id FROM content_items
                WHERE canonical_key = %s AND status = ANY(%s)
                ORDER BY id
                LIMIT 1
                """,
                (canonical_key, _LIVE),
            ).fetchone()
        return int(row[0]) if row else None

    def create(self, draft: ContentDraft) -> int:
        try:
            with self._pool.connection() as conn:
                row = conn.execute(
                    """
                    INSERT INTO content_items (
                        canonical_key, title, slug, page_mode, status, payload,
                        metadata, job_id, item_index, imported_via, imported_at,
                        modified_at
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, now(), now())
                    RETURNING id
                    """,
                    (
                        draft.canonical_key,
                        draft.title,
                        draft.slug,
                        draft.page_mode,
                        draft.status,
                        Jsonb(draft.payload),
                        Jsonb(draft.metadata),
                        draft.job_id,
                        draft.item_index,
                        draft.imported_via,
                    ),
                ).fetchone()
        except psycopg.Error as e:
            raise ContentStoreError(f"Failed to create content item: {e}") from e

        if row is None:
            raise ContentStoreError("Insert returned no id")
        return int(row[0])

    def trash(self, content_id: int) -> None:
        try:
            with self._pool.connection() as conn:
                cur = conn.execute(
                    "UPDATE content_items SET status = %s, modified_at = now() WHERE id = %s",
                    (STATUS_TRASH, content_id),
                )
                updated = cur.rowcount
        except psycopg.Error as e:
            raise ContentStoreError(f"Failed to trash content item {content_id}: {e}") from e

        if updated == 0:
            raise ContentNotFoundError(f"Content item {content_id} not found")

    def last_modified(self, content_id: int) -> datetime:
        with self._pool.connection() as conn:
            row = conn.execute(
                "SELECT modified_at FROM content_items WHERE id = %s", (content_id,)
            ).fetchone()
        if row is None:
            raise ContentNotFoundError(f"Content item {content_id} not found")
        return row[0]

    def get(self, content_id: int) -> Optional[ContentItem]:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_ITEM_COLUMNS} FROM content_items WHERE id = %s",
                    (content_id,),
                )
                row = cur.fetchone()
        return _row_to_item(row) if row else None

    def list_live(self) -> List[ContentItem]:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_ITEM_COLUMNS} FROM content_items "
                    "WHERE status = ANY(%s) ORDER BY id",
                    (_LIVE,),
                )
                rows = cur.fetchall()
        return [_row_to_item(row) for row in rows]


# =============================================================================
# Lock store
# =============================================================================


class PostgresLockStore:
    """
    Import locks in the import_locks table.

    set_if_absent is a single INSERT ... ON CONFLICT statement: the row is
    written when no lock exists or the existing one has expired, and the
    RETURNING clause yields a row only in that case.
    """

    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        with self._pool.connection() as conn:
            row = conn.execute(
                """
                INSERT INTO import_locks (lock_key, owner, expires_at)
                VALUES (%s, %s, now() + %s * interval '1 second')
                ON CONFLICT (lock_key) DO UPDATE
                    SET owner = EXCLUDED.owner, expires_at = EXCLUDED.expires_at
                    WHERE import_locks.expires_at <= now()
                RETURNING owner
                """,
                (key, value, ttl_seconds),
            ).fetchone()
        return row is not None

    def delete(self, key: str, expected_value: Optional[str] = None) -> None:
        with self._pool.connection() as conn:
            if expected_value is None:
                conn.execute("DELETE FROM import_locks WHERE lock_key = %s", (key,))
            else:
                conn.execute(
                    "DELETE FROM import_locks WHERE lock_key = %s AND owner = %s",
                    (key, expected_value),
                )


# =============================================================================
# Option store
# =============================================================================


class PostgresOptionStore:
    """Receiver options in the receiver_options table."""

    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    def get(self, name: str) -> Optional[str]:
        with self._pool.connection() as conn:
            row = conn.execute(
                "SELECT value FROM receiver_options WHERE name = %s", (name,)
            ).fetchone()
        return row[0] if row else None

    def set(self, name: str, value: str) -> None:
        with self._pool.connection() as conn:
            conn.execute(
                """
                INSERT INTO receiver_options (name, value, updated_at)
                VALUES (%s, %s, now())
                ON CONFLICT (name) DO UPDATE
                    SET value = EXCLUDED.value, updated_at = now()
                """,
                (name, value),
            )

    def add(self, name: str, value: str) -> str:
        with self._pool.connection() as conn:
            conn.execute(
                """
                INSERT INTO receiver_options (name, value) VALUES (%s, %s)
                ON CONFLICT (name) DO NOTHING
                """,
                (name, value),
            )
            row = conn.execute(
                "SELECT value FROM receiver_options WHERE name = %s", (name,)
            ).fetchone()
        return row[0] if row else value
