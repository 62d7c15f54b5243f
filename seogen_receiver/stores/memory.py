"""
SEOgen Receiver - In-Memory Content Store

Thread-safe store used when DATABASE_URL is not set, and by the test suite.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .base import (
    STATUS_TRASH,
    ContentDraft,
    ContentItem,
    ContentNotFoundError,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryContentStore:
    """Dict-backed content store."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._items: Dict[int, ContentItem] = {}
        self._ids = itertools.count(1)
        self._mutex = threading.RLock()

    def find_by_canonical_key(self, canonical_key: str) -> Optional[int]:
        with self._mutex:
            for item in self._items.values():
                if item.is_live and item.canonical_key == canonical_key:
                    return item.id
        return None

    def create(self, draft: ContentDraft) -> int:
        now = self._clock()
        with self._mutex:
            content_id = next(self._ids)
            self._items[content_id] = ContentItem(
                id=content_id,
                canonical_key=draft.canonical_key,
                title=draft.title,
                slug=draft.slug,
                page_mode=draft.page_mode,
                status=draft.status,
                payload=dict(draft.payload),
                metadata=dict(draft.metadata),
                job_id=draft.job_id,
                item_index=draft.item_index,
                imported_via=draft.imported_via,
                imported_at=now,
                modified_at=now,
            )
        return content_id

    def seed(self, item: ContentItem) -> ContentItem:
        """Insert a pre-built item (legacy data, fixtures) keeping its id."""
        with self._mutex:
            self._items[item.id] = item
            self._ids = itertools.count(max(self._items) + 1)
        return item

    def trash(self, content_id: int) -> None:
        with self._mutex:
            item = self._require(content_id)
            self._items[content_id] = replace(item, status=STATUS_TRASH, modified_at=self._clock())

    def last_modified(self, content_id: int) -> datetime:
        with self._mutex:
            return self._require(content_id).modified_at

    def get(self, content_id: int) -> Optional[ContentItem]:
        with self._mutex:
            return self._items.get(content_id)

    def list_live(self) -> List[ContentItem]:
        with self._mutex:
            return [item for _, item in sorted(self._items.items()) if item.is_live]

    def all_items(self) -> List[ContentItem]:
        with self._mutex:
            return [item for _, item in sorted(self._items.items())]

    def _require(self, content_id: int) -> ContentItem:
        item = self._items.get(content_id)
        if item is None:
            raise ContentNotFoundError(f"Content item {content_id} not found")
        return item
