"""
SEOgen Receiver - Content Store Contract

The content store is the key-addressable home of imported landing pages.
Items are soft-deleted ("trash"); only live items count for canonical key
lookups and duplicate scans.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

STATUS_PUBLISH = "publish"
STATUS_DRAFT = "draft"
STATUS_PENDING = "pending"
STATUS_TRASH = "trash"

LIVE_STATUSES = frozenset({STATUS_PUBLISH, STATUS_DRAFT, STATUS_PENDING})


class ContentStoreError(Exception):
    """Raised when the content store cannot complete an operation."""


class ContentNotFoundError(ContentStoreError):
    """Raised when an item id does not exist."""


@dataclass
class ContentDraft:
    """A new content item as built by the import coordinator."""

    canonical_key: str
    title: str
    slug: str
    page_mode: str
    payload: Dict[str, Any]
    job_id: str = ""
    item_index: int = 0
    imported_via: str = "rest_api"
    status: str = STATUS_PUBLISH
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ContentItem:
    """A stored content item."""

    id: int
    canonical_key: str
    title: str
    slug: str = ""
    page_mode: str = "service_city"
    status: str = STATUS_PUBLISH
    payload: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    # Key written by the page-template layer; predates canonical_key
    local_key: str = ""
    job_id: str = ""
    item_index: int = 0
    imported_via: str = ""
    imported_at: Optional[datetime] = None
    modified_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def dedupe_key(self) -> str:
        """Key used for duplicate grouping: local_key first, then canonical_key."""
        return (self.local_key or self.canonical_key or "").strip()

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

    @property
    def is_complete(self) -> bool:
        """True when the item has a title and a non-empty page payload."""
        return bool(self.title.strip()) and bool(self.payload)


class ContentStore(Protocol):
    """Operations the import pipeline needs from the content store."""

    def find_by_canonical_key(self, canonical_key: str) -> Optional[int]:
        """Id of a live item with this canonical key, or None."""
        ...

    def create(self, draft: ContentDraft) -> int:
        """Persist a new item and return its id. Raises ContentStoreError."""
        ...

    def trash(self, content_id: int) -> None:
        ...

    def last_modified(self, content_id: int) -> datetime:
        ...

    def get(self, content_id: int) -> Optional[ContentItem]:
        ...

    def list_live(self) -> List[ContentItem]:
        ...
