"""
SEOgen Receiver - Duplicate Reconciler

Repair tool for canonical keys that ended up with more than one live
content item (legacy data, or an import that outlived its lock TTL).

Within each duplicate group one item is kept and the rest are trashed
(soft delete). The keeper is the most recently modified content-complete
item; when no item in the group is complete, the most recently modified.

Usage:
    reconciler = DuplicateReconciler(store)
    preview = reconciler.cleanup(dry_run=True)   # no writes
    report = reconciler.cleanup(dry_run=False)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

from ..stores.base import ContentItem, ContentStore, ContentStoreError

logger = logging.getLogger(__name__)


@dataclass
class DuplicateDetail:
    """Plan (or outcome) for one duplicate group."""

    key: str
    title: str
    kept_id: int
    trashed_ids: List[int]
    duplicate_count: int
    failed_ids: List[int] = field(default_factory=list)


@dataclass
class CleanupReport:
    """Result of a cleanup run."""

    total_keys: int = 0
    total_duplicates: int = 0
    trashed: int = 0
    failed: int = 0
    kept: int = 0
    dry_run: bool = False
    details: List[DuplicateDetail] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DuplicateSummary:
    duplicate_groups: int
    total_duplicates: int
    total_pages: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _recency(item: ContentItem) -> tuple:
    return (item.modified_at, item.id)


class DuplicateReconciler:
    """Finds and collapses duplicate content per canonical key."""

    def __init__(self, content_store: ContentStore):
        self._store = content_store

    def _groups(self) -> Dict[str, List[ContentItem]]:
        groups: Dict[str, List[ContentItem]] = {}
        for item in self._store.list_live():
            key = item.dedupe_key
            if key:
                groups.setdefault(key, []).append(item)

        return {
            key: sorted(items, key=_recency, reverse=True)
            for key, items in groups.items()
            if len(items) > 1
        }

    def find_duplicates(self) -> Dict[str, List[int]]:
        """Canonical key → content ids, most recently modified first."""
        return {key: [item.id for item in items] for key, items in self._groups().items()}

    def summary(self) -> DuplicateSummary:
        groups = self.find_duplicates()
        return DuplicateSummary(
            duplicate_groups=len(groups),
            total_duplicates=sum(len(ids) - 1 for ids in groups.values()),
            total_pages=sum(len(ids) for ids in groups.values()),
        )

    @staticmethod
    def choose_keeper(items: List[ContentItem]) -> ContentItem:
        """Pick the item to keep from a group ordered newest first."""
        for item in items:
            if item.is_complete:
                return item
        return items[0]

    def cleanup(self, dry_run: bool = False) -> CleanupReport:
        groups = self._groups()
        report = CleanupReport(total_keys=len(groups), dry_run=dry_run)

        for key, items in groups.items():
            keeper = self.choose_keeper(items)
            losers = [item.id for item in items if item.id != keeper.id]

            report.total_duplicates += len(losers)
            report.kept += 1

            trashed_ids: List[int] = []
            failed_ids: List[int] = []
            for content_id in losers:
                if not dry_run:
                    try:
                        self._store.trash(content_id)
                    except ContentStoreError as e:
                        logger.error(
                            f"Failed to trash duplicate {content_id}: {e}",
                            extra={"content_id": content_id, "canonical_key": key},
                        )
                        failed_ids.append(content_id)
                        continue
                trashed_ids.append(content_id)

            report.trashed += len(trashed_ids)
            report.failed += len(failed_ids)
            report.details.append(
                DuplicateDetail(
                    key=key,
                    title=keeper.title,
                    kept_id=keeper.id,
                    trashed_ids=trashed_ids,
                    duplicate_count=len(losers),
                    failed_ids=failed_ids,
                )
            )

        logger.info(
            f"Duplicate cleanup {'planned' if dry_run else 'applied'}: "
            f"{report.total_keys} keys, {report.trashed} trashed, {report.failed} failed",
            extra={"dry_run": dry_run, "count": report.trashed},
        )
        return report
