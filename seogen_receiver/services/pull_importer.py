"""
SEOgen Receiver - Pull Importer

Fallback for sites the generation API cannot reach with push callbacks:
the receiver pulls not-yet-imported results of a bulk job and runs each one
through the same ImportCoordinator as the callback endpoint.

One batch is bounded by item count and wall-clock time. Items imported
(or found already imported) are acknowledged to the API in one call.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

import httpx

from .import_coordinator import (
    IMPORTED_VIA_PULL,
    ImportCoordinator,
    ImportRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_MAX_ITEMS = 10
DEFAULT_BATCH_MAX_SECONDS = 15.0

_ITEM_METADATA_FIELDS = ("service", "city", "state", "hub_key", "hub_label", "city_slug")


@dataclass
class BatchImportSummary:
    """Counts for one pull batch."""

    imported: int = 0
    failed: int = 0
    remaining: int = 0
    errors: List[str] = field(default_factory=list)


class GenerationApiClient:
    """
    Minimal client for the generation API bulk-job endpoints.

    Transport errors are logged and reported as empty results; the pull
    loop treats them as "nothing to import this round".
    """

    def __init__(
        self,
        api_url: str,
        license_key: str,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.api_url = api_url.rstrip("/")
        self.license_key = license_key
        self._client = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def fetch_pending_items(self, job_id: str, limit: int) -> List[Dict[str, Any]]:
        url = f"{self.api_url}/bulk-jobs/{job_id}/results"
        params = {"license_key": self.license_key, "imported": "false", "limit": limit}
        try:
            response = self._client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Fetching pending items failed: {e}", extra={"job_id": job_id})
            return []

        if response.status_code != 200:
            logger.warning(
                f"Fetching pending items returned HTTP {response.status_code}",
                extra={"job_id": job_id, "status_code": response.status_code},
            )
            return []

        try:
            data = response.json()
        except ValueError:
            logger.warning("Pending items response is not JSON", extra={"job_id": job_id})
            return []

        items = data.get("items") if isinstance(data, dict) else None
        return [item for item in items if isinstance(item, dict)] if isinstance(items, list) else []

    def mark_imported(self, job_id: str, item_ids: List[str]) -> bool:
        """Acknowledge imported items. Failure is logged; items stay imported locally."""
        url = f"{self.api_url}/bulk-jobs/{job_id}/items/mark-imported"
        try:
            response = self._client.post(
                url, json={"license_key": self.license_key, "item_ids": item_ids}
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to mark items as imported: {e}", extra={"job_id": job_id})
            return False
        return True


def _request_from_item(item: Mapping[str, Any], license_key: str, job_id: str) -> ImportRequest:
    metadata = {"canonical_key": item.get("canonical_key") or ""}
    metadata.update({key: item.get(key) or "" for key in _ITEM_METADATA_FIELDS})
    try:
        item_index = int(item.get("idx") or 0)
    except (TypeError, ValueError):
        item_index = 0
    return ImportRequest(
        license_key=license_key,
        job_id=job_id,
        item_index=item_index,
        result_payload=item.get("result_json"),
        item_metadata=metadata,
    )


class PullImporter:
    """Time-bounded batch import of pending bulk-job results."""

    def __init__(
        self,
        coordinator: ImportCoordinator,
        client: GenerationApiClient,
        max_items: int = DEFAULT_BATCH_MAX_ITEMS,
        max_seconds: float = DEFAULT_BATCH_MAX_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._coordinator = coordinator
        self._client = client
        self.max_items = max_items
        self.max_seconds = max_seconds
        self._clock = clock

    def run_import_batch(self, job_id: str) -> BatchImportSummary:
        summary = BatchImportSummary()

        if not self._client.api_url or not self._client.license_key:
            summary.errors.append("API URL or license key not configured")
            return summary

        started = self._clock()
        items = self._client.fetch_pending_items(job_id, self.max_items)
        acked: List[str] = []

        for position, item in enumerate(items):
            if self._clock() - started >= self.max_seconds:
                summary.remaining = len(items) - position
                logger.info(
                    f"Pull batch time budget reached, {summary.remaining} items deferred",
                    extra={"job_id": job_id},
                )
                break

            item_id = str(item.get("item_id") or "")
            canonical_key = str(item.get("canonical_key") or "").strip()
            if not canonical_key or not item.get("result_json"):
                summary.failed += 1
                summary.errors.append(f"Missing canonical_key or result_json for item {item_id}")
                continue

            request = _request_from_item(item, self._client.license_key, job_id)
            result = self._coordinator.import_or_noop(request, imported_via=IMPORTED_VIA_PULL)

            if result.success:
                summary.imported += 1
                if item_id:
                    acked.append(item_id)
            else:
                summary.failed += 1
                summary.errors.append(f"Import failed for {canonical_key}: {result.error_message}")

        if acked:
            self._client.mark_imported(job_id, acked)

        logger.info(
            f"Pull batch done: imported={summary.imported} failed={summary.failed} "
            f"remaining={summary.remaining}",
            extra={"job_id": job_id},
        )
        return summary
