"""
SEOgen Receiver - Idempotent Import Coordinator

Imports one generated page per canonical key, exactly once, despite
at-least-once delivery, concurrent callbacks and partial failures.

Flow for one ImportRequest:
    1. License key must match this site (trimmed, case-insensitive)
    2. canonical_key must be present; result_json must be an object
    3. Take the import lock for hash(canonical_key) - busy → import_in_progress
    4. Existing live item → replay, return it with already_existed=True
    5. Otherwise create the item → import_failed on storage error
    6. Release the lock on every exit path

Usage:
    coordinator = ImportCoordinator(store, ImportLockManager(lock_store), config)
    result = coordinator.import_or_noop(ImportRequest.from_payload(body))
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ..core.locks import DEFAULT_LOCK_TTL_SECONDS, ImportLockManager
from ..core.logging import LogContext
from ..core.options import ReceiverConfig, license_keys_match
from ..stores.base import ContentDraft, ContentStore, ContentStoreError

logger = logging.getLogger(__name__)

PAGE_MODE_SERVICE_CITY = "service_city"
PAGE_MODE_CITY_HUB = "city_hub"
PAGE_MODE_SERVICE_HUB = "service_hub"
PAGE_MODES = frozenset({PAGE_MODE_SERVICE_CITY, PAGE_MODE_CITY_HUB, PAGE_MODE_SERVICE_HUB})

IMPORTED_VIA_REST = "rest_api"
IMPORTED_VIA_PULL = "auto_import"

# Metadata fields copied onto the stored item
_METADATA_FIELDS = ("service", "city", "state", "hub_key", "hub_label", "city_slug")


# =============================================================================
# Request / Result types
# =============================================================================


class ImportErrorCode(str, Enum):
    """Machine-readable import failure codes."""

    LICENSE_MISMATCH = "license_mismatch"
    MISSING_CANONICAL_KEY = "missing_canonical_key"
    INVALID_PAYLOAD = "invalid_payload"
    IMPORT_IN_PROGRESS = "import_in_progress"
    IMPORT_FAILED = "import_failed"


@dataclass(frozen=True)
class ImportRequest:
    """One inbound generated page. Immutable once received."""

    license_key: str
    job_id: str
    item_index: int
    result_payload: Any
    item_metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def canonical_key(self) -> str:
        value = self.item_metadata.get("canonical_key") if self.item_metadata else None
        return str(value).strip() if value is not None else ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ImportRequest":
        """Build a request from the callback JSON body."""
        metadata = payload.get("item_metadata")
        try:
            item_index = int(payload.get("item_index") or 0)
        except (TypeError, ValueError):
            item_index = 0
        return cls(
            license_key=str(payload.get("license_key") or ""),
            job_id=str(payload.get("job_id") or "").strip(),
            item_index=item_index,
            result_payload=payload.get("result_json"),
            item_metadata=metadata if isinstance(metadata, Mapping) else {},
        )


@dataclass(frozen=True)
class ImportResult:
    """Outcome of one import. already_existed marks an idempotent replay."""

    success: bool
    content_id: Optional[int] = None
    already_existed: bool = False
    error_code: Optional[ImportErrorCode] = None
    error_message: Optional[str] = None

    @classmethod
    def created(cls, content_id: int) -> "ImportResult":
        return cls(success=True, content_id=content_id)

    @classmethod
    def existing(cls, content_id: int) -> "ImportResult":
        return cls(success=True, content_id=content_id, already_existed=True)

    @classmethod
    def failure(cls, code: ImportErrorCode, message: str) -> "ImportResult":
        return cls(success=False, error_code=code, error_message=message)


# =============================================================================
# Draft building
# =============================================================================


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "page"


def _derive_title(payload: Mapping[str, Any], metadata: Mapping[str, Any]) -> str:
    title = str(payload.get("title") or "").strip()
    if title:
        return title

    service = str(metadata.get("service") or metadata.get("hub_label") or "").strip()
    city = str(metadata.get("city") or "").strip()
    state = str(metadata.get("state") or "").strip()
    place = ", ".join(part for part in (city, state) if part)
    if service and place:
        return f"{service} in {place}"
    return service or place


def build_draft(request: ImportRequest, page_mode: str, imported_via: str) -> ContentDraft:
    payload: Dict[str, Any] = dict(request.result_payload)
    metadata = {
        key: request.item_metadata[key]
        for key in _METADATA_FIELDS
        if request.item_metadata.get(key)
    }
    title = _derive_title(payload, request.item_metadata)
    slug = str(payload.get("slug") or "").strip() or slugify(title or request.canonical_key)

    return ContentDraft(
        canonical_key=request.canonical_key,
        title=title,
        slug=slug,
        page_mode=page_mode,
        payload=payload,
        job_id=request.job_id,
        item_index=request.item_index,
        imported_via=imported_via,
        metadata=metadata,
    )


# =============================================================================
# Coordinator
# =============================================================================


class ImportCoordinator:
    """Create-or-noop import keyed by canonical key, serialized by lock."""

    def __init__(
        self,
        content_store: ContentStore,
        lock_manager: ImportLockManager,
        config: ReceiverConfig,
        lock_ttl: int = DEFAULT_LOCK_TTL_SECONDS,
        imported_via: str = IMPORTED_VIA_REST,
    ):
        self._store = content_store
        self._locks = lock_manager
        self._config = config
        self.lock_ttl = lock_ttl
        self.imported_via = imported_via

    def check_license(self, license_key: str) -> Optional[ImportResult]:
        site_key = self._config.get_license_key()
        if license_keys_match(license_key, site_key):
            return None

        # Lengths only: raw keys never reach the logs
        logger.warning(
            f"License mismatch - request key len={len(license_key)}, site key len={len(site_key)}",
            extra={"error_code": ImportErrorCode.LICENSE_MISMATCH.value},
        )
        return ImportResult.failure(
            ImportErrorCode.LICENSE_MISMATCH, "License key does not match this site"
        )

    def import_or_noop(
        self, request: ImportRequest, imported_via: Optional[str] = None
    ) -> ImportResult:
        rejected = self.check_license(request.license_key)
        if rejected is not None:
            return rejected

        canonical_key = request.canonical_key
        if not canonical_key:
            return ImportResult.failure(
                ImportErrorCode.MISSING_CANONICAL_KEY,
                "canonical_key is required for idempotent imports",
            )

        if not isinstance(request.result_payload, Mapping):
            return ImportResult.failure(
                ImportErrorCode.INVALID_PAYLOAD, "result_json must be a JSON object"
            )

        page_mode = str(request.result_payload.get("page_mode") or PAGE_MODE_SERVICE_CITY)
        if page_mode not in PAGE_MODES:
            return ImportResult.failure(
                ImportErrorCode.INVALID_PAYLOAD, f"Unsupported page_mode: {page_mode}"
            )

        with LogContext(canonical_key=canonical_key, job_id=request.job_id):
            with self._locks.hold(canonical_key, self.lock_ttl) as acquired:
                if not acquired:
                    return ImportResult.failure(
                        ImportErrorCode.IMPORT_IN_PROGRESS,
                        "Import already in progress for this item",
                    )
                return self._create_once(request, page_mode, imported_via or self.imported_via)

    def _create_once(self, request: ImportRequest, page_mode: str, imported_via: str) -> ImportResult:
        try:
            existing_id = self._store.find_by_canonical_key(request.canonical_key)
            if existing_id is not None:
                logger.info(
                    "Canonical key already imported - replay is a no-op",
                    extra={"content_id": existing_id},
                )
                return ImportResult.existing(existing_id)

            content_id = self._store.create(build_draft(request, page_mode, imported_via))
        except ContentStoreError as e:
            logger.error(f"Import failed: {e}", extra={"error_code": "import_failed"})
            return ImportResult.failure(ImportErrorCode.IMPORT_FAILED, str(e))
        except Exception as e:
            logger.exception(f"Unexpected import error: {type(e).__name__}: {e}")
            return ImportResult.failure(ImportErrorCode.IMPORT_FAILED, str(e) or type(e).__name__)

        logger.info(
            "Content created",
            extra={"content_id": content_id, "item_index": request.item_index},
        )
        return ImportResult.created(content_id)
