"""
SEOgen Receiver - Admin Router

Operator endpoints, protected by X-Seogen-Admin-Key:

- GET  /admin/duplicates                   Summary and duplicate groups
- POST /admin/duplicates/cleanup?dry_run=  Trash duplicates (or preview)
- POST /admin/import-batch/{job_id}        Pull one batch of pending results
"""

import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, Query

from ..container import ReceiverContainer, get_container
from ..core.errors import ReceiverError
from ..core.security import require_admin_key
from ..services.pull_importer import GenerationApiClient, PullImporter

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin_key)],
)


@router.get("/duplicates")
def scan_duplicates(container: ReceiverContainer = Depends(get_container)) -> dict[str, Any]:
    reconciler = container.reconciler
    return {
        "summary": reconciler.summary().to_dict(),
        "groups": reconciler.find_duplicates(),
    }


@router.post("/duplicates/cleanup")
def cleanup_duplicates(
    dry_run: bool = Query(default=True, description="Preview without trashing"),
    container: ReceiverContainer = Depends(get_container),
) -> dict[str, Any]:
    report = container.reconciler.cleanup(dry_run=dry_run)
    if dry_run:
        message = f"Found {report.trashed} duplicate pages that can be cleaned up"
    else:
        message = f"Successfully cleaned up {report.trashed} duplicate pages"
    return {"message": message, "results": report.to_dict()}


@router.post("/import-batch/{job_id}")
def import_batch(
    job_id: str,
    container: ReceiverContainer = Depends(get_container),
) -> dict[str, Any]:
    settings = container.settings
    if not settings.SEOGEN_API_URL:
        raise ReceiverError("SEOGEN_API_URL is not configured", "not_configured", 503)

    client = GenerationApiClient(
        settings.SEOGEN_API_URL,
        container.config.get_license_key(),
        timeout=settings.PULL_HTTP_TIMEOUT_SECONDS,
    )
    try:
        summary = PullImporter(
            container.coordinator,
            client,
            max_items=settings.PULL_BATCH_MAX_ITEMS,
            max_seconds=settings.PULL_BATCH_MAX_SECONDS,
        ).run_import_batch(job_id)
    finally:
        client.close()

    return asdict(summary)
