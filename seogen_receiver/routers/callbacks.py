"""
SEOgen Receiver - Callback Router

Signed endpoints called by the generation API. Mounted under
/{REST_NAMESPACE} (default /seogen/v1):

- POST /import-page  Import one generated page (idempotent per canonical key)
- POST /ping         Connection test; reports whether the license key matches

Both require the X-Seogen-* signature headers.
"""

import json
import logging
import time
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel

from ..container import ReceiverContainer, get_container
from ..core.errors import ERROR_INVALID_JSON, CallbackError
from ..core.options import license_keys_match
from ..core.signature import RejectReason, SignatureHeaders
from ..services.import_coordinator import ImportErrorCode, ImportRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Callbacks"])


# =============================================================================
# Response Models
# =============================================================================


class ImportPageResponse(BaseModel):
    success: bool = True
    post_id: int
    already_imported: bool


class PingResponse(BaseModel):
    success: bool = True
    site_url: str
    rest_base_url: str
    license_valid: bool
    timestamp: int


# =============================================================================
# Status mapping
# =============================================================================

SIGNATURE_STATUS: dict[RejectReason, int] = {
    RejectReason.MISSING_SIGNATURE: status.HTTP_401_UNAUTHORIZED,
    RejectReason.INVALID_SIGNATURE_VERSION: status.HTTP_401_UNAUTHORIZED,
    RejectReason.TIMESTAMP_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    RejectReason.BODY_HASH_MISMATCH: status.HTTP_401_UNAUTHORIZED,
    RejectReason.SIGNATURE_INVALID: status.HTTP_401_UNAUTHORIZED,
    # Receiver misconfiguration, not a caller error
    RejectReason.NO_CALLBACK_SECRET: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

IMPORT_STATUS: dict[ImportErrorCode, int] = {
    ImportErrorCode.LICENSE_MISMATCH: status.HTTP_403_FORBIDDEN,
    ImportErrorCode.MISSING_CANONICAL_KEY: status.HTTP_400_BAD_REQUEST,
    ImportErrorCode.INVALID_PAYLOAD: status.HTTP_400_BAD_REQUEST,
    ImportErrorCode.IMPORT_IN_PROGRESS: status.HTTP_409_CONFLICT,
    ImportErrorCode.IMPORT_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


# =============================================================================
# Signature dependency
# =============================================================================


async def signed_json_body(
    request: Request,
    container: ReceiverContainer = Depends(get_container),
) -> dict[str, Any]:
    """
    Verify the callback signature over the raw body, then parse it.

    Raises:
        CallbackError: 401/500 on signature problems, 400 on a non-object body
    """
    raw_body = await request.body()
    verdict = container.verifier.verify(SignatureHeaders.from_headers(request.headers), raw_body)
    if not verdict.accepted and verdict.reason is not None:
        raise CallbackError(
            verdict.message,
            error_code=verdict.reason.value,
            status_code=SIGNATURE_STATUS[verdict.reason],
        )

    try:
        payload = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise CallbackError("Invalid JSON payload", ERROR_INVALID_JSON, status.HTTP_400_BAD_REQUEST)

    if not isinstance(payload, dict):
        raise CallbackError(
            "Payload must be a JSON object", ERROR_INVALID_JSON, status.HTTP_400_BAD_REQUEST
        )
    return payload


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/import-page", response_model=ImportPageResponse)
def import_page(
    payload: dict[str, Any] = Depends(signed_json_body),
    container: ReceiverContainer = Depends(get_container),
) -> ImportPageResponse:
    """
    Import one generated page.

    Replays of an already imported canonical key return the existing post
    with already_imported=true and change nothing.
    """
    import_request = ImportRequest.from_payload(payload)
    logger.info(
        "Import callback received",
        extra={"job_id": import_request.job_id, "item_index": import_request.item_index},
    )

    result = container.coordinator.import_or_noop(import_request)

    if not result.success or result.content_id is None:
        code = result.error_code or ImportErrorCode.IMPORT_FAILED
        raise CallbackError(
            result.error_message or "Import failed",
            error_code=code.value,
            status_code=IMPORT_STATUS[code],
        )

    return ImportPageResponse(post_id=result.content_id, already_imported=result.already_existed)


@router.post("/ping", response_model=PingResponse)
def ping(
    payload: dict[str, Any] = Depends(signed_json_body),
    container: ReceiverContainer = Depends(get_container),
) -> PingResponse:
    """Connection test for the generation API."""
    license_valid = license_keys_match(
        str(payload.get("license_key") or ""), container.config.get_license_key()
    )
    settings = container.settings
    return PingResponse(
        site_url=settings.SITE_URL,
        rest_base_url=settings.rest_base_url,
        license_valid=license_valid,
        timestamp=int(time.time()),
    )
