"""
SEOgen Receiver - Callback Signature Verification

Every callback from the generation API is signed:

    X-Seogen-Timestamp          unix seconds
    X-Seogen-Body-SHA256        hex SHA-256 of the raw body
    X-Seogen-Signature          hex HMAC-SHA256(secret, "<timestamp>.<body hash>")
    X-Seogen-Signature-Version  "1"

Checks run in a fixed order and the first failure wins:

    1. missing_signature          timestamp, body hash or signature absent
    2. invalid_signature_version  version header is not "1"
    3. timestamp_expired          |now - timestamp| > 300s (both directions)
    4. no_callback_secret         receiver has no secret (fail closed)
    5. body_hash_mismatch         body was altered after hashing
    6. signature_invalid          HMAC does not match

All digest comparisons use hmac.compare_digest.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional

from loguru import logger

SIGNATURE_VERSION = "1"
MAX_TIMESTAMP_AGE_SECONDS = 300

HEADER_TIMESTAMP = "X-Seogen-Timestamp"
HEADER_BODY_HASH = "X-Seogen-Body-SHA256"
HEADER_SIGNATURE = "X-Seogen-Signature"
HEADER_SIGNATURE_VERSION = "X-Seogen-Signature-Version"


class RejectReason(str, Enum):
    """Machine-readable reasons a callback signature is rejected."""

    MISSING_SIGNATURE = "missing_signature"
    INVALID_SIGNATURE_VERSION = "invalid_signature_version"
    TIMESTAMP_EXPIRED = "timestamp_expired"
    NO_CALLBACK_SECRET = "no_callback_secret"
    BODY_HASH_MISMATCH = "body_hash_mismatch"
    SIGNATURE_INVALID = "signature_invalid"


REJECT_MESSAGES: dict[RejectReason, str] = {
    RejectReason.MISSING_SIGNATURE: "Missing required signature headers",
    RejectReason.INVALID_SIGNATURE_VERSION: "Unsupported signature version",
    RejectReason.TIMESTAMP_EXPIRED: "Request timestamp too old or too far in future",
    RejectReason.NO_CALLBACK_SECRET: "Callback secret not configured",
    RejectReason.BODY_HASH_MISMATCH: "Request body hash does not match",
    RejectReason.SIGNATURE_INVALID: "HMAC signature verification failed",
}


@dataclass(frozen=True)
class SignatureHeaders:
    """The four signature headers of one callback request."""

    timestamp: Optional[str]
    body_hash: Optional[str]
    signature: Optional[str]
    signature_version: Optional[str]

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "SignatureHeaders":
        """Extract signature headers (Starlette headers are case-insensitive)."""
        return cls(
            timestamp=headers.get(HEADER_TIMESTAMP),
            body_hash=headers.get(HEADER_BODY_HASH),
            signature=headers.get(HEADER_SIGNATURE),
            signature_version=headers.get(HEADER_SIGNATURE_VERSION),
        )

    def as_dict(self) -> dict[str, str]:
        return {
            HEADER_TIMESTAMP: self.timestamp or "",
            HEADER_BODY_HASH: self.body_hash or "",
            HEADER_SIGNATURE: self.signature or "",
            HEADER_SIGNATURE_VERSION: self.signature_version or "",
        }


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verifying one callback."""

    accepted: bool
    reason: Optional[RejectReason] = None

    @property
    def message(self) -> str:
        if self.accepted or self.reason is None:
            return "Signature accepted"
        return REJECT_MESSAGES[self.reason]

    @classmethod
    def accept(cls) -> "VerificationResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectReason) -> "VerificationResult":
        return cls(accepted=False, reason=reason)


# =============================================================================
# Digest helpers
# =============================================================================


def compute_body_hash(body: bytes) -> str:
    """Hex SHA-256 of the raw request body."""
    return hashlib.sha256(body).hexdigest()


def _digests_equal(received: str, expected: str) -> bool:
    """Constant-time comparison; header values may contain non-ASCII bytes."""
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))


def compute_signature(secret: str, timestamp: str, body_hash: str) -> str:
    """Hex HMAC-SHA256 over "<timestamp>.<body hash>"."""
    message = f"{timestamp}.{body_hash}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def sign_payload(secret: str, body: bytes, timestamp: int | None = None) -> SignatureHeaders:
    """
    Build the signature headers a producer sends with `body`.

    Args:
        secret: Shared callback secret
        body: Exact bytes that will be sent as the request body
        timestamp: Unix seconds; defaults to now

    Returns:
        SignatureHeaders ready to be sent via `as_dict()`
    """
    ts = str(int(time.time()) if timestamp is None else timestamp)
    body_hash = compute_body_hash(body)
    return SignatureHeaders(
        timestamp=ts,
        body_hash=body_hash,
        signature=compute_signature(secret, ts, body_hash),
        signature_version=SIGNATURE_VERSION,
    )


# =============================================================================
# Verifier
# =============================================================================


class SignatureVerifier:
    """
    Validates authenticity and freshness of inbound callbacks.

    The secret is looked up on every call through `secret_provider` so that
    a rotated secret takes effect immediately. A missing secret rejects the
    request; verification is never bypassed.
    """

    def __init__(
        self,
        secret_provider: Callable[[], Optional[str]],
        max_age_seconds: int = MAX_TIMESTAMP_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._secret_provider = secret_provider
        self.max_age_seconds = max_age_seconds
        self._clock = clock

    def verify(self, headers: SignatureHeaders, raw_body: bytes) -> VerificationResult:
        if not headers.timestamp or not headers.body_hash or not headers.signature:
            return self._reject(RejectReason.MISSING_SIGNATURE)

        if headers.signature_version != SIGNATURE_VERSION:
            return self._reject(RejectReason.INVALID_SIGNATURE_VERSION)

        try:
            timestamp = int(headers.timestamp.strip())
        except ValueError:
            return self._reject(RejectReason.TIMESTAMP_EXPIRED)

        # Integer arithmetic: huge header values must not overflow float math
        if abs(int(self._clock()) - timestamp) > self.max_age_seconds:
            return self._reject(RejectReason.TIMESTAMP_EXPIRED)

        secret = self._secret_provider()
        if not secret:
            logger.error("Callback secret not configured - rejecting signed request")
            return VerificationResult.reject(RejectReason.NO_CALLBACK_SECRET)

        actual_body_hash = compute_body_hash(raw_body)
        if not _digests_equal(headers.body_hash, actual_body_hash):
            return self._reject(RejectReason.BODY_HASH_MISMATCH)

        # Signed over the header value, which is now known to equal the body hash
        expected_signature = compute_signature(secret, headers.timestamp, headers.body_hash)
        if not _digests_equal(headers.signature, expected_signature):
            return self._reject(RejectReason.SIGNATURE_INVALID)

        return VerificationResult.accept()

    @staticmethod
    def _reject(reason: RejectReason) -> VerificationResult:
        logger.warning(f"Callback signature rejected: {reason.value}")
        return VerificationResult.reject(reason)
