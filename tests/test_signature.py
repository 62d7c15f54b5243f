"""
Tests for callback signature verification.

Verifies:
1. A correctly signed request is accepted
2. Every rejection reason, in check order
3. Freshness window is symmetric: 300s accepted, 301s rejected, both ways
4. Any single-byte change to body, signature or timestamp is rejected
"""

from __future__ import annotations

from typing import Optional

import pytest

from seogen_receiver.core.signature import (
    HEADER_BODY_HASH,
    HEADER_SIGNATURE,
    HEADER_SIGNATURE_VERSION,
    HEADER_TIMESTAMP,
    RejectReason,
    SignatureHeaders,
    SignatureVerifier,
    compute_body_hash,
    compute_signature,
    sign_payload,
)

SECRET = "s3cret-for-tests"
NOW = 1_700_000_000
BODY = b'{"license_key":"LIC-ABC123","job_id":"job-1"}'


def make_verifier(secret: Optional[str] = SECRET, now: float = NOW) -> SignatureVerifier:
    return SignatureVerifier(lambda: secret, clock=lambda: now)


def flip_byte(value: str, index: int = 0) -> str:
    replacement = "0" if value[index] != "0" else "1"
    return value[:index] + replacement + value[index + 1 :]


class TestSignatureHelpers:
    def test_body_hash_is_hex_sha256(self) -> None:
        assert compute_body_hash(b"") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_signature_covers_timestamp_and_body_hash(self) -> None:
        body_hash = compute_body_hash(BODY)
        base = compute_signature(SECRET, str(NOW), body_hash)

        assert len(base) == 64
        assert compute_signature(SECRET, str(NOW + 1), body_hash) != base
        assert compute_signature("other", str(NOW), body_hash) != base

    def test_sign_payload_sets_all_headers(self) -> None:
        headers = sign_payload(SECRET, BODY, NOW).as_dict()

        assert headers[HEADER_TIMESTAMP] == str(NOW)
        assert headers[HEADER_BODY_HASH] == compute_body_hash(BODY)
        assert headers[HEADER_SIGNATURE_VERSION] == "1"
        assert headers[HEADER_SIGNATURE] == compute_signature(
            SECRET, str(NOW), compute_body_hash(BODY)
        )

    def test_from_headers_reads_mapping(self) -> None:
        signed = sign_payload(SECRET, BODY, NOW)
        parsed = SignatureHeaders.from_headers(signed.as_dict())
        assert parsed == signed


class TestVerifierAccepts:
    def test_valid_signature_accepted(self) -> None:
        result = make_verifier().verify(sign_payload(SECRET, BODY, NOW), BODY)

        assert result.accepted is True
        assert result.reason is None

    def test_empty_body_can_be_signed(self) -> None:
        result = make_verifier().verify(sign_payload(SECRET, b"", NOW), b"")
        assert result.accepted is True

    def test_secret_is_read_on_every_call(self) -> None:
        current = {"secret": SECRET}
        verifier = SignatureVerifier(lambda: current["secret"], clock=lambda: NOW)

        assert verifier.verify(sign_payload(SECRET, BODY, NOW), BODY).accepted

        current["secret"] = "rotated"
        result = verifier.verify(sign_payload(SECRET, BODY, NOW), BODY)
        assert result.reason is RejectReason.SIGNATURE_INVALID
        assert verifier.verify(sign_payload("rotated", BODY, NOW), BODY).accepted


class TestVerifierRejects:
    @pytest.mark.parametrize("field", ["timestamp", "body_hash", "signature"])
    def test_missing_header(self, field: str) -> None:
        signed = sign_payload(SECRET, BODY, NOW)
        values = {
            "timestamp": signed.timestamp,
            "body_hash": signed.body_hash,
            "signature": signed.signature,
            "signature_version": signed.signature_version,
        }
        values[field] = None

        result = make_verifier().verify(SignatureHeaders(**values), BODY)

        assert result.accepted is False
        assert result.reason is RejectReason.MISSING_SIGNATURE

    @pytest.mark.parametrize("version", [None, "", "2", "v1"])
    def test_wrong_version(self, version: Optional[str]) -> None:
        signed = sign_payload(SECRET, BODY, NOW)
        headers = SignatureHeaders(signed.timestamp, signed.body_hash, signed.signature, version)

        result = make_verifier().verify(headers, BODY)

        assert result.reason is RejectReason.INVALID_SIGNATURE_VERSION

    def test_missing_headers_checked_before_version(self) -> None:
        headers = SignatureHeaders(None, None, None, "2")
        result = make_verifier().verify(headers, BODY)
        assert result.reason is RejectReason.MISSING_SIGNATURE

    def test_non_numeric_timestamp_is_expired(self) -> None:
        signed = sign_payload(SECRET, BODY, NOW)
        headers = SignatureHeaders("yesterday", signed.body_hash, signed.signature, "1")

        result = make_verifier().verify(headers, BODY)

        assert result.reason is RejectReason.TIMESTAMP_EXPIRED

    def test_no_secret_fails_closed(self) -> None:
        result = make_verifier(secret=None).verify(sign_payload(SECRET, BODY, NOW), BODY)

        assert result.accepted is False
        assert result.reason is RejectReason.NO_CALLBACK_SECRET

    def test_empty_secret_fails_closed(self) -> None:
        result = make_verifier(secret="").verify(sign_payload("", BODY, NOW), BODY)
        assert result.reason is RejectReason.NO_CALLBACK_SECRET

    def test_expired_checked_before_secret(self) -> None:
        result = make_verifier(secret=None).verify(sign_payload(SECRET, BODY, NOW - 1000), BODY)
        assert result.reason is RejectReason.TIMESTAMP_EXPIRED

    def test_altered_body(self) -> None:
        signed = sign_payload(SECRET, BODY, NOW)
        result = make_verifier().verify(signed, BODY + b" ")

        assert result.reason is RejectReason.BODY_HASH_MISMATCH

    def test_wrong_secret(self) -> None:
        result = make_verifier().verify(sign_payload("wrong-secret", BODY, NOW), BODY)

        assert result.reason is RejectReason.SIGNATURE_INVALID
        assert result.message == "HMAC signature verification failed"

    def test_non_ascii_signature_rejected_not_raised(self) -> None:
        signed = sign_payload(SECRET, BODY, NOW)
        headers = SignatureHeaders(signed.timestamp, signed.body_hash, "é" * 64, "1")

        result = make_verifier().verify(headers, BODY)

        assert result.reason is RejectReason.SIGNATURE_INVALID


class TestFreshnessWindow:
    @pytest.mark.parametrize("skew", [0, 1, 299, 300, -1, -300])
    def test_within_window_accepted(self, skew: int) -> None:
        signed = sign_payload(SECRET, BODY, NOW + skew)
        assert make_verifier().verify(signed, BODY).accepted is True

    @pytest.mark.parametrize("skew", [301, -301, 3600, -86400])
    def test_outside_window_rejected(self, skew: int) -> None:
        signed = sign_payload(SECRET, BODY, NOW + skew)
        result = make_verifier().verify(signed, BODY)
        assert result.reason is RejectReason.TIMESTAMP_EXPIRED

    def test_custom_window(self) -> None:
        verifier = SignatureVerifier(lambda: SECRET, max_age_seconds=10, clock=lambda: NOW)

        assert verifier.verify(sign_payload(SECRET, BODY, NOW - 10), BODY).accepted
        assert not verifier.verify(sign_payload(SECRET, BODY, NOW - 11), BODY).accepted

    def test_huge_timestamp_with_float_clock_is_expired(self) -> None:
        verifier = SignatureVerifier(lambda: SECRET, clock=lambda: NOW + 0.75)
        signed = sign_payload(SECRET, BODY, NOW)
        headers = SignatureHeaders("9" * 400, signed.body_hash, signed.signature, "1")

        result = verifier.verify(headers, BODY)

        assert result.reason is RejectReason.TIMESTAMP_EXPIRED

    def test_float_clock_window_edge(self) -> None:
        verifier = SignatureVerifier(lambda: SECRET, clock=lambda: NOW + 0.75)

        assert verifier.verify(sign_payload(SECRET, BODY, NOW - 300), BODY).accepted
        assert not verifier.verify(sign_payload(SECRET, BODY, NOW - 301), BODY).accepted


class TestTampering:
    def test_single_byte_change_in_body(self) -> None:
        signed = sign_payload(SECRET, BODY, NOW)
        tampered = BODY.replace(b"job-1", b"job-2")

        result = make_verifier().verify(signed, tampered)

        assert result.reason is RejectReason.BODY_HASH_MISMATCH

    @pytest.mark.parametrize("index", [0, 31, 63])
    def test_single_byte_change_in_signature(self, index: int) -> None:
        signed = sign_payload(SECRET, BODY, NOW)
        headers = SignatureHeaders(
            signed.timestamp, signed.body_hash, flip_byte(signed.signature, index), "1"
        )

        result = make_verifier().verify(headers, BODY)

        assert result.reason is RejectReason.SIGNATURE_INVALID

    def test_rehashed_body_without_secret_fails(self) -> None:
        """An attacker can recompute the body hash but not the HMAC."""
        signed = sign_payload(SECRET, BODY, NOW)
        tampered = BODY.replace(b"job-1", b"job-9")
        headers = SignatureHeaders(
            signed.timestamp, compute_body_hash(tampered), signed.signature, "1"
        )

        result = make_verifier().verify(headers, tampered)

        assert result.reason is RejectReason.SIGNATURE_INVALID

    def test_timestamp_change_invalidates_signature(self) -> None:
        signed = sign_payload(SECRET, BODY, NOW)
        headers = SignatureHeaders(str(NOW + 1), signed.body_hash, signed.signature, "1")

        result = make_verifier().verify(headers, BODY)

        assert result.reason is RejectReason.SIGNATURE_INVALID
