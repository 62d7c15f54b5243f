"""
tests/conftest.py

Shared fixtures for the SEOgen receiver test suite.

Everything runs against the in-memory stores; no database or network is
needed. Postgres stores are covered with a mocked pool.
"""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from seogen_receiver.config import Settings, reset_settings
from seogen_receiver.container import ReceiverContainer, build_memory_container
from seogen_receiver.core.options import OPTION_CALLBACK_SECRET
from seogen_receiver.core.signature import sign_payload

CALLBACK_SECRET = "test-callback-secret-0123456789ab"
LICENSE_KEY = "LIC-ABC123"
ADMIN_KEY = "test-admin-key-12345"


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    """Never leak cached settings between tests."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ENVIRONMENT="dev",
        DATABASE_URL="",
        SITE_URL="https://plumber.example",
        SEOGEN_LICENSE_KEY=LICENSE_KEY,
        SEOGEN_ADMIN_API_KEY=ADMIN_KEY,
    )


@pytest.fixture
def container(settings: Settings) -> ReceiverContainer:
    """In-memory collaborators with a callback secret already stored."""
    container = build_memory_container(settings)
    container.option_store.set(OPTION_CALLBACK_SECRET, CALLBACK_SECRET)
    return container


@pytest.fixture
def client(container: ReceiverContainer) -> TestClient:
    from seogen_receiver.main import create_app

    app = create_app(container=container)
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def signed_post(client: TestClient) -> Callable[..., Any]:
    """POST a JSON body with valid signature headers."""

    def _post(
        path: str,
        payload: Any,
        secret: str = CALLBACK_SECRET,
        timestamp: int | None = None,
        raw_body: bytes | None = None,
    ):
        body = raw_body if raw_body is not None else json.dumps(payload).encode("utf-8")
        headers = sign_payload(secret, body, timestamp).as_dict()
        headers["Content-Type"] = "application/json"
        return client.post(path, content=body, headers=headers)

    return _post


def make_import_payload(
    canonical_key: str = "plumbing|austin-tx",
    license_key: str = LICENSE_KEY,
    **overrides: Any,
) -> Dict[str, Any]:
    """Callback body for /import-page."""
    payload: Dict[str, Any] = {
        "license_key": license_key,
        "job_id": "job-1",
        "item_index": 0,
        "result_json": {
            "title": "Plumbing in Austin, TX",
            "page_mode": "service_city",
            "blocks": [{"type": "hero", "heading": "Plumbing in Austin"}],
        },
        "item_metadata": {
            "canonical_key": canonical_key,
            "service": "Plumbing",
            "city": "Austin",
            "state": "TX",
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def import_payload() -> Callable[..., Dict[str, Any]]:
    return make_import_payload


@pytest.fixture
def now() -> int:
    return int(time.time())
