"""
SEOgen Receiver - Receiver Options

Persistent receiver configuration: the site license key and the shared
callback secret. Both live in an OptionStore so every worker process sees
the same values; environment settings act as seeds.
"""

from __future__ import annotations

import logging
import secrets
import string
import threading
from typing import Dict, Optional, Protocol

from ..config import Settings

logger = logging.getLogger(__name__)

OPTION_LICENSE_KEY = "license_key"
OPTION_CALLBACK_SECRET = "callback_secret"

CALLBACK_SECRET_LENGTH = 32
_SECRET_ALPHABET = string.ascii_letters + string.digits


class OptionStore(Protocol):
    """Named string options shared by all receiver processes."""

    def get(self, name: str) -> Optional[str]:
        ...

    def set(self, name: str, value: str) -> None:
        ...

    def add(self, name: str, value: str) -> str:
        """Insert `value` unless `name` exists; return the stored value."""
        ...


class InMemoryOptionStore:
    """Process-local option store for development and tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})
        self._mutex = threading.Lock()

    def get(self, name: str) -> Optional[str]:
        with self._mutex:
            return self._values.get(name)

    def set(self, name: str, value: str) -> None:
        with self._mutex:
            self._values[name] = value

    def add(self, name: str, value: str) -> str:
        with self._mutex:
            return self._values.setdefault(name, value)


def normalize_license_key(value: Optional[str]) -> str:
    """Trim whitespace and case-fold a license key for comparison."""
    return (value or "").strip().casefold()


def license_keys_match(received: Optional[str], configured: Optional[str]) -> bool:
    """
    Compare license keys ignoring case and surrounding whitespace.

    An empty key on either side never matches.
    """
    received_norm = normalize_license_key(received)
    configured_norm = normalize_license_key(configured)
    if not received_norm or not configured_norm:
        return False
    return secrets.compare_digest(received_norm.encode("utf-8"), configured_norm.encode("utf-8"))


def generate_callback_secret(length: int = CALLBACK_SECRET_LENGTH) -> str:
    return "".join(secrets.choice(_SECRET_ALPHABET) for _ in range(length))


class ReceiverConfig:
    """
    Configuration provider injected into the verifier and the coordinator.

    get_callback_secret() never generates a secret: verification must fail
    closed when none exists. Generation happens through
    get_or_create_callback_secret(), called at startup and by the CLI.
    """

    def __init__(self, settings: Settings, options: OptionStore):
        self._settings = settings
        self._options = options

    def get_license_key(self) -> str:
        stored = self._options.get(OPTION_LICENSE_KEY)
        if stored:
            return stored.strip()
        return self._settings.SEOGEN_LICENSE_KEY.strip()

    def set_license_key(self, license_key: str) -> None:
        self._options.set(OPTION_LICENSE_KEY, license_key.strip())

    def get_callback_secret(self) -> Optional[str]:
        stored = self._options.get(OPTION_CALLBACK_SECRET)
        if stored:
            return stored
        return self._settings.SEOGEN_CALLBACK_SECRET or None

    def get_or_create_callback_secret(self) -> str:
        existing = self.get_callback_secret()
        if existing:
            return existing

        # add() keeps whichever secret was stored first by a concurrent caller
        secret = self._options.add(OPTION_CALLBACK_SECRET, generate_callback_secret())
        logger.info("Callback secret generated")
        return secret

    def rotate_callback_secret(self) -> str:
        secret = generate_callback_secret()
        self._options.set(OPTION_CALLBACK_SECRET, secret)
        logger.warning("Callback secret rotated - generation API must be updated")
        return secret
