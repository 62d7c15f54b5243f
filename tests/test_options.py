"""
Tests for receiver options: license key matching and the callback secret.
"""

from __future__ import annotations

import pytest

from seogen_receiver.config import Settings
from seogen_receiver.core.options import (
    CALLBACK_SECRET_LENGTH,
    OPTION_CALLBACK_SECRET,
    OPTION_LICENSE_KEY,
    InMemoryOptionStore,
    ReceiverConfig,
    generate_callback_secret,
    license_keys_match,
    normalize_license_key,
)


class TestLicenseKeyMatch:
    @pytest.mark.parametrize(
        "received, configured",
        [
            ("abc123", "abc123"),
            (" abc123 ", "ABC123"),
            ("LIC-XYZ\n", "lic-xyz"),
        ],
    )
    def test_matches_ignoring_case_and_whitespace(self, received: str, configured: str) -> None:
        assert license_keys_match(received, configured) is True

    @pytest.mark.parametrize(
        "received, configured",
        [
            ("abc123", "abc124"),
            ("", "abc123"),
            ("abc123", ""),
            ("", ""),
            (None, None),
            ("   ", "   "),
        ],
    )
    def test_mismatch_and_empty(self, received, configured) -> None:
        assert license_keys_match(received, configured) is False

    def test_normalize(self) -> None:
        assert normalize_license_key("  AbC ") == "abc"
        assert normalize_license_key(None) == ""


class TestCallbackSecret:
    def test_generated_secret_shape(self) -> None:
        secret = generate_callback_secret()

        assert len(secret) == CALLBACK_SECRET_LENGTH
        assert secret.isalnum()
        assert generate_callback_secret() != secret

    def test_no_secret_by_default(self) -> None:
        config = ReceiverConfig(Settings(), InMemoryOptionStore())
        assert config.get_callback_secret() is None

    def test_settings_seed_is_used(self) -> None:
        config = ReceiverConfig(Settings(SEOGEN_CALLBACK_SECRET="seeded"), InMemoryOptionStore())
        assert config.get_callback_secret() == "seeded"

    def test_stored_secret_wins_over_seed(self) -> None:
        options = InMemoryOptionStore({OPTION_CALLBACK_SECRET: "stored"})
        config = ReceiverConfig(Settings(SEOGEN_CALLBACK_SECRET="seeded"), options)
        assert config.get_callback_secret() == "stored"

    def test_get_or_create_is_stable(self) -> None:
        options = InMemoryOptionStore()
        config = ReceiverConfig(Settings(), options)

        first = config.get_or_create_callback_secret()

        assert first
        assert config.get_or_create_callback_secret() == first
        assert options.get(OPTION_CALLBACK_SECRET) == first

    def test_rotate_replaces_secret(self) -> None:
        options = InMemoryOptionStore()
        config = ReceiverConfig(Settings(), options)
        original = config.get_or_create_callback_secret()

        rotated = config.rotate_callback_secret()

        assert rotated != original
        assert config.get_callback_secret() == rotated


class TestLicenseKeyConfig:
    def test_falls_back_to_settings(self) -> None:
        config = ReceiverConfig(Settings(SEOGEN_LICENSE_KEY=" LIC-1 "), InMemoryOptionStore())
        assert config.get_license_key() == "LIC-1"

    def test_stored_key_wins(self) -> None:
        options = InMemoryOptionStore()
        config = ReceiverConfig(Settings(SEOGEN_LICENSE_KEY="LIC-1"), options)

        config.set_license_key("  LIC-2 ")

        assert options.get(OPTION_LICENSE_KEY) == "LIC-2"
        assert config.get_license_key() == "LIC-2"


class TestOptionStore:
    def test_add_keeps_first_value(self) -> None:
        options = InMemoryOptionStore()

        assert options.add("name", "first") == "first"
        assert options.add("name", "second") == "first"

    def test_set_overwrites(self) -> None:
        options = InMemoryOptionStore({"name": "old"})
        options.set("name", "new")
        assert options.get("name") == "new"
