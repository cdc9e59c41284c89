"""
==============================================================================
Settings and Preferences Tests
==============================================================================
"""

import pytest
from pydantic import ValidationError

from scanbench.catalog import QualityProfile
from scanbench.config import Settings
from scanbench.devices import Facing
from scanbench.preferences import InMemoryPreferenceStore, ScanPreferences
from scanbench.session import RetryPolicy


class TestSettings:
    """Tests for environment-backed settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.default_engine == "pyzbar"
        assert settings.default_profile == "standard"
        assert settings.debounce_window_ms == 500
        assert settings.barcode_formats_list == []

    def test_barcode_formats_are_normalized(self):
        settings = Settings(_env_file=None, barcode_formats='["qr-code", "ean_13", "Code128"]')

        assert settings.barcode_formats_list == ["QRCODE", "EAN13", "CODE128"]

    @pytest.mark.parametrize("raw", ["not json", '{"a": 1}'])
    def test_invalid_barcode_formats_accept_all(self, raw):
        settings = Settings(_env_file=None, barcode_formats=raw)

        assert settings.barcode_formats_list == []

    def test_unknown_environment_falls_back(self):
        settings = Settings(_env_file=None, app_env="Moonbase")

        assert settings.app_env == "development"

    def test_choices_are_lowercased(self):
        settings = Settings(_env_file=None, default_engine=" OpenCV-QR ")

        assert settings.default_engine == "opencv-qr"

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("SESSION_TIMEOUT_SECONDS", "30")

        settings = Settings(_env_file=None)

        assert settings.retry_max_attempts == 5
        assert settings.session_timeout_seconds == 30

    def test_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, retry_max_attempts=0)


class TestRetryPolicy:
    """Tests for the controller retry policy."""

    def test_from_settings_converts_units(self):
        settings = Settings(
            _env_file=None,
            retry_max_attempts=2,
            retry_backoff_ms=250,
            acquire_timeout_ms=3000,
            stop_timeout_ms=1500,
            session_timeout_seconds=0,
        )

        policy = RetryPolicy.from_settings(settings)

        assert policy == RetryPolicy(
            max_attempts=2, backoff=0.25, acquire_timeout=3.0, stop_timeout=1.5, session_timeout=None
        )

    def test_session_timeout_enabled(self):
        policy = RetryPolicy.from_settings(Settings(_env_file=None, session_timeout_seconds=60))

        assert policy.session_timeout == 60.0

    @pytest.mark.parametrize("kwargs", [{"max_attempts": 0}, {"backoff": -1}])
    def test_invalid_policy(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class TestPreferenceStore:
    """Tests for the in-memory preference store."""

    def test_starts_empty(self):
        assert InMemoryPreferenceStore().load() == ScanPreferences()

    def test_save_and_load(self):
        store = InMemoryPreferenceStore()

        store.save(ScanPreferences(engine="opencv-qr", profile="high", facing="user"))

        loaded = store.load()
        assert loaded.engine == "opencv-qr"
        assert loaded.profile is QualityProfile.HIGH
        assert loaded.facing is Facing.USER

    def test_blank_strings_become_none(self):
        preferences = ScanPreferences(engine="  ", device_id="")

        assert preferences.engine is None
        assert preferences.device_id is None
