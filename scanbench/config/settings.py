"""
==============================================================================
Application Settings Module
==============================================================================

Configuration management using Pydantic Settings.

This module implements the Singleton pattern to ensure a single global
configuration instance throughout the application lifecycle.

Features:
---------
- Environment variable loading with type validation
- .env file support for local development
- Scan tuning values (debounce, retry, timeouts) as configuration
- Thread-safe singleton implementation

Configuration Priority (highest to lowest):
------------------------------------------
1. Environment variables
2. .env file
3. Default values

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Module logger
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_name: Display name for the application
        app_env: Environment mode (development/staging/production)
        debug: Enable debug mode for verbose logging
        host: Server bind address
        port: Server port number
        cors_origins: Allowed CORS origins (JSON array string)
        default_engine: Engine kind used when none is requested
        default_profile: Quality tier used when none is requested
        default_focus_mode: Focus mode used when none is requested
        debounce_window_ms: Minimum gap before a repeated value is reported again
        retry_max_attempts: Acquisition attempts per candidate on busy hardware
        retry_backoff_ms: Delay between busy retries
        acquire_timeout_ms: Upper bound on a single acquisition attempt
        stop_timeout_ms: Upper bound on engine teardown
        session_timeout_seconds: Auto-stop running sessions (0 = never)
        scan_interval_ms: Decode period for frame-pull engines
        max_probe_devices: Capture indices probed during enumeration
        barcode_formats: Accepted symbologies (JSON array string)
        haptic_feedback: Ask presentation for a haptic pulse on results
        notification_duration_ms: How long presentation shows a result

    Example:
        >>> settings = Settings()
        >>> print(settings.app_name)
        'Scan Bench'
        >>> print(settings.scan_interval_seconds)
        0.1
    """

    # =========================================================================
    # PYDANTIC SETTINGS CONFIGURATION
    # =========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # =========================================================================
    # APPLICATION SETTINGS
    # =========================================================================
    app_name: str = Field(
        default="Scan Bench",
        description="Display name for the application"
    )

    app_env: str = Field(
        default="development",
        description="Environment mode: development, staging, production"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode for verbose logging"
    )

    # =========================================================================
    # SERVER SETTINGS
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Server bind address"
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Server port number"
    )

    cors_origins: str = Field(
        default='["*"]',
        description="Allowed CORS origins as JSON array string"
    )

    # =========================================================================
    # SESSION DEFAULTS
    # =========================================================================
    default_engine: str = Field(
        default="pyzbar",
        description="Engine kind used when neither caller nor preferences name one"
    )

    default_profile: str = Field(
        default="standard",
        description="Quality tier: low, standard, high, ultra"
    )

    default_focus_mode: str = Field(
        default="continuous",
        description="Focus mode: default, continuous, single-shot, macro"
    )

    # =========================================================================
    # SESSION TUNING
    # =========================================================================
    debounce_window_ms: int = Field(
        default=500,
        ge=0,
        le=60000,
        description="Same-value suppression window in milliseconds"
    )

    retry_max_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Acquisition attempts per candidate on transient failures"
    )

    retry_backoff_ms: int = Field(
        default=1000,
        ge=0,
        le=30000,
        description="Fixed delay between transient retries"
    )

    acquire_timeout_ms: int = Field(
        default=10000,
        ge=100,
        le=120000,
        description="Bound on a single acquisition attempt"
    )

    stop_timeout_ms: int = Field(
        default=5000,
        ge=100,
        le=60000,
        description="Bound on engine teardown"
    )

    session_timeout_seconds: int = Field(
        default=0,
        ge=0,
        le=86400,
        description="Stop a running session after this many seconds (0 = never)"
    )

    # =========================================================================
    # CAPTURE & DECODE SETTINGS
    # =========================================================================
    scan_interval_ms: int = Field(
        default=100,
        ge=10,
        le=5000,
        description="Decode period for frame-pull engines"
    )

    max_probe_devices: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Capture indices probed during device enumeration"
    )

    barcode_formats: str = Field(
        default='[]',
        description="Accepted symbologies as JSON array string (empty = all)"
    )

    # =========================================================================
    # PRESENTATION HINTS
    # =========================================================================
    haptic_feedback: bool = Field(
        default=True,
        description="Include a haptic pulse hint in result notifications"
    )

    notification_duration_ms: int = Field(
        default=2000,
        ge=0,
        le=60000,
        description="How long presentation should display a result"
    )

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        """
        Validate and normalize application environment.

        Args:
            value: Raw environment value

        Returns:
            Lowercase normalized environment name
        """
        valid_envs = {"development", "staging", "production"}
        normalized = value.lower().strip()

        if normalized not in valid_envs:
            logger.warning(
                f"Unknown environment '{value}', defaulting to 'development'"
            )
            return "development"

        return normalized

    @field_validator("default_engine", "default_profile", "default_focus_mode")
    @classmethod
    def normalize_choice(cls, value: str) -> str:
        """Lowercase and strip enumerated defaults."""
        return value.lower().strip()

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse CORS origins from JSON string to list.

        Returns:
            List of allowed origin strings
        """
        try:
            origins = json.loads(self.cors_origins)
            if isinstance(origins, list):
                return origins
            return ["*"]
        except json.JSONDecodeError:
            logger.warning(
                f"Invalid CORS origins JSON: {self.cors_origins}, "
                "defaulting to ['*']"
            )
            return ["*"]

    @property
    def barcode_formats_list(self) -> List[str]:
        """
        Parse accepted symbologies from JSON string to an uppercase list.

        Returns:
            List of symbology names; empty means every format is accepted
        """
        try:
            formats = json.loads(self.barcode_formats)
        except json.JSONDecodeError:
            logger.warning(
                f"Invalid barcode formats JSON: {self.barcode_formats}, "
                "accepting all formats"
            )
            return []

        if not isinstance(formats, list):
            return []

        return [str(fmt).upper().replace("_", "").replace("-", "") for fmt in formats]

    @property
    def scan_interval_seconds(self) -> float:
        """Get the frame-pull decode period in seconds."""
        return self.scan_interval_ms / 1000

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Settings(app_name={self.app_name!r}, "
            f"app_env={self.app_env!r}, "
            f"default_engine={self.default_engine!r}, "
            f"debug={self.debug})"
        )


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the global Settings instance (singleton pattern).

    Uses lru_cache to ensure only one Settings instance is created
    throughout the application lifecycle.

    Returns:
        Global Settings instance
    """
    settings = Settings()

    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")

    return settings
