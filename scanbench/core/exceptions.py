"""
Application Exception Handling

Two exception families:

- ScanError: classified capture/engine failures consumed by the session
  controller. Every adapter reports failures through this type so retry
  and fallback decisions never depend on message text.
- AppException: HTTP-facing errors with FastAPI integration.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ============================================
# SCAN ERROR TAXONOMY
# ============================================

class ErrorKind(str, Enum):
    """Classification of capture and engine failures."""

    PERMISSION_DENIED = "permission_denied"
    DEVICE_NOT_FOUND = "device_not_found"
    CONSTRAINT_REJECTED = "constraint_rejected"
    RESOURCE_BUSY = "resource_busy"
    ENGINE_INIT = "engine_init"
    DECODE_NOISE = "decode_noise"
    ACQUIRE_TIMEOUT = "acquire_timeout"
    UNKNOWN = "unknown"

    @property
    def is_transient(self) -> bool:
        """True when the same request is expected to succeed shortly."""
        return self in (ErrorKind.RESOURCE_BUSY, ErrorKind.DECODE_NOISE)

    @property
    def is_fatal(self) -> bool:
        """True when no retry or fallback may be attempted."""
        return self in (ErrorKind.PERMISSION_DENIED, ErrorKind.ENGINE_INIT)


class ScanError(Exception):
    """
    Classified failure raised by capture subsystems and engine adapters.

    Usage:
        raise ScanError(ErrorKind.RESOURCE_BUSY, "Camera 0 is still releasing")
        raise constraint_rejected("width 1920 below minimum", {"width": 1280})
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.kind = kind
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def transient(self) -> bool:
        return self.kind.is_transient

    def __repr__(self) -> str:
        return f"ScanError(kind={self.kind.value!r}, message={self.message!r})"


def permission_denied(message: str = "Camera access denied") -> ScanError:
    """Create permission denied error."""
    return ScanError(ErrorKind.PERMISSION_DENIED, message)


def device_not_found(device_id: Optional[str] = None) -> ScanError:
    """Create device not found error."""
    details = {"device_id": device_id} if device_id else {}
    message = f"Camera '{device_id}' not found" if device_id else "No camera available"
    return ScanError(ErrorKind.DEVICE_NOT_FOUND, message, details)


def constraint_rejected(reason: str, details: Optional[Dict[str, Any]] = None) -> ScanError:
    """Create constraint rejected error."""
    return ScanError(ErrorKind.CONSTRAINT_REJECTED, f"Constraint rejected: {reason}", details)


def resource_busy(device_id: Optional[str] = None) -> ScanError:
    """Create transient busy error."""
    details = {"device_id": device_id} if device_id else {}
    return ScanError(ErrorKind.RESOURCE_BUSY, "Capture device is busy", details)


def engine_init_failed(engine: str, reason: str) -> ScanError:
    """Create engine initialization error."""
    return ScanError(
        ErrorKind.ENGINE_INIT,
        f"Engine '{engine}' failed to initialize: {reason}",
        {"engine": engine}
    )


def acquire_timeout(timeout_seconds: float) -> ScanError:
    """Create acquisition timeout error."""
    return ScanError(
        ErrorKind.ACQUIRE_TIMEOUT,
        f"Acquisition did not complete within {timeout_seconds:.1f}s",
        {"timeout_seconds": timeout_seconds}
    )


# ============================================
# HTTP EXCEPTIONS
# ============================================

class AppException(Exception):
    """
    Unified application exception for API error scenarios.

    Provides consistent error response format across the entire API.

    Usage:
        raise AppException("Unknown engine", "ENGINE_NOT_FOUND", 404)

    Error Codes:
        Session:
            - ENGINE_NOT_FOUND (404)
            - INVALID_PROFILE (400)
            - INVALID_FOCUS_MODE (400)
            - INVALID_FACING (400)
            - SESSION_FAILED (409)
            - NO_ACTIVE_SESSION (409)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize application exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "ENGINE_NOT_FOUND")
            status_code: HTTP status code (default: 400)
            details: Additional error context (optional)
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        error_dict = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }

        if self.details:
            error_dict["error"]["details"] = self.details

        return error_dict


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    FastAPI exception handler for AppException.

    Converts AppException to consistent JSON error response.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)


# ============================================
# CONVENIENCE FACTORY FUNCTIONS
# ============================================

def engine_not_found(kind: str) -> AppException:
    """Create unknown engine exception."""
    return AppException(
        f"Engine '{kind}' is not registered",
        "ENGINE_NOT_FOUND",
        404,
        {"engine": kind}
    )


def invalid_profile(value: str) -> AppException:
    """Create invalid quality profile exception."""
    return AppException(
        f"Unknown quality profile: {value}",
        "INVALID_PROFILE",
        400,
        {"profile": value}
    )


def invalid_focus_mode(value: str) -> AppException:
    """Create invalid focus mode exception."""
    return AppException(
        f"Unknown focus mode: {value}",
        "INVALID_FOCUS_MODE",
        400,
        {"focus_mode": value}
    )


def invalid_facing(value: str) -> AppException:
    """Create invalid facing hint exception."""
    return AppException(
        f"Unknown camera facing: {value}",
        "INVALID_FACING",
        400,
        {"facing": value}
    )


def session_failed(kind: str, message: str) -> AppException:
    """Create session start failure exception."""
    return AppException(message, "SESSION_FAILED", 409, {"kind": kind})


def no_active_session() -> AppException:
    """Create exception for operations that need a prior session."""
    return AppException("No scan session has been started", "NO_ACTIVE_SESSION", 409)


_DEVICE_STATUS = {
    ErrorKind.DEVICE_NOT_FOUND: 404,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.RESOURCE_BUSY: 409,
}


def device_unavailable(error: ScanError) -> AppException:
    """Create exception for a device that could not be inspected."""
    return AppException(
        error.message,
        "DEVICE_UNAVAILABLE",
        _DEVICE_STATUS.get(error.kind, 400),
        {"kind": error.kind.value, **error.details}
    )
