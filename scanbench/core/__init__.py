"""
==============================================================================
Core Package
==============================================================================

Core infrastructure for the application.

This package provides:
- Classified scan errors (ScanError / ErrorKind) used by the session core
- HTTP exception handling with consistent error responses
- FastAPI dependencies wiring the scan runtime into routes

Usage:
------
    from scanbench.core import exceptions
    raise exceptions.resource_busy("0")

==============================================================================
"""

from .exceptions import (
    AppException,
    ErrorKind,
    ScanError,
    register_exception_handlers,
)

__all__ = [
    "AppException",
    "ErrorKind",
    "ScanError",
    "register_exception_handlers",
]
