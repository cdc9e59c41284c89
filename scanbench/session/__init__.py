"""
==============================================================================
Session Package - Scan Session Lifecycle
==============================================================================

Classes:
--------
- SessionController: the lifecycle state machine
- ConstraintNegotiator: builds the constraint fallback chain
- ResultDebouncer: suppresses repeated detections
- ScanSession / SessionSnapshot / RetryPolicy: session models

==============================================================================
"""

from .models import (
    FatalError,
    NotificationSink,
    RetryPolicy,
    ScanResult,
    ScanSession,
    SessionRequest,
    SessionSnapshot,
    SessionState,
    StateChange,
)
from .debouncer import ResultDebouncer
from .negotiator import ConstraintNegotiator
from .controller import SessionController

__all__ = [
    "ConstraintNegotiator",
    "FatalError",
    "NotificationSink",
    "ResultDebouncer",
    "RetryPolicy",
    "ScanResult",
    "ScanSession",
    "SessionController",
    "SessionRequest",
    "SessionSnapshot",
    "SessionState",
    "StateChange",
]
