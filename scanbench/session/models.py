"""
==============================================================================
Session Models Module
==============================================================================

State, value objects and the ScanSession aggregate owned by the
SessionController.

State machine:
--------------
    Idle -> Negotiating -> Acquiring <-> RetryingAcquire
                               |
                               v
                            Running -> Stopping -> Idle
    Acquiring / Running -> Failed

Idle and Failed are terminal; a new start() is allowed from either.

==============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Tuple

from scanbench.catalog import FocusMode, QualityProfile
from scanbench.config import Settings
from scanbench.core.exceptions import ErrorKind
from scanbench.devices import ConstraintCandidate, DeviceSelector


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(str, Enum):
    IDLE = "idle"
    NEGOTIATING = "negotiating"
    ACQUIRING = "acquiring"
    RETRYING_ACQUIRE = "retrying_acquire"
    RUNNING = "running"
    STOPPING = "stopping"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.IDLE, SessionState.FAILED)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry and timeout tuning for the controller.

    Attributes:
        max_attempts: Attempts per candidate when failures are transient
        backoff: Seconds between transient retries
        acquire_timeout: Seconds allowed for one acquisition attempt
        stop_timeout: Seconds allowed for engine teardown
        session_timeout: Seconds before a running session is stopped (None = never)
    """

    max_attempts: int = 3
    backoff: float = 1.0
    acquire_timeout: float = 10.0
    stop_timeout: float = 5.0
    session_timeout: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff < 0:
            raise ValueError("backoff must be >= 0")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            backoff=settings.retry_backoff_ms / 1000,
            acquire_timeout=settings.acquire_timeout_ms / 1000,
            stop_timeout=settings.stop_timeout_ms / 1000,
            session_timeout=float(settings.session_timeout_seconds) or None,
        )


@dataclass(frozen=True)
class SessionRequest:
    """Parameters of one start() call."""

    profile: QualityProfile
    selector: DeviceSelector
    focus_mode: FocusMode
    engine_kind: str


# =============================================================================
# NOTIFICATION PAYLOADS
# =============================================================================

@dataclass(frozen=True)
class ScanResult:
    value: str
    format: str
    timestamp: float
    session_id: str
    engine_kind: str
    received_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "format": self.format,
            "timestamp": self.timestamp,
            "session_id": self.session_id,
            "engine": self.engine_kind,
            "received_at": self.received_at.isoformat(),
        }


@dataclass(frozen=True)
class StateChange:
    previous_state: SessionState
    new_state: SessionState
    reason: str
    session_id: str
    changed_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "previous_state": self.previous_state.value,
            "new_state": self.new_state.value,
            "reason": self.reason,
            "session_id": self.session_id,
            "changed_at": self.changed_at.isoformat(),
        }


@dataclass(frozen=True)
class FatalError:
    kind: ErrorKind
    message: str
    session_id: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "session_id": self.session_id,
            "details": dict(self.details),
        }


class NotificationSink(Protocol):
    """Receives finalized results and lifecycle changes."""

    def on_result(self, result: ScanResult) -> None: ...

    def on_state_change(self, change: StateChange) -> None: ...

    def on_fatal_error(self, error: FatalError) -> None: ...


# =============================================================================
# AGGREGATE
# =============================================================================

@dataclass
class ScanSession:
    """
    The single mutable session aggregate.

    Only SessionController mutates it; everything else reads snapshots.
    """

    id: str
    request: SessionRequest
    state: SessionState = SessionState.IDLE
    chain: Tuple[ConstraintCandidate, ...] = ()
    active_constraint_index: int = 0
    retry_count: int = 0
    attempts: int = 0
    last_result: Optional[ScanResult] = None
    failure: Optional[FatalError] = None
    started_at: datetime = field(default_factory=utcnow)

    @property
    def active_engine_kind(self) -> str:
        return self.request.engine_kind

    @property
    def active_constraint(self) -> Optional[ConstraintCandidate]:
        if not self.chain:
            return None
        return self.chain[self.active_constraint_index]


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the controller's session."""

    state: SessionState
    session_id: Optional[str] = None
    active_engine_kind: Optional[str] = None
    last_result: Optional[ScanResult] = None
    active_constraint_index: int = 0
    chain_length: int = 0
    active_constraint: Optional[ConstraintCandidate] = None
    retry_count: int = 0
    attempts: int = 0
    failure: Optional[FatalError] = None

    @classmethod
    def of(cls, session: Optional[ScanSession]) -> "SessionSnapshot":
        if session is None:
            return cls(state=SessionState.IDLE)
        return cls(
            state=session.state,
            session_id=session.id,
            active_engine_kind=session.active_engine_kind,
            last_result=session.last_result,
            active_constraint_index=session.active_constraint_index,
            chain_length=len(session.chain),
            active_constraint=session.active_constraint,
            retry_count=session.retry_count,
            attempts=session.attempts,
            failure=session.failure,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "session_id": self.session_id,
            "active_engine": self.active_engine_kind,
            "last_result": self.last_result.to_dict() if self.last_result else None,
            "active_constraint_index": self.active_constraint_index,
            "chain_length": self.chain_length,
            "active_constraint": self.active_constraint.to_dict() if self.active_constraint else None,
            "retry_count": self.retry_count,
            "attempts": self.attempts,
            "failure": self.failure.to_dict() if self.failure else None,
        }
