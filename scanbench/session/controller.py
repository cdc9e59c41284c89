"""
==============================================================================
Session Controller Module
==============================================================================

Owns the single scan session: negotiation, acquisition with retry and
fallback, detection delivery, and teardown.

Concurrency:
------------
- Every transition happens under one asyncio.Lock.
- start() and stop() bump a generation counter and cancel any in-flight
  negotiation/acquisition before queuing for the lock, so the newest
  request always wins.
- A start() while a session is live tears it down (Stopping -> Idle)
  before the new session reaches Acquiring.
- Detections and faults carry the session id they were bound to; anything
  from a superseded session is dropped.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from typing import Callable, FrozenSet, Iterable, Optional, Set, TypeVar

from scanbench.core import exceptions
from scanbench.core.exceptions import AppException, ErrorKind, ScanError
from scanbench.devices import CaptureSubsystem, ConstraintCandidate
from scanbench.engines import DetectionEvent, EngineAdapter, EngineContext, EngineRegistry
from .debouncer import ResultDebouncer
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
from .negotiator import ConstraintNegotiator


# Module logger
logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionController:
    """
    Lifecycle state machine for one scan session at a time.

    Example:
        >>> controller = SessionController(capture, registry, sink)
        >>> await controller.start(request)
        >>> controller.snapshot().state
        <SessionState.RUNNING: 'running'>
        >>> await controller.stop()
    """

    def __init__(
        self,
        capture: CaptureSubsystem,
        engines: EngineRegistry,
        sink: NotificationSink,
        policy: Optional[RetryPolicy] = None,
        negotiator: Optional[ConstraintNegotiator] = None,
        debounce_window_ms: float = 500,
        formats: Iterable[str] = (),
        scan_interval: float = 0.1,
    ) -> None:
        self._capture = capture
        self._engines = engines
        self._sink = sink
        self._policy = policy or RetryPolicy()
        self._negotiator = negotiator or ConstraintNegotiator()
        self._debouncer = ResultDebouncer(debounce_window_ms)
        self._formats: FrozenSet[str] = frozenset(formats)
        self._scan_interval = scan_interval

        self._lock = asyncio.Lock()
        self._generation = 0
        self._session: Optional[ScanSession] = None
        self._adapter: Optional[EngineAdapter] = None
        self._establish_task: Optional[asyncio.Task] = None
        self._timeout_task: Optional[asyncio.Task] = None
        self._fault_tasks: Set[asyncio.Task] = set()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._session.state if self._session else SessionState.IDLE

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def current_request(self) -> Optional[SessionRequest]:
        return self._session.request if self._session else None

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot.of(self._session)

    async def start(self, request: SessionRequest) -> SessionSnapshot:
        """
        Start a session, replacing any live one.

        Returns once the session reached Running or Failed, or was
        superseded by a newer start()/stop().

        Args:
            request: Profile, device selection, focus mode and engine

        Returns:
            SessionSnapshot after the call settled
        """
        generation = self._supersede()

        async with self._lock:
            if generation != self._generation:
                logger.debug("Start request superseded before it ran")
                return self.snapshot()

            if not self.state.is_terminal:
                await self._teardown("restart requested")

            if generation != self._generation:
                return self.snapshot()

            await self._run(request)

        return self.snapshot()

    async def stop(self, reason: str = "stop requested") -> SessionSnapshot:
        """
        Stop the current session.

        No-op when already Idle or Failed; last_result is left untouched.
        """
        self._supersede()

        async with self._lock:
            if self.state.is_terminal:
                logger.debug(f"Stop ignored in state {self.state.value}")
                return self.snapshot()
            await self._teardown(reason)

        return self.snapshot()

    async def switch_engine(self, engine_kind: str) -> SessionSnapshot:
        """Restart the current session on another engine."""
        request = self.current_request
        if request is None:
            raise LookupError("No session has been started")
        return await self.start(replace(request, engine_kind=engine_kind))

    async def shutdown(self) -> None:
        """Stop the session and wait for pending fault handlers."""
        await self.stop(reason="shutdown")
        if self._fault_tasks:
            await asyncio.gather(*self._fault_tasks, return_exceptions=True)

    # =========================================================================
    # SESSION RUN
    # =========================================================================

    def _supersede(self) -> int:
        self._generation += 1
        task = self._establish_task
        if task is not None and not task.done():
            logger.info("⏹️ Cancelling in-flight acquisition")
            task.cancel()
        return self._generation

    async def _run(self, request: SessionRequest) -> None:
        session = ScanSession(id=uuid.uuid4().hex[:12], request=request)
        self._session = session
        self._debouncer.reset()

        task = asyncio.get_running_loop().create_task(self._establish(session))
        self._establish_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            await self._teardown("start cancelled")
            raise
        finally:
            self._establish_task = None

        if task.cancelled():
            await self._teardown("superseded by a newer request")
            return

        error = task.exception()
        if error is None:
            return

        if not isinstance(error, ScanError):
            logger.error(f"❌ Unexpected error while starting session {session.id}: {error!r}")
            error = ScanError(ErrorKind.UNKNOWN, str(error) or type(error).__name__)
        await self._fail(session, error)

    async def _establish(self, session: ScanSession) -> None:
        request = session.request
        self._transition(SessionState.NEGOTIATING, "start requested")

        session.chain = self._negotiator.build_chain(
            request.profile, request.selector, request.focus_mode
        )
        logger.info(
            f"🎯 Session {session.id}: {len(session.chain)} candidate(s) "
            f"on engine '{request.engine_kind}'"
        )

        session.active_constraint_index = 0
        session.retry_count = 0
        self._transition(SessionState.ACQUIRING, "acquiring capture")

        # Enumeration errors fail the session from Acquiring.
        await self._log_devices()

        adapter = self._resolve_engine(request.engine_kind)
        self._adapter = adapter
        try:
            await adapter.prepare(self._make_context(session))
        except ScanError:
            raise
        except Exception as e:
            raise exceptions.engine_init_failed(request.engine_kind, str(e)) from e

        await self._acquire(session, adapter)

    async def _log_devices(self) -> None:
        try:
            devices = await self._capture.list_devices()
        except ScanError:
            raise
        except Exception as e:
            logger.warning(f"⚠️ Device enumeration failed: {e}")
            return

        if devices:
            logger.info(f"📷 {len(devices)} camera(s): " + ", ".join(d.label for d in devices))
        else:
            logger.warning("⚠️ No local cameras enumerated")

    def _resolve_engine(self, kind: str) -> EngineAdapter:
        try:
            return self._engines.get(kind)
        except AppException as e:
            raise exceptions.engine_init_failed(kind, e.message) from e

    async def _acquire(self, session: ScanSession, adapter: EngineAdapter) -> None:
        """
        Walk the candidate chain.

        Transient failures retry the same candidate up to max_attempts
        times; other non-fatal failures advance to the next candidate;
        fatal failures and an exhausted chain propagate.
        """
        policy = self._policy

        while True:
            candidate = session.chain[session.active_constraint_index]
            session.attempts += 1
            logger.info(
                f"📸 Attempt {session.retry_count + 1}/{policy.max_attempts} "
                f"on candidate {session.active_constraint_index + 1}/{len(session.chain)}: "
                f"{candidate.describe()}"
            )

            try:
                await self._attempt(adapter, candidate)
            except ScanError as e:
                logger.warning(f"⚠️ Acquisition failed ({e.kind.value}): {e.message}")
                await self._release_adapter()

                if e.kind.is_fatal:
                    raise

                if e.transient and session.retry_count + 1 < policy.max_attempts:
                    session.retry_count += 1
                    self._transition(
                        SessionState.RETRYING_ACQUIRE,
                        f"{e.kind.value}, retry {session.retry_count} in {policy.backoff:.2f}s",
                    )
                    await asyncio.sleep(policy.backoff)
                    self._transition(SessionState.ACQUIRING, "retrying acquisition")
                    continue

                if session.active_constraint_index + 1 < len(session.chain):
                    session.active_constraint_index += 1
                    session.retry_count = 0
                    self._transition(SessionState.ACQUIRING, "falling back to next candidate")
                    continue

                raise
            else:
                self._transition(SessionState.RUNNING, f"acquired {candidate.describe()}")
                self._arm_session_timeout(session)
                return

    async def _attempt(self, adapter: EngineAdapter, candidate: ConstraintCandidate) -> None:
        timeout = self._policy.acquire_timeout
        try:
            await asyncio.wait_for(adapter.start(candidate), timeout=timeout)
        except asyncio.TimeoutError:
            raise exceptions.acquire_timeout(timeout) from None
        except ScanError:
            raise
        except Exception as e:
            raise ScanError(ErrorKind.UNKNOWN, str(e) or type(e).__name__) from e

    # =========================================================================
    # TEARDOWN / FAILURE
    # =========================================================================

    async def _teardown(self, reason: str) -> None:
        if self.state.is_terminal:
            return
        self._transition(SessionState.STOPPING, reason)
        self._cancel_session_timeout()
        await self._release_adapter()
        self._adapter = None
        self._transition(SessionState.IDLE, reason)

    async def _fail(self, session: ScanSession, error: ScanError) -> None:
        self._cancel_session_timeout()
        await self._release_adapter()
        self._adapter = None

        failure = FatalError(
            kind=error.kind,
            message=error.message,
            session_id=session.id,
            details=dict(error.details),
        )
        session.failure = failure
        self._transition(SessionState.FAILED, error.message)
        logger.error(f"❌ Session {session.id} failed ({error.kind.value}): {error.message}")
        self._notify(self._sink.on_fatal_error, failure)

    async def _release_adapter(self) -> None:
        adapter = self._adapter
        if adapter is None:
            return
        try:
            await asyncio.wait_for(adapter.stop(), timeout=self._policy.stop_timeout)
        except asyncio.TimeoutError:
            logger.error(f"❌ {adapter!r} did not stop within {self._policy.stop_timeout:.1f}s")
        except Exception:
            logger.exception(f"Error while stopping {adapter!r}")

    # =========================================================================
    # SESSION TIMEOUT
    # =========================================================================

    def _arm_session_timeout(self, session: ScanSession) -> None:
        timeout = self._policy.session_timeout
        if not timeout:
            return
        self._timeout_task = asyncio.get_running_loop().create_task(
            self._expire(session.id, timeout)
        )

    def _cancel_session_timeout(self) -> None:
        task = self._timeout_task
        self._timeout_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _expire(self, session_id: str, timeout: float) -> None:
        await asyncio.sleep(timeout)
        session = self._session
        if session is None or session.id != session_id or session.state is not SessionState.RUNNING:
            return
        logger.info(f"⏰ Session {session_id} timed out after {timeout:.0f}s")
        await self.stop(reason="timeout")

    # =========================================================================
    # ENGINE CALLBACKS
    # =========================================================================

    def _make_context(self, session: ScanSession) -> EngineContext:
        session_id = session.id
        return EngineContext(
            session_id=session_id,
            emit=lambda event: self._on_detection(session_id, event),
            report_fault=lambda error: self._on_fault(session_id, error),
            capture=self._capture,
            scan_interval=self._scan_interval,
            formats=self._formats,
        )

    def _on_detection(self, session_id: str, event: DetectionEvent) -> None:
        session = self._session
        if session is None or session.id != session_id:
            logger.debug(f"Dropped detection from stale session {session_id}")
            return
        if session.state is not SessionState.RUNNING:
            return

        if not self._debouncer.accept(event):
            return

        result = ScanResult(
            value=event.value,
            format=event.format,
            timestamp=event.timestamp,
            session_id=session_id,
            engine_kind=session.active_engine_kind,
        )
        session.last_result = result
        logger.info(f"✅ Detected: {result.value} ({result.format})")
        self._notify(self._sink.on_result, result)

    def _on_fault(self, session_id: str, error: ScanError) -> None:
        task = asyncio.get_running_loop().create_task(self._fail_running(session_id, error))
        self._fault_tasks.add(task)
        task.add_done_callback(self._fault_tasks.discard)

    async def _fail_running(self, session_id: str, error: ScanError) -> None:
        async with self._lock:
            session = self._session
            if session is None or session.id != session_id:
                return
            if session.state is not SessionState.RUNNING:
                return
            logger.warning(f"⚠️ Engine fault on running session {session_id}: {error.message}")
            await self._fail(session, error)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _transition(self, new_state: SessionState, reason: str) -> None:
        session = self._session
        if session is None:
            return
        previous = session.state
        if previous is new_state:
            logger.debug(f"Session {session.id} stays {new_state.value}: {reason}")
            return
        session.state = new_state
        logger.info(f"🔄 Session {session.id}: {previous.value} → {new_state.value} ({reason})")
        self._notify(
            self._sink.on_state_change,
            StateChange(
                previous_state=previous,
                new_state=new_state,
                reason=reason,
                session_id=session.id,
            ),
        )

    def _notify(self, method: Callable[[T], None], payload: T) -> None:
        try:
            method(payload)
        except Exception:
            logger.exception(f"Notification sink failed on {type(payload).__name__}")

