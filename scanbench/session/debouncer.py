"""
Result debouncing.

Engines re-report a code on every frame while it stays in view. A
detection is surfaced when its value differs from the last accepted
value, or when the same value is seen again after the window elapsed.
"""

from __future__ import annotations

from typing import Optional

from scanbench.engines import DetectionEvent


class ResultDebouncer:
    """
    Suppresses repeated detections.

    Example:
        >>> debouncer = ResultDebouncer(window_ms=300)
        >>> debouncer.accept(DetectionEvent("A", "CODE128", 0))
        True
        >>> debouncer.accept(DetectionEvent("A", "CODE128", 10))
        False
    """

    def __init__(self, window_ms: float = 500) -> None:
        if window_ms < 0:
            raise ValueError("window_ms must be >= 0")
        self.window_ms = window_ms
        self._last_value: Optional[str] = None
        self._last_timestamp: Optional[float] = None

    @property
    def last_value(self) -> Optional[str]:
        return self._last_value

    @property
    def last_timestamp(self) -> Optional[float]:
        return self._last_timestamp

    def accept(self, event: DetectionEvent) -> bool:
        if (
            self._last_value == event.value
            and self._last_timestamp is not None
            and event.timestamp - self._last_timestamp < self.window_ms
        ):
            return False

        self._last_value = event.value
        self._last_timestamp = event.timestamp
        return True

    def reset(self) -> None:
        self._last_value = None
        self._last_timestamp = None
