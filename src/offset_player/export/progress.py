"""
Monotonic progress presentation for engine progress events.

Engines may report values that regress, overshoot 1.0, or jump to ~1.0
right after start. The reporter clamps, never goes backwards, and drops
near-complete reports that arrive within the spurious window.

A fallback chain runs the engine more than once. Each run starts a new
attempt whose raw [0, 1] range is mapped onto what is left above the
value already shown, so a retry keeps moving the bar forward.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from offset_player.models.state import clamp

NEAR_COMPLETE = 0.999


class ProgressReporter:
    """Filters raw progress into a monotonic [0, 1] stream.

    Attributes:
        value: Last value forwarded to the sink
    """

    def __init__(
        self,
        sink: Callable[[float], None] | None = None,
        spurious_window_ms: float = 800.0,
        clock_ms: Callable[[], float] | None = None,
    ) -> None:
        self.value = 0.0
        self._sink = sink
        self._spurious_window_ms = spurious_window_ms
        self._clock_ms = clock_ms or (lambda: time.monotonic() * 1000.0)
        self._started_ms = self._clock_ms()
        self._base = 0.0
        self._final = True

    def begin_attempt(self, final: bool = True) -> None:
        """Start a new engine run.

        Args:
            final: False when another run may follow if this one fails.
                Near-complete reports of a non-final run are held back;
                only complete() finishes the bar.
        """
        self._base = self.value
        self._final = final
        self._started_ms = self._clock_ms()

    def report(self, raw: float) -> float | None:
        """Handle one raw engine report.

        Returns:
            The value forwarded to the sink, or None if suppressed
        """
        if raw != raw:  # NaN
            return None

        fraction = clamp(raw, 0.0, 1.0)
        if fraction >= NEAR_COMPLETE:
            elapsed = self._clock_ms() - self._started_ms
            if not self._final or elapsed < self._spurious_window_ms:
                return None

        value = self._base + (1.0 - self._base) * fraction
        if value <= self.value:
            return None

        self.value = value
        if self._sink is not None:
            self._sink(value)
        return value

    def complete(self) -> None:
        """Force a final 1.0 report after a successful run."""
        if self.value >= 1.0:
            return
        self.value = 1.0
        if self._sink is not None:
            self._sink(1.0)
