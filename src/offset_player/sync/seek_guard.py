"""
Seek token guard for the audio timeline.

Every seek increments a shared token. A rejected seek gets exactly one
retry on the next frame, and that retry is discarded if a newer seek has
been issued in the meantime (last request wins). A second rejection is
dropped: the periodic drift check re-seeks within ~100 ms anyway.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from offset_player.errors import SeekRejectedError
from offset_player.media.interfaces import FrameScheduler, MediaElement

logger = logging.getLogger(__name__)


class SeekOutcome(str, Enum):
    """Result of one seek attempt."""

    APPLIED = "applied"
    RETRY_SCHEDULED = "retry_scheduled"
    SUPERSEDED = "superseded"  # retry discarded, a newer seek exists
    DROPPED = "dropped"  # retry failed again


@dataclass
class SeekStats:
    """Seek counters for diagnostics."""

    applied: int = 0
    retries_scheduled: int = 0
    superseded: int = 0
    dropped: int = 0


class SeekGuard:
    """Last-request-wins seeking for a single media element.

    Attributes:
        element: Timeline being positioned
        stats: Outcome counters
    """

    def __init__(
        self,
        element: MediaElement,
        scheduler: FrameScheduler,
        on_outcome: Callable[[SeekOutcome], None] | None = None,
    ) -> None:
        """Initialize seek guard.

        Args:
            element: Media element to seek
            scheduler: Scheduler used to run retries on the next frame
            on_outcome: Optional observer for every outcome (metrics)
        """
        self.element = element
        self.stats = SeekStats()
        self._scheduler = scheduler
        self._on_outcome = on_outcome
        self._token = 0

    @property
    def token(self) -> int:
        """Current seek token."""
        return self._token

    def seek(self, target: float) -> SeekOutcome:
        """Issue a new authoritative seek.

        Args:
            target: Position in seconds (already clamped by the caller)

        Returns:
            APPLIED or RETRY_SCHEDULED
        """
        self._token += 1
        return self._attempt(target, self._token, allow_retry=True)

    def invalidate(self) -> None:
        """Supersede any pending retry without seeking."""
        self._token += 1

    def _attempt(self, target: float, token: int, allow_retry: bool) -> SeekOutcome:
        try:
            self.element.set_position(target)
        except SeekRejectedError as e:
            if allow_retry:
                self._scheduler.request_frame(lambda: self._retry(target, token))
                self.stats.retries_scheduled += 1
                logger.debug(f"Seek to {target:.3f}s rejected ({e}), retry scheduled token={token}")
                return self._report(SeekOutcome.RETRY_SCHEDULED)

            self.stats.dropped += 1
            logger.debug(f"Seek retry to {target:.3f}s rejected again, dropped token={token}")
            return self._report(SeekOutcome.DROPPED)

        self.stats.applied += 1
        return self._report(SeekOutcome.APPLIED)

    def _retry(self, target: float, token: int) -> SeekOutcome:
        if token != self._token:
            self.stats.superseded += 1
            logger.debug(
                f"Seek retry superseded: captured token={token}, current token={self._token}"
            )
            return self._report(SeekOutcome.SUPERSEDED)

        return self._attempt(target, token, allow_retry=False)

    def _report(self, outcome: SeekOutcome) -> SeekOutcome:
        if self._on_outcome is not None:
            self._on_outcome(outcome)
        return outcome
