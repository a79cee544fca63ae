"""
Media collaborator contracts.

The sync loop never decodes or renders media itself. It talks to:
- two MediaElement instances (video = master clock, audio = follower)
- an optional DelayLine from the audio engine
- a FrameScheduler that fires callbacks once per display refresh
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any


class MediaElement(ABC):
    """A single independently-clocked playback timeline."""

    @property
    @abstractmethod
    def current_position(self) -> float:
        """Current playback position in seconds."""

    @abstractmethod
    def set_position(self, seconds: float) -> None:
        """Move the playback position.

        Raises:
            SeekRejectedError: If the element cannot seek in its current
                readiness state. Callers treat this as transient.
        """

    @property
    @abstractmethod
    def rate(self) -> float:
        """Current playback rate."""

    @rate.setter
    @abstractmethod
    def rate(self, value: float) -> None: ...

    @property
    @abstractmethod
    def duration(self) -> float | None:
        """Duration in seconds, or None while unknown."""

    @property
    @abstractmethod
    def paused(self) -> bool:
        """True while the element is not playing."""

    @abstractmethod
    async def play(self) -> None:
        """Start playback."""

    @abstractmethod
    def pause(self) -> None:
        """Pause playback."""


class DelayLine(ABC):
    """Audio-engine delay stage placed after the audio element."""

    @property
    @abstractmethod
    def max_delay(self) -> float:
        """Longest supported delay in seconds."""

    @abstractmethod
    def set_delay(self, seconds: float) -> None:
        """Set the delay in seconds (0 disables it)."""


FrameCallback = Callable[[], None]


class FrameScheduler(ABC):
    """One-shot frame callbacks, in the manner of requestAnimationFrame."""

    @abstractmethod
    def request_frame(self, callback: FrameCallback) -> Any:
        """Run callback on the next frame and return a cancellable handle."""

    @abstractmethod
    def cancel(self, handle: Any) -> None:
        """Cancel a pending callback. Unknown or fired handles are ignored."""
