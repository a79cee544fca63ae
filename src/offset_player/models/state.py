"""
State models for live offset playback.

- PlaybackState: user-owned offset/rate/drag settings for one session
- SyncSample: per-tick measurement of video vs. audio timeline positions
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar


class SyncPhase(str, Enum):
    """Lifecycle of the synchronization loop."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    DRAGGING = "dragging"


class SyncMode(str, Enum):
    """How positive offsets are realised during live playback."""

    SEEK_SYNC = "seek_sync"  # all offsets handled by seeking the audio timeline
    DELAY_LINE = "delay_line"  # positive offsets handled by an audio-engine delay line


def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp value into [lo, hi]."""
    return max(lo, min(hi, value))


def _require_finite(name: str, value: float) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number, got {value!r}")
    return value


@dataclass
class PlaybackState:
    """Playback settings owned by one player session.

    Offsets are signed: positive delays the audio relative to the video,
    negative advances it. Values written through the setters are clamped
    to the supported ranges.

    Attributes:
        offset_sec: Audio offset in seconds, range [-1.0, 1.0].
        playback_rate: Nominal rate for both timelines, range [0.1, 2.0].
        playing: Whether both timelines are playing.
        dragging: Whether the user is currently dragging the offset control.

    Invariants:
        - Transient rate corrections made by the sync loop are never
          written back into playback_rate.
    """

    offset_sec: float = 0.0
    playback_rate: float = 1.0
    playing: bool = False
    dragging: bool = False

    MIN_OFFSET_SEC: ClassVar[float] = -1.0
    MAX_OFFSET_SEC: ClassVar[float] = 1.0
    MIN_RATE: ClassVar[float] = 0.1
    MAX_RATE: ClassVar[float] = 2.0

    def __post_init__(self) -> None:
        self.set_offset(self.offset_sec)
        self.set_rate(self.playback_rate)

    def set_offset(self, offset_sec: float) -> float:
        """Store a clamped offset and return the stored value."""
        value = _require_finite("offset_sec", offset_sec)
        self.offset_sec = clamp(value, self.MIN_OFFSET_SEC, self.MAX_OFFSET_SEC)
        return self.offset_sec

    def set_rate(self, playback_rate: float) -> float:
        """Store a clamped playback rate and return the stored value."""
        value = _require_finite("playback_rate", playback_rate)
        self.playback_rate = clamp(value, self.MIN_RATE, self.MAX_RATE)
        return self.playback_rate


@dataclass(frozen=True)
class SyncSample:
    """One drift measurement, produced once per tick.

    Attributes:
        video_time_sec: Video timeline position (master clock).
        audio_time_sec: Audio timeline position.
        expected_audio_time_sec: video_time_sec - effective offset.
        drift_sec: audio_time_sec - expected_audio_time_sec.
        timestamp_ms: Monotonic clock reading when the sample was taken.
    """

    video_time_sec: float
    audio_time_sec: float
    expected_audio_time_sec: float
    drift_sec: float
    timestamp_ms: float

    @property
    def drift_ms(self) -> float:
        """Drift in milliseconds."""
        return self.drift_sec * 1000.0

    def format_debug(self) -> str:
        """One-line diagnostic string."""
        return (
            f"v={self.video_time_sec:.3f} a={self.audio_time_sec:.3f} "
            f"exp={self.expected_audio_time_sec:.3f} diff={self.drift_sec:.3f}"
        )
