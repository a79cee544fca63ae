"""
Media collaborator contracts and scheduling.

Components:
- MediaElement: timeline position/rate/play control
- DelayLine: audio-engine delay stage
- FrameScheduler / AsyncioFrameScheduler: per-refresh callbacks
"""

from __future__ import annotations

from offset_player.media.interfaces import DelayLine, FrameCallback, FrameScheduler, MediaElement
from offset_player.media.scheduling import AsyncioFrameScheduler

__all__ = [
    "AsyncioFrameScheduler",
    "DelayLine",
    "FrameCallback",
    "FrameScheduler",
    "MediaElement",
]
