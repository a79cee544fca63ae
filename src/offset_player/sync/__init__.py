"""
Live A/V synchronization module.

Components:
- SyncController: per-frame drift control loop and state machine
- SeekGuard: token-guarded seeks with a single retry
- PlaybackRateCoordinator: nominal rate for both timelines
"""

from __future__ import annotations

from offset_player.sync.controller import SyncController
from offset_player.sync.rate import PlaybackRateCoordinator
from offset_player.sync.seek_guard import SeekGuard, SeekOutcome, SeekStats

__all__ = [
    "PlaybackRateCoordinator",
    "SeekGuard",
    "SeekOutcome",
    "SeekStats",
    "SyncController",
]
