"""
Data models for the offset player.

This module provides data models for:
- State: PlaybackState, SyncSample, SyncPhase, SyncMode
- Export: TrimRange, ExportRequest, FilterOp, FilterPlan, ExportResult
"""

from __future__ import annotations

from offset_player.models.export import (
    ExportError,
    ExportErrorKind,
    ExportMode,
    ExportRequest,
    ExportResult,
    FilterOp,
    FilterPlan,
    TrimRange,
)
from offset_player.models.state import PlaybackState, SyncMode, SyncPhase, SyncSample, clamp

__all__ = [
    "ExportError",
    "ExportErrorKind",
    "ExportMode",
    "ExportRequest",
    "ExportResult",
    "FilterOp",
    "FilterPlan",
    "PlaybackState",
    "SyncMode",
    "SyncPhase",
    "SyncSample",
    "TrimRange",
    "clamp",
]
