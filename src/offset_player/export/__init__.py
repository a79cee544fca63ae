"""
Export module: bakes playback rate, offset and trim into a media file.

Components:
- decompose_tempo / plan_offset: filter chain building blocks
- FilterGraphCompiler: mode selection and ffmpeg arguments
- ExportCache / fingerprint_source: session memoization
- EngineService / FFmpegEngine: transcoding engine ownership
- MediaExporter: the export operation
"""

from __future__ import annotations

from offset_player.export.cache import ExportCache, ExportCacheKey
from offset_player.export.compiler import FilterGraphCompiler, normalize_offset, normalize_rate
from offset_player.export.engine import (
    EngineService,
    TranscodingEngine,
    get_default_engine_service,
)
from offset_player.export.exporter import MediaExporter
from offset_player.export.ffmpeg_engine import FFmpegEngine
from offset_player.export.fingerprint import SourceFingerprint, fingerprint_source
from offset_player.export.naming import export_file_name
from offset_player.export.offset import plan_offset
from offset_player.export.progress import ProgressReporter
from offset_player.export.tempo import decompose_tempo, tempo_factors

__all__ = [
    "EngineService",
    "ExportCache",
    "ExportCacheKey",
    "FFmpegEngine",
    "FilterGraphCompiler",
    "MediaExporter",
    "ProgressReporter",
    "SourceFingerprint",
    "TranscodingEngine",
    "decompose_tempo",
    "export_file_name",
    "fingerprint_source",
    "get_default_engine_service",
    "normalize_offset",
    "normalize_rate",
    "plan_offset",
    "tempo_factors",
]
