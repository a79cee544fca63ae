"""
Export configuration from environment variables.

- Environment variables use EXPORT_ prefix
- Encoder defaults favour speed over size (ultrafast, CRF 30, 720p bound)
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class ExportConfig(BaseSettings):
    """Export pipeline configuration from environment variables.

    Attributes:
        ffmpeg_path: ffmpeg binary used by FFmpegEngine.
        max_width: Bound for the long edge of landscape output.
        max_height: Bound for the long edge of portrait output.
        fps: Fixed output frame rate on full re-encode.
        video_preset: libx264 preset.
        crf: libx264 constant rate factor.
        audio_bitrate: AAC bitrate.
        log_buffer_lines: Engine log ring buffer size.
        log_tail_lines: Lines of engine log attached to failures.
        spurious_progress_window_ms: Window after start in which a
            near-complete progress report is ignored.
        cache_max_entries: Optional LRU bound for the export cache.
        content_hash_fingerprint: Fingerprint sources by SHA-256 instead of
            name/size/mtime.
    """

    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg executable")
    max_width: int = Field(default=1280, ge=16, le=7680, description="Landscape width bound")
    max_height: int = Field(default=720, ge=16, le=4320, description="Portrait height bound")
    fps: int = Field(default=30, ge=1, le=120, description="Output frame rate")
    video_preset: str = Field(default="ultrafast", description="libx264 preset")
    crf: int = Field(default=30, ge=0, le=51, description="libx264 CRF")
    audio_bitrate: str = Field(default="128k", description="AAC bitrate")
    log_buffer_lines: int = Field(default=200, ge=1, le=10_000)
    log_tail_lines: int = Field(default=25, ge=1, le=1000)
    spurious_progress_window_ms: float = Field(default=800.0, ge=0.0, le=10_000.0)
    cache_max_entries: int | None = Field(
        default=None,
        ge=1,
        description="LRU bound for cached exports (None = unbounded)",
    )
    content_hash_fingerprint: bool = Field(
        default=False,
        description="Hash source content for cache keys",
    )

    model_config = {
        "env_prefix": "EXPORT_",
        "case_sensitive": False,
    }
