"""
Output file naming for exports.
"""

from __future__ import annotations

from pathlib import PurePath

from offset_player.models.export import TrimRange

OUTPUT_SUFFIX = ".mp4"


def export_file_name(
    source_name: str,
    playback_rate: float,
    offset_sec: float,
    trim: TrimRange | None = None,
) -> str:
    """Derive the export file name from the source name.

    Tags are appended only for parameters that change the output, e.g.
    ``clip.mp4`` at 1.5x with +0.3 s becomes ``clip_rate1.50_offset0.300.mp4``.
    """
    stem = PurePath(source_name).stem or "export"
    tags = ""
    if abs(playback_rate - 1.0) >= 1e-6:
        tags += f"_rate{playback_rate:.2f}"
    if abs(offset_sec) >= 1e-6:
        tags += f"_offset{offset_sec:.3f}"
    if trim is not None and trim.is_requested:
        tags += f"_trim{trim.start_sec:.2f}-{trim.end_sec:.2f}"
    return f"{stem}{tags}{OUTPUT_SUFFIX}"
