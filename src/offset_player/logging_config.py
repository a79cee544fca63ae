"""
Focused logging configuration for debugging A/V sync, seeks, and export.

Usage:
  Set LOG_FOCUS=1 environment variable to enable focused logging.
  Only logs from the sync loop, seek guard and export path will be shown
  at LOG_LEVEL. Other modules will be set to WARNING level to reduce noise.

Modules included in focused logging:
  - offset_player.sync.controller (drift loop, state machine)
  - offset_player.sync.seek_guard (seek tokens and retries)
  - offset_player.export.exporter (mode chain, cache)
  - offset_player.export.engine (engine load, engine log)
  - offset_player.export.ffmpeg_engine (ffmpeg subprocess)

Example:
  LOG_LEVEL=DEBUG LOG_FOCUS=1 python -m your_app 2>&1 | grep -E "$(pattern sync)"
"""

import logging
import os

FOCUSED_MODULES = [
    "offset_player.sync.controller",
    "offset_player.sync.seek_guard",
    "offset_player.export.exporter",
    "offset_player.export.engine",
    "offset_player.export.ffmpeg_engine",
]


def configure_focused_logging() -> None:
    """Configure logging to focus on sync and export modules.

    When LOG_FOCUS=1 is set:
    - Focused modules log at LOG_LEVEL (default INFO)
    - Other modules log at WARNING only
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_focus = os.getenv("LOG_FOCUS", "0") == "1"

    # Millisecond timestamps for drift timeline analysis
    log_format = "%(asctime)s.%(msecs)03d | %(name)s | %(levelname)s | %(message)s"
    date_format = "%H:%M:%S"

    logging.basicConfig(
        level=log_level if not log_focus else logging.WARNING,
        format=log_format,
        datefmt=date_format,
        force=True,
    )

    if not log_focus:
        return

    for module in FOCUSED_MODULES:
        logging.getLogger(module).setLevel(log_level)

    logging.getLogger().warning(
        f"Focused logging enabled: {', '.join(FOCUSED_MODULES)} at {log_level}"
    )


# Predefined log filter patterns for grep
LOG_PATTERNS = {
    "sync": [
        "SYNC",
        "Playback started",
        "Playback stopped",
        "Sync mode changed",
        "Offset drag",
    ],
    "seek": [
        "Corrective seek",
        "Seek to",
        "Seek retry",
        "superseded",
        "dropped token",
    ],
    "export": [
        "Export attempt",
        "Export mode",
        "Export finished",
        "Export cache hit",
        "Export passthrough",
        "Running ffmpeg",
        "Transcoding engine",
    ],
}


def get_grep_pattern(focus: str) -> str:
    """Get grep pattern for filtering logs.

    Args:
        focus: One of 'sync', 'seek', 'export', or 'all'

    Returns:
        Grep-compatible regex pattern (empty for unknown focus)
    """
    if focus == "all":
        all_patterns = []
        for patterns in LOG_PATTERNS.values():
            all_patterns.extend(patterns)
        return "|".join(all_patterns)

    patterns = LOG_PATTERNS.get(focus, [])
    return "|".join(patterns)
