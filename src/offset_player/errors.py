"""
Exceptions raised at collaborator boundaries.

Media elements raise SeekRejectedError when a position write is refused;
transcoding engines raise EngineError subclasses. The sync loop and the
exporter turn these into SeekOutcome / ExportResult values.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from offset_player.models.export import ExportError

__all__ = [
    "SeekRejectedError",
    "EngineError",
    "EngineNotReadyError",
    "EngineExecutionError",
    "InputReadError",
    "ExportFailedError",
]


class SeekRejectedError(Exception):
    """A media element refused a position write (e.g. not ready yet)."""


class EngineError(Exception):
    """Base class for transcoding engine failures."""


class EngineNotReadyError(EngineError):
    """Engine used before its one-time load completed, or the load failed."""


class EngineExecutionError(EngineError):
    """An engine run exited unsuccessfully."""

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class InputReadError(EngineError):
    """Source bytes could not be staged into the engine."""


class ExportFailedError(Exception):
    """Raised by ExportResult.raise_for_error()."""

    def __init__(self, error: ExportError) -> None:
        super().__init__(error.message)
        self.error = error
