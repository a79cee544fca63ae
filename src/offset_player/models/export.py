"""
Pydantic data models for the export path.

Defines the request, filter plan and result contracts shared by the
filter-graph compiler, the export cache and the exporter.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from offset_player.errors import ExportFailedError

# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------


class ExportMode(str, Enum):
    """Processing strategy for one export, cheapest first."""

    PASSTHROUGH = "passthrough"  # source bytes returned verbatim, engine untouched
    STREAM_COPY = "stream_copy"  # remux with a container-level audio time offset
    AUDIO_ONLY_REENCODE = "audio_only_reencode"  # video copied, audio filtered
    FULL_REENCODE = "full_reencode"  # both streams filtered and encoded


class ExportErrorKind(str, Enum):
    """Classification of export failures."""

    ENGINE_NOT_READY = "engine_not_ready"  # engine load missing or failed
    INVALID_TRIM_RANGE = "invalid_trim_range"  # start >= end
    ENGINE_EXECUTION_FAILURE = "engine_execution_failure"  # filter graph run failed
    INPUT_READ_FAILURE = "input_read_failure"  # source bytes could not be staged
    EXPORT_BUSY = "export_busy"  # another export is already running


# -----------------------------------------------------------------------------
# Request Models
# -----------------------------------------------------------------------------


class TrimRange(BaseModel):
    """Optional trim window in source seconds.

    A trim is only requested when both bounds are present.
    """

    model_config = ConfigDict(frozen=True)

    start_sec: float | None = Field(default=None, ge=0.0, description="Trim start")
    end_sec: float | None = Field(default=None, ge=0.0, description="Trim end")

    @property
    def is_requested(self) -> bool:
        """True when both bounds are present."""
        return self.start_sec is not None and self.end_sec is not None

    @property
    def is_valid(self) -> bool:
        """False only for a requested trim whose start is not before its end."""
        if not self.is_requested:
            return True
        return self.start_sec < self.end_sec


class ExportRequest(BaseModel):
    """Parameters of one export."""

    model_config = ConfigDict(frozen=True)

    fingerprint: str = Field(..., description="Source identity key")
    playback_rate: float = Field(default=1.0, description="Speed multiplier")
    offset_sec: float = Field(default=0.0, description="Signed audio offset in seconds")
    trim: TrimRange = Field(default_factory=TrimRange)

    @property
    def is_trivial(self) -> bool:
        """True when the output would be identical to the source."""
        return (
            abs(self.playback_rate - 1.0) < 1e-6
            and abs(self.offset_sec) < 1e-6
            and not self.trim.is_requested
        )


# -----------------------------------------------------------------------------
# Filter Plan
# -----------------------------------------------------------------------------


class FilterOp(BaseModel):
    """A single filter in a chain, e.g. ``atempo=0.750``."""

    model_config = ConfigDict(frozen=True)

    name: str
    args: str | None = None

    def render(self) -> str:
        """Render in ffmpeg filter syntax."""
        if self.args is None:
            return self.name
        return f"{self.name}={self.args}"


class FilterPlan(BaseModel):
    """Compiled two-stream processing plan. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    mode: ExportMode
    video_chain: tuple[FilterOp, ...] = ()
    audio_chain: tuple[FilterOp, ...] = ()
    playback_rate: float = 1.0
    offset_sec: float = 0.0

    @property
    def video_filter(self) -> str:
        """Video chain as a filter string (``null`` when empty)."""
        if not self.video_chain:
            return "null"
        return ",".join(op.render() for op in self.video_chain)

    @property
    def audio_filter(self) -> str:
        """Audio chain as a filter string (``anull`` when empty)."""
        if not self.audio_chain:
            return "anull"
        return ",".join(op.render() for op in self.audio_chain)


# -----------------------------------------------------------------------------
# Result Models
# -----------------------------------------------------------------------------


class ExportError(BaseModel):
    """Structured, user-presentable export failure."""

    kind: ExportErrorKind = Field(..., description="Error classification")
    message: str = Field(..., description="Human-readable message")
    details: dict[str, Any] | None = Field(
        default=None, description="Additional context such as the engine log tail"
    )


class ExportResult(BaseModel):
    """Outcome of one export request."""

    success: bool
    data: bytes | None = None
    file_name: str | None = None
    mode: ExportMode | None = None
    cached: bool = False
    error: ExportError | None = None

    @classmethod
    def failed(
        cls,
        kind: ExportErrorKind,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> ExportResult:
        """Build a failed result."""
        return cls(
            success=False,
            error=ExportError(kind=kind, message=message, details=details),
        )

    def raise_for_error(self) -> ExportResult:
        """Raise ExportFailedError for failed results, else return self."""
        if not self.success and self.error is not None:
            raise ExportFailedError(self.error)
        return self
