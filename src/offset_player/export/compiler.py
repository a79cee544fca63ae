"""
Filter-graph compiler for offset/rate/trim exports.

Chooses the cheapest processing mode that produces a correct file and
renders the corresponding ffmpeg argument list.

Decision order:
1. rate 1, offset 0, no trim: passthrough, engine not involved
2. rate 1, no trim, offset > 0: stream copy with -itsoffset on the audio input
3. rate 1, no trim, offset < 0 (or stream copy failed): video copy, audio
   filtered and re-encoded
4. anything else (or audio-only failed): full re-encode of both streams
"""

from __future__ import annotations

import logging
import math

from offset_player.config.export_config import ExportConfig
from offset_player.export.offset import audio_start_shift, format_seconds, plan_offset
from offset_player.export.tempo import decompose_tempo
from offset_player.models.export import (
    ExportMode,
    ExportRequest,
    FilterOp,
    FilterPlan,
    TrimRange,
)

logger = logging.getLogger(__name__)

RATE_EPSILON = 1e-6


def normalize_rate(rate: float) -> float:
    """Non-finite or non-positive rates fall back to 1.0."""
    if not math.isfinite(rate) or rate <= 0:
        return 1.0
    return rate


def normalize_offset(offset_sec: float) -> float:
    """Non-finite offsets fall back to 0.0."""
    if not math.isfinite(offset_sec):
        return 0.0
    return offset_sec


def trim_args(trim: TrimRange) -> str:
    """``start=..:end=..`` arguments for trim/atrim."""
    return f"start={format_seconds(trim.start_sec)}:end={format_seconds(trim.end_sec)}"


class FilterGraphCompiler:
    """Compiles ExportRequests into FilterPlans and engine arguments.

    Attributes:
        config: Encoder parameters and output bounds
    """

    def __init__(self, config: ExportConfig | None = None) -> None:
        self.config = config or ExportConfig()

    def plan_chain(self, request: ExportRequest) -> list[ExportMode]:
        """Modes to try for request, in order; later entries are fallbacks.

        Args:
            request: Export parameters (trim must already be valid)

        Returns:
            Non-empty list of ExportMode
        """
        rate = normalize_rate(request.playback_rate)
        offset = normalize_offset(request.offset_sec)
        unit_rate = abs(rate - 1.0) < RATE_EPSILON
        has_offset = abs(offset) >= RATE_EPSILON

        if unit_rate and not has_offset and not request.trim.is_requested:
            return [ExportMode.PASSTHROUGH]

        if unit_rate and not request.trim.is_requested:
            if offset > 0:
                return [
                    ExportMode.STREAM_COPY,
                    ExportMode.AUDIO_ONLY_REENCODE,
                    ExportMode.FULL_REENCODE,
                ]
            # audio leads: needs re-timestamping, container offset is not enough
            return [ExportMode.AUDIO_ONLY_REENCODE, ExportMode.FULL_REENCODE]

        return [ExportMode.FULL_REENCODE]

    def compile_plan(self, request: ExportRequest, mode: ExportMode) -> FilterPlan:
        """Build the FilterPlan for request under mode.

        Raises:
            ValueError: If mode cannot express request (e.g. copy with a trim)
        """
        rate = normalize_rate(request.playback_rate)
        offset = normalize_offset(request.offset_sec)

        if mode in (ExportMode.PASSTHROUGH, ExportMode.STREAM_COPY, ExportMode.AUDIO_ONLY_REENCODE):
            if request.trim.is_requested or abs(rate - 1.0) >= RATE_EPSILON:
                raise ValueError(f"{mode.value} cannot apply rate or trim changes")

        if mode is ExportMode.PASSTHROUGH or mode is ExportMode.STREAM_COPY:
            plan = FilterPlan(mode=mode, playback_rate=rate, offset_sec=offset)

        elif mode is ExportMode.AUDIO_ONLY_REENCODE:
            plan = FilterPlan(
                mode=mode,
                audio_chain=tuple(plan_offset(offset)),
                playback_rate=rate,
                offset_sec=offset,
            )

        else:
            plan = FilterPlan(
                mode=mode,
                video_chain=tuple(self._video_chain(request, rate)),
                audio_chain=tuple(self._audio_chain(request, rate, offset)),
                playback_rate=rate,
                offset_sec=offset,
            )

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Compiled {mode.value}: video={plan.video_filter} audio={plan.audio_filter} "
                f"audio_shift={audio_start_shift(plan_offset(offset)):+.3f}s"
            )
        return plan

    def _video_chain(self, request: ExportRequest, rate: float) -> list[FilterOp]:
        ops: list[FilterOp] = []
        trim = request.trim
        if trim.is_requested:
            ops.append(FilterOp(name="trim", args=trim_args(trim)))
            ops.append(FilterOp(name="setpts", args="PTS-STARTPTS"))
        if abs(rate - 1.0) >= RATE_EPSILON:
            # timestamp stretch, not a tempo filter
            ops.append(FilterOp(name="setpts", args=f"PTS/{format_seconds(rate)}"))
        ops.append(self.scale_filter())
        ops.append(FilterOp(name="fps", args=str(self.config.fps)))
        return ops

    def _audio_chain(self, request: ExportRequest, rate: float, offset: float) -> list[FilterOp]:
        ops: list[FilterOp] = []
        trim = request.trim
        if trim.is_requested:
            ops.append(FilterOp(name="atrim", args=trim_args(trim)))
            ops.append(FilterOp(name="asetpts", args="PTS-STARTPTS"))
        ops.extend(plan_offset(offset))
        ops.extend(decompose_tempo(rate))
        return ops

    def scale_filter(self) -> FilterOp:
        """Downscale to the configured bound, keeping aspect and even sizes.

        Landscape sources are bounded by width, portrait by height; -2 keeps
        the other dimension divisible by two for libx264.
        """
        w = self.config.max_width
        h = self.config.max_height
        return FilterOp(
            name="scale",
            args=f"'if(gte(iw,ih),min({w},iw),-2)':'if(gte(iw,ih),-2,min({h},ih))'",
        )

    def build_arguments(self, plan: FilterPlan, input_name: str, output_name: str) -> list[str]:
        """Render plan as an engine argument list.

        Raises:
            ValueError: For PASSTHROUGH, which never reaches the engine
        """
        if plan.mode is ExportMode.PASSTHROUGH:
            raise ValueError("Passthrough plans do not invoke the engine")

        if plan.mode is ExportMode.STREAM_COPY:
            return [
                "-y",
                "-i", input_name,
                "-itsoffset", f"{plan.offset_sec:.3f}",
                "-i", input_name,
                "-map", "0:v:0",
                "-map", "1:a:0",
                "-c", "copy",
                "-movflags", "+faststart",
                output_name,
            ]

        audio_args = ["-c:a", "aac", "-b:a", self.config.audio_bitrate]

        if plan.mode is ExportMode.AUDIO_ONLY_REENCODE:
            return [
                "-y",
                "-i", input_name,
                "-filter_complex", f"[0:a]{plan.audio_filter}[a]",
                "-map", "0:v:0",
                "-map", "[a]",
                "-c:v", "copy",
                *audio_args,
                "-movflags", "+faststart",
                output_name,
            ]

        filter_complex = f"[0:v]{plan.video_filter}[v];[0:a]{plan.audio_filter}[a]"
        return [
            "-y",
            "-i", input_name,
            "-filter_complex", filter_complex,
            "-map", "[v]",
            "-map", "[a]",
            "-c:v", "libx264",
            "-preset", self.config.video_preset,
            "-crf", str(self.config.crf),
            "-pix_fmt", "yuv420p",
            *audio_args,
            "-movflags", "+faststart",
            # streams are filtered independently; cap to the shorter one
            "-shortest",
            output_name,
        ]
