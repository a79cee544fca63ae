"""
Export runner: bakes rate, offset and trim into a new media file.

Flow per request:
1. Reject while another export runs, reject invalid trims
2. Passthrough shortcut (source bytes, engine untouched)
3. Cache lookup by fingerprint + parameters
4. Stage input under a per-run unique name
5. Walk the compiler's fallback chain until one mode succeeds
6. Read output, clean up staged files, cache the result

Failures come back as ExportResult values with a user-facing message;
engine failures carry the tail of the engine log.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections.abc import Callable
from pathlib import Path

from offset_player.config.export_config import ExportConfig
from offset_player.errors import EngineError, EngineNotReadyError
from offset_player.export.cache import ExportCache
from offset_player.export.compiler import FilterGraphCompiler, normalize_offset, normalize_rate
from offset_player.export.engine import EngineService, TranscodingEngine, get_default_engine_service
from offset_player.export.fingerprint import fingerprint_source
from offset_player.export.naming import export_file_name
from offset_player.export.progress import ProgressReporter
from offset_player.metrics.prometheus import PlayerMetrics
from offset_player.models.export import (
    ExportError,
    ExportErrorKind,
    ExportMode,
    ExportRequest,
    ExportResult,
    TrimRange,
)

logger = logging.getLogger(__name__)


def run_stamp() -> str:
    """Per-run suffix: millisecond timestamp plus random hex."""
    return f"{int(time.time() * 1000)}_{secrets.token_hex(6)}"


class MediaExporter:
    """Serialised export operation for one session.

    Attributes:
        config: Export configuration
        engine_service: Shared engine owner
        compiler: Filter-graph compiler
        cache: Session export cache
    """

    def __init__(
        self,
        engine_service: EngineService | None = None,
        compiler: FilterGraphCompiler | None = None,
        cache: ExportCache | None = None,
        config: ExportConfig | None = None,
        metrics: PlayerMetrics | None = None,
    ) -> None:
        self.config = config or ExportConfig()
        self.engine_service = engine_service or get_default_engine_service(
            ffmpeg_path=self.config.ffmpeg_path,
            log_buffer_lines=self.config.log_buffer_lines,
        )
        self.compiler = compiler or FilterGraphCompiler(self.config)
        self.cache = cache if cache is not None else ExportCache(self.config.cache_max_entries)
        self.metrics = metrics
        self._busy = False

    @property
    def busy(self) -> bool:
        """True while an export is running."""
        return self._busy

    def make_request(
        self,
        source: Path,
        playback_rate: float = 1.0,
        offset_sec: float = 0.0,
        trim: TrimRange | None = None,
    ) -> ExportRequest:
        """Build an ExportRequest, fingerprinting source.

        Raises:
            OSError: If source cannot be stat'ed (or read, with content hashing)
        """
        fingerprint = fingerprint_source(
            source,
            content_hash=self.config.content_hash_fingerprint,
        )
        return ExportRequest(
            fingerprint=fingerprint.key,
            playback_rate=normalize_rate(playback_rate),
            offset_sec=normalize_offset(offset_sec),
            trim=trim or TrimRange(),
        )

    async def export(
        self,
        source: Path,
        playback_rate: float = 1.0,
        offset_sec: float = 0.0,
        trim: TrimRange | None = None,
        on_progress: Callable[[float], None] | None = None,
    ) -> ExportResult:
        """Export source with the given parameters.

        Cancelling the awaiting task stops the engine run; staged files are
        still cleaned up.

        Args:
            source: Source media file
            playback_rate: Speed multiplier
            offset_sec: Signed audio offset (+ delays audio)
            trim: Optional trim window
            on_progress: Receives monotonic progress in [0, 1]

        Returns:
            ExportResult (check ``success`` or call ``raise_for_error()``)
        """
        if self._busy:
            logger.warning("Export rejected: another export is running")
            return ExportResult.failed(
                ExportErrorKind.EXPORT_BUSY,
                "Another export is already in progress.",
            )

        trim = trim or TrimRange()
        if not trim.is_valid:
            return ExportResult.failed(
                ExportErrorKind.INVALID_TRIM_RANGE,
                f"Trim start ({trim.start_sec:.3f}s) must be before trim end "
                f"({trim.end_sec:.3f}s).",
            )

        self._busy = True
        started = time.monotonic()
        try:
            result = await self._run(source, playback_rate, offset_sec, trim, on_progress)
        finally:
            self._busy = False

        if self.metrics is not None:
            self.metrics.record_export(
                mode=result.mode.value if result.mode else "none",
                status="success" if result.success else "failed",
                duration_seconds=time.monotonic() - started,
            )
        return result

    async def _run(
        self,
        source: Path,
        playback_rate: float,
        offset_sec: float,
        trim: TrimRange,
        on_progress: Callable[[float], None] | None,
    ) -> ExportResult:
        try:
            request = self.make_request(source, playback_rate, offset_sec, trim)
        except OSError as e:
            logger.error(f"Cannot read source {source}: {e}")
            return ExportResult.failed(
                ExportErrorKind.INPUT_READ_FAILURE,
                "Failed to read the input file.",
                {"reason": str(e)},
            )

        chain = self.compiler.plan_chain(request)
        file_name = export_file_name(source.name, request.playback_rate, request.offset_sec, trim)

        if chain[0] is ExportMode.PASSTHROUGH:
            try:
                data = await asyncio.to_thread(source.read_bytes)
            except OSError as e:
                return ExportResult.failed(
                    ExportErrorKind.INPUT_READ_FAILURE,
                    "Failed to read the input file.",
                    {"reason": str(e)},
                )
            logger.info(f"Export passthrough: {source.name} unchanged")
            return ExportResult(
                success=True,
                data=data,
                file_name=source.name,
                mode=ExportMode.PASSTHROUGH,
            )

        cached = self.cache.get(request)
        if self.metrics is not None:
            self.metrics.record_cache_lookup(hit=cached is not None)
        if cached is not None:
            logger.info(f"Export cache hit: {file_name}")
            return cached.model_copy(update={"cached": True})

        try:
            engine = await self.engine_service.get_engine()
        except EngineNotReadyError as e:
            logger.error(f"Transcoding engine not ready: {e}")
            return ExportResult.failed(
                ExportErrorKind.ENGINE_NOT_READY,
                "The transcoding engine could not be loaded.",
                {"reason": str(e)},
            )

        self.engine_service.clear_logs()
        stamp = run_stamp()
        input_name = f"input_{stamp}.mp4"
        output_name = f"output_{stamp}.mp4"
        reporter = ProgressReporter(
            on_progress,
            spurious_window_ms=self.config.spurious_progress_window_ms,
        )

        try:
            try:
                data = await asyncio.to_thread(source.read_bytes)
                await engine.write_input(input_name, data)
            except (OSError, EngineError) as e:
                logger.error(f"Failed to stage input {source.name}: {e}")
                return ExportResult.failed(
                    ExportErrorKind.INPUT_READ_FAILURE,
                    "Failed to read the input file.",
                    {"reason": str(e)},
                )

            with self.engine_service.progress_to(reporter.report):
                result = await self._run_chain(
                    engine, request, chain, input_name, output_name, reporter
                )

            if not result.success:
                return result

            reporter.complete()
            result = result.model_copy(update={"file_name": file_name})
            self.cache.put(request, result)
            logger.info(
                f"Export finished: {file_name}, mode={result.mode.value}, "
                f"size={len(result.data or b'')} bytes"
            )
            return result
        finally:
            await self._cleanup(engine, input_name, output_name)

    async def _run_chain(
        self,
        engine: TranscodingEngine,
        request: ExportRequest,
        chain: list[ExportMode],
        input_name: str,
        output_name: str,
        reporter: ProgressReporter,
    ) -> ExportResult:
        """Try each mode in order; the first success wins."""
        exit_code: int | None = None
        reason = ""

        for index, mode in enumerate(chain):
            reporter.begin_attempt(final=index == len(chain) - 1)
            plan = self.compiler.compile_plan(request, mode)
            args = self.compiler.build_arguments(plan, input_name, output_name)
            logger.info(f"Export attempt: mode={mode.value}")

            try:
                exit_code = await engine.execute(args)
            except EngineError as e:
                exit_code = getattr(e, "exit_code", None)
                reason = str(e)
            else:
                if exit_code == 0:
                    try:
                        data = await engine.read_output(output_name)
                    except (OSError, EngineError) as e:
                        reason = f"output unreadable: {e}"
                    else:
                        return ExportResult(success=True, data=data, mode=mode)
                else:
                    reason = f"exit code {exit_code}"

            logger.warning(f"Export mode {mode.value} failed ({reason})")

        tail = self.engine_service.log_tail(self.config.log_tail_lines)
        message = "Export failed."
        if tail:
            message = "Export failed.\n\nFFmpeg log:\n" + "\n".join(tail)
        logger.error(message)

        return ExportResult(
            success=False,
            mode=chain[-1],
            error=ExportError(
                kind=ExportErrorKind.ENGINE_EXECUTION_FAILURE,
                message=message,
                details={"log_tail": tail, "exit_code": exit_code, "reason": reason},
            ),
        )

    async def _cleanup(self, engine: TranscodingEngine, *names: str) -> None:
        """Best-effort removal of staged files."""
        for name in names:
            try:
                await engine.delete_file(name)
            except Exception as e:
                logger.debug(f"Cleanup of {name} failed: {e}")
