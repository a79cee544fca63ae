"""
Transcoding engine contract and its process-wide service wrapper.

The engine stages input bytes, runs one filter graph per ``execute`` call
and hands back output bytes. EngineService owns the single engine
instance: it is created and loaded lazily, and concurrent callers await
the same load instead of starting a second one.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from offset_player.errors import EngineNotReadyError

logger = logging.getLogger(__name__)

ProgressListener = Callable[[float], None]
LogListener = Callable[[str], None]


class TranscodingEngine(ABC):
    """Abstract transcoding engine.

    Implementations emit progress fractions and log lines through the
    registered listeners while ``execute`` runs.
    """

    def __init__(self) -> None:
        self._progress_listeners: list[ProgressListener] = []
        self._log_listeners: list[LogListener] = []

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self._progress_listeners.append(listener)

    def add_log_listener(self, listener: LogListener) -> None:
        self._log_listeners.append(listener)

    def _emit_progress(self, value: float) -> None:
        for listener in self._progress_listeners:
            listener(value)

    def _emit_log(self, line: str) -> None:
        for listener in self._log_listeners:
            listener(line)

    @abstractmethod
    async def load(self) -> None:
        """One-time initialisation.

        Raises:
            EngineNotReadyError: If the engine cannot be used
        """

    @abstractmethod
    async def write_input(self, name: str, data: bytes) -> None:
        """Stage input bytes under name."""

    @abstractmethod
    async def execute(self, args: list[str]) -> int:
        """Run one invocation and return its exit code (0 = success)."""

    @abstractmethod
    async def read_output(self, name: str) -> bytes:
        """Read bytes produced under name."""

    async def delete_file(self, name: str) -> None:
        """Remove a staged file. Optional; the default does nothing."""
        return None


EngineFactory = Callable[[], TranscodingEngine]


class EngineService:
    """Lazily-initialised single engine instance.

    Attributes:
        log_lines: Ring buffer of recent engine log lines
    """

    def __init__(self, factory: EngineFactory, log_buffer_lines: int = 200) -> None:
        """Initialize engine service.

        Args:
            factory: Creates the engine on first use
            log_buffer_lines: Size of the engine log ring buffer
        """
        self._factory = factory
        self._engine: TranscodingEngine | None = None
        self._loading: asyncio.Future[TranscodingEngine] | None = None
        self._progress_sink: ProgressListener | None = None
        self.log_lines: deque[str] = deque(maxlen=log_buffer_lines)

    @property
    def is_loaded(self) -> bool:
        return self._engine is not None

    async def get_engine(self) -> TranscodingEngine:
        """Return the loaded engine, loading it on first use.

        Raises:
            EngineNotReadyError: If loading failed. A later call retries.
        """
        if self._engine is not None:
            return self._engine

        if self._loading is None:
            self._loading = asyncio.ensure_future(self._load())

        loading = self._loading
        try:
            # shield: one caller giving up must not cancel the shared load
            return await asyncio.shield(loading)
        except EngineNotReadyError:
            if self._loading is loading:
                self._loading = None
            raise

    async def _load(self) -> TranscodingEngine:
        engine = self._factory()
        engine.add_log_listener(self._on_log)
        engine.add_progress_listener(self._on_progress)

        try:
            await engine.load()
        except EngineNotReadyError:
            raise
        except Exception as e:
            raise EngineNotReadyError(f"Transcoding engine failed to load: {e}") from e

        logger.info(f"Transcoding engine loaded: {type(engine).__name__}")
        self._engine = engine
        return engine

    def _on_log(self, line: str) -> None:
        self.log_lines.append(line)
        logger.debug(f"engine: {line}")

    def _on_progress(self, value: float) -> None:
        if self._progress_sink is not None:
            self._progress_sink(value)

    @contextmanager
    def progress_to(self, sink: ProgressListener) -> Iterator[None]:
        """Route engine progress to sink for the duration of one run."""
        self._progress_sink = sink
        try:
            yield
        finally:
            self._progress_sink = None

    def clear_logs(self) -> None:
        self.log_lines.clear()

    def log_tail(self, lines: int = 25) -> list[str]:
        """Most recent log lines, oldest first."""
        if lines <= 0:
            return []
        return list(self.log_lines)[-lines:]


_default_service: EngineService | None = None


def get_default_engine_service(
    ffmpeg_path: str = "ffmpeg",
    log_buffer_lines: int = 200,
) -> EngineService:
    """Process-wide EngineService backed by FFmpegEngine."""
    global _default_service
    if _default_service is None:
        from offset_player.export.ffmpeg_engine import FFmpegEngine

        _default_service = EngineService(
            lambda: FFmpegEngine(ffmpeg_path=ffmpeg_path),
            log_buffer_lines=log_buffer_lines,
        )
    return _default_service
