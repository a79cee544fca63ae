"""
Pytest fixtures for offset player tests.

Includes fixtures for:
- Fake media elements and delay line (no real playback)
- Manually stepped frame scheduler and fake millisecond clock
- Scripted transcoding engine (no ffmpeg binary needed)
- Sample source media files
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from offset_player.config.export_config import ExportConfig
from offset_player.config.sync_config import SyncConfig
from offset_player.errors import EngineExecutionError, SeekRejectedError
from offset_player.export.engine import EngineService, TranscodingEngine
from offset_player.media.interfaces import DelayLine, FrameCallback, FrameScheduler, MediaElement
from offset_player.sync.controller import SyncController

# =============================================================================
# Media Fakes
# =============================================================================


class FakeMediaElement(MediaElement):
    """In-memory timeline. Positions only move when set."""

    def __init__(
        self,
        position: float = 0.0,
        duration: float | None = 60.0,
        rate: float = 1.0,
    ) -> None:
        self.position = position
        self._duration = duration
        self._rate = rate
        self._paused = True
        self.seeks: list[float] = []
        self.reject_seeks = 0
        self.play_calls = 0
        self.play_error: Exception | None = None

    @property
    def current_position(self) -> float:
        return self.position

    def set_position(self, seconds: float) -> None:
        if self.reject_seeks > 0:
            self.reject_seeks -= 1
            raise SeekRejectedError("not ready")
        self.position = seconds
        self.seeks.append(seconds)

    @property
    def rate(self) -> float:
        return self._rate

    @rate.setter
    def rate(self, value: float) -> None:
        self._rate = value

    @property
    def duration(self) -> float | None:
        return self._duration

    @property
    def paused(self) -> bool:
        return self._paused

    async def play(self) -> None:
        self.play_calls += 1
        if self.play_error is not None:
            raise self.play_error
        self._paused = False

    def pause(self) -> None:
        self._paused = True


class FakeDelayLine(DelayLine):
    """Records the delay it was asked for."""

    def __init__(self, max_delay: float = 1.0) -> None:
        self._max_delay = max_delay
        self.delay = 0.0

    @property
    def max_delay(self) -> float:
        return self._max_delay

    def set_delay(self, seconds: float) -> None:
        self.delay = seconds


class ManualFrameScheduler(FrameScheduler):
    """Frame scheduler advanced explicitly with step()."""

    def __init__(self) -> None:
        self.pending: dict[int, FrameCallback] = {}
        self._next_handle = 0

    def request_frame(self, callback: FrameCallback) -> int:
        self._next_handle += 1
        self.pending[self._next_handle] = callback
        return self._next_handle

    def cancel(self, handle: Any) -> None:
        self.pending.pop(handle, None)

    def step(self) -> int:
        """Run the callbacks pending at call time; returns how many ran."""
        due = list(self.pending.items())
        self.pending.clear()
        for _, callback in due:
            callback()
        return len(due)


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now_ms: float = 0.0) -> None:
        self.now_ms = now_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


@pytest.fixture
def clock() -> FakeClock:
    """Fake monotonic clock starting at 0 ms."""
    return FakeClock()


@pytest.fixture
def scheduler() -> ManualFrameScheduler:
    """Manually stepped frame scheduler."""
    return ManualFrameScheduler()


@pytest.fixture
def video() -> FakeMediaElement:
    """Video timeline parked at 5.0 s."""
    return FakeMediaElement(position=5.0, duration=60.0)


@pytest.fixture
def audio() -> FakeMediaElement:
    """Audio timeline at 0.0 s."""
    return FakeMediaElement(position=0.0, duration=60.0)


@pytest.fixture
def sync_config() -> SyncConfig:
    """Default sync configuration."""
    return SyncConfig()


@pytest.fixture
def controller(
    video: FakeMediaElement,
    audio: FakeMediaElement,
    scheduler: ManualFrameScheduler,
    sync_config: SyncConfig,
    clock: FakeClock,
) -> SyncController:
    """SyncController wired to fakes."""
    return SyncController(video, audio, scheduler, config=sync_config, clock_ms=clock)


# =============================================================================
# Transcoding Engine Fakes
# =============================================================================


class FakeEngine(TranscodingEngine):
    """Scripted transcoding engine.

    Each execute() pops the next entry of exit_codes (default 0). An entry
    that is an exception instance is raised instead. A zero exit writes
    ``output`` under the last argument (the output name).
    """

    def __init__(
        self,
        exit_codes: list[int | Exception] | None = None,
        output: bytes = b"exported-bytes",
        load_error: Exception | None = None,
        write_error: Exception | None = None,
        log_lines: list[str] | None = None,
        progress: list[float] | None = None,
    ) -> None:
        super().__init__()
        self.exit_codes = list(exit_codes or [])
        self.output = output
        self.load_error = load_error
        self.write_error = write_error
        self.log_lines = log_lines or []
        self.progress = progress or []
        self.gate: asyncio.Event | None = None

        self.load_calls = 0
        self.calls: list[list[str]] = []
        self.files: dict[str, bytes] = {}
        self.deleted: list[str] = []

    async def load(self) -> None:
        self.load_calls += 1
        await asyncio.sleep(0)
        if self.load_error is not None:
            raise self.load_error

    async def write_input(self, name: str, data: bytes) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.files[name] = data

    async def execute(self, args: list[str]) -> int:
        self.calls.append(list(args))
        for line in self.log_lines:
            self._emit_log(line)
        for value in self.progress:
            self._emit_progress(value)

        if self.gate is not None:
            await self.gate.wait()

        result = self.exit_codes.pop(0) if self.exit_codes else 0
        if isinstance(result, Exception):
            raise result
        if result == 0:
            self.files[args[-1]] = self.output
        return result

    async def read_output(self, name: str) -> bytes:
        if name not in self.files:
            raise EngineExecutionError(f"{name} not produced")
        return self.files[name]

    async def delete_file(self, name: str) -> None:
        self.deleted.append(name)
        self.files.pop(name, None)


@pytest.fixture
def fake_engine() -> FakeEngine:
    """Engine that succeeds on every run."""
    return FakeEngine()


@pytest.fixture
def engine_factory(fake_engine: FakeEngine) -> Callable[[], TranscodingEngine]:
    """Factory returning the fake_engine fixture."""
    return lambda: fake_engine


@pytest.fixture
def engine_service(engine_factory: Callable[[], TranscodingEngine]) -> EngineService:
    """EngineService over the fake engine."""
    return EngineService(engine_factory)


@pytest.fixture
def export_config() -> ExportConfig:
    """Default export configuration."""
    return ExportConfig()


# =============================================================================
# Source Media
# =============================================================================


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    """Small stand-in source file."""
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42source-media")
    return path
