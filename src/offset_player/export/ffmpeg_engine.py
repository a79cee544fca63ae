"""
ffmpeg subprocess implementation of the transcoding engine.

Files are staged in a private temporary directory that plays the role of
the engine's virtual filesystem. Each ``execute`` runs the ffmpeg binary
in that directory:
1. stderr lines are forwarded as log events
2. ``-progress pipe:1`` key/value output is turned into progress fractions
   relative to the first input's duration
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
import tempfile
from pathlib import Path

from offset_player.errors import EngineExecutionError, EngineNotReadyError, InputReadError
from offset_player.export.engine import TranscodingEngine

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")


def parse_duration(line: str) -> float | None:
    """Extract seconds from an ffmpeg ``Duration: HH:MM:SS.xx`` log line."""
    match = _DURATION_RE.search(line)
    if match is None:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


class FFmpegEngine(TranscodingEngine):
    """Runs ffmpeg as an asyncio subprocess.

    Attributes:
        ffmpeg_path: Binary name or path
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg") -> None:
        super().__init__()
        self.ffmpeg_path = ffmpeg_path
        self._binary: str | None = None
        self._temp_dir: tempfile.TemporaryDirectory | None = None
        self._input_duration_s: float | None = None

    async def load(self) -> None:
        """Locate the binary, check it runs, and create the work directory."""
        binary = shutil.which(self.ffmpeg_path)
        if binary is None:
            raise EngineNotReadyError(f"ffmpeg not found in PATH: {self.ffmpeg_path}")

        proc = await asyncio.create_subprocess_exec(
            binary,
            "-hide_banner",
            "-version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise EngineNotReadyError(f"ffmpeg -version failed: {stderr.decode(errors='replace')}")

        version_line = stdout.decode(errors="replace").splitlines()[:1]
        if version_line:
            self._emit_log(version_line[0])

        self._binary = binary
        self._temp_dir = tempfile.TemporaryDirectory(prefix="offset_player_")
        logger.info(f"ffmpeg engine ready: {binary}, workdir={self._temp_dir.name}")

    @property
    def work_dir(self) -> Path:
        if self._temp_dir is None:
            raise EngineNotReadyError("ffmpeg engine is not loaded")
        return Path(self._temp_dir.name)

    def _path(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ValueError(f"Invalid engine file name: {name!r}")
        return self.work_dir / name

    async def write_input(self, name: str, data: bytes) -> None:
        try:
            await asyncio.to_thread(self._path(name).write_bytes, data)
        except OSError as e:
            raise InputReadError(f"Cannot stage {name}: {e}") from e

    async def read_output(self, name: str) -> bytes:
        return await asyncio.to_thread(self._path(name).read_bytes)

    async def delete_file(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)

    async def execute(self, args: list[str]) -> int:
        if self._binary is None:
            raise EngineNotReadyError("ffmpeg engine is not loaded")

        cmd = [
            self._binary,
            "-hide_banner",
            "-nostdin",
            "-nostats",
            "-progress", "pipe:1",
            *args,
        ]
        logger.info(f"Running ffmpeg: {' '.join(cmd)}")
        self._input_duration_s = None

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(self.work_dir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EngineExecutionError(f"Failed to start ffmpeg: {e}") from e

        try:
            await asyncio.gather(
                self._read_progress(proc.stdout),
                self._read_log(proc.stderr),
            )
            return await proc.wait()
        except asyncio.CancelledError:
            logger.warning("ffmpeg run cancelled, killing process")
            proc.kill()
            await proc.wait()
            raise

    async def _read_log(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        async for raw in stream:
            line = raw.decode(errors="replace").rstrip()
            if not line:
                continue
            if self._input_duration_s is None:
                self._input_duration_s = parse_duration(line)
            self._emit_log(line)

    async def _read_progress(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        async for raw in stream:
            key, _, value = raw.decode(errors="replace").strip().partition("=")
            if key == "out_time_us":
                self._handle_out_time(value)
            elif key == "progress" and value == "end":
                self._emit_progress(1.0)

    def _handle_out_time(self, value: str) -> None:
        duration = self._input_duration_s
        if not duration:
            return
        try:
            out_time_s = int(value) / 1_000_000
        except ValueError:
            # ffmpeg prints N/A before the first frame
            return
        self._emit_progress(out_time_s / duration)

    def close(self) -> None:
        """Remove the work directory."""
        if self._temp_dir is not None:
            try:
                self._temp_dir.cleanup()
            except OSError as e:
                logger.warning(f"Error cleaning up ffmpeg workdir: {e}")
            self._temp_dir = None
        self._binary = None
