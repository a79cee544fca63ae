"""
Real-time synchronization of a follower audio timeline to the video clock.

Keeps ``audio_time ~= video_time - offset`` while playing:
- Video is the master clock and is never repositioned here
- Drift above the hard threshold is fixed with a guarded corrective seek
- Below the threshold the audio rate stays pinned at the nominal rate
  (or, with rate nudging enabled, is bent proportionally)
- Dragging the offset control suspends all correction until drag end

State machine:
    stopped -> starting -> running <-> dragging -> running -> stopped
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from typing import Any

from offset_player.config.sync_config import SyncConfig
from offset_player.media.interfaces import DelayLine, FrameScheduler, MediaElement
from offset_player.metrics.prometheus import PlayerMetrics
from offset_player.models.state import PlaybackState, SyncMode, SyncPhase, SyncSample, clamp
from offset_player.sync.rate import PlaybackRateCoordinator
from offset_player.sync.seek_guard import SeekGuard, SeekOutcome

logger = logging.getLogger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class SyncController:
    """Drives the audio timeline so it follows the video at a set offset.

    Attributes:
        state: PlaybackState owned by this session
        phase: Current SyncPhase
        mode: SyncMode (seek-only or delay line for positive offsets)
        last_sample: Most recent SyncSample, None before the first tick
        debug_text: Diagnostic line, refreshed at most every debug_interval_ms
    """

    def __init__(
        self,
        video: MediaElement,
        audio: MediaElement,
        scheduler: FrameScheduler,
        config: SyncConfig | None = None,
        delay_line: DelayLine | None = None,
        mode: SyncMode = SyncMode.SEEK_SYNC,
        clock_ms: Callable[[], float] | None = None,
        metrics: PlayerMetrics | None = None,
    ) -> None:
        """Initialize sync controller.

        Args:
            video: Master timeline
            audio: Follower timeline
            scheduler: Frame scheduler driving the loop and seek retries
            config: Sync parameters (default: SyncConfig from environment)
            delay_line: Optional audio-engine delay stage for DELAY_LINE mode
            mode: Initial SyncMode
            clock_ms: Monotonic millisecond clock (for testing)
            metrics: Optional metrics sink
        """
        self.video = video
        self.audio = audio
        self.config = config or SyncConfig()
        self.delay_line = delay_line
        self.mode = mode
        self.metrics = metrics

        self.state = PlaybackState()
        self.phase = SyncPhase.STOPPED
        self.last_sample: SyncSample | None = None
        self.debug_text = ""

        self._scheduler = scheduler
        self._clock_ms = clock_ms or _monotonic_ms
        self._rates = PlaybackRateCoordinator(
            video,
            audio,
            nudge_gain=self.config.nudge_gain,
            nudge_limit=self.config.nudge_limit,
        )
        self._seeker = SeekGuard(audio, scheduler, on_outcome=self._record_seek_outcome)
        self._frame_handle: Any = None
        self._last_check_ms: float | None = None
        self._last_debug_ms: float | None = None

    # ------------------------------------------------------------------
    # Timeline math
    # ------------------------------------------------------------------

    @property
    def effective_offset(self) -> float:
        """Offset the seek loop must realise.

        In DELAY_LINE mode a positive offset is produced by the delay line,
        so the timelines themselves stay aligned.
        """
        return self.state.offset_sec - self.delay_seconds

    @property
    def delay_seconds(self) -> float:
        """Delay the delay line should currently apply (0 outside DELAY_LINE mode)."""
        offset = self.state.offset_sec
        if self.delay_line is None or self.mode is not SyncMode.DELAY_LINE or offset <= 0:
            return 0.0
        limit = min(self.delay_line.max_delay, self.config.max_delay_s)
        return clamp(offset, 0.0, limit)

    def expected_audio_time(self, video_time: float) -> float:
        """Audio position that matches video_time under the current offset."""
        return video_time - self.effective_offset

    def seek_target(self, video_time: float) -> float:
        """Corrective seek target, clamped to the audio timeline.

        A missing, NaN or non-positive duration means metadata is not
        loaded yet and leaves the upper bound open.
        """
        duration = self.audio.duration
        known = duration is not None and math.isfinite(duration) and duration > 0
        upper = duration if known else math.inf
        return clamp(self.expected_audio_time(video_time), 0.0, upper)

    def sample(self, now_ms: float | None = None) -> SyncSample:
        """Measure both timelines once."""
        video_time = self.video.current_position
        audio_time = self.audio.current_position
        expected = self.expected_audio_time(video_time)
        return SyncSample(
            video_time_sec=video_time,
            audio_time_sec=audio_time,
            expected_audio_time_sec=expected,
            drift_sec=audio_time - expected,
            timestamp_ms=self._clock_ms() if now_ms is None else now_ms,
        )

    @property
    def seek_guard(self) -> SeekGuard:
        """Seek guard for the audio timeline."""
        return self._seeker

    # ------------------------------------------------------------------
    # Playback lifecycle
    # ------------------------------------------------------------------

    async def start(self, play_video: bool = True) -> None:
        """Align the audio and start playback.

        Args:
            play_video: Also start the video element. False when the video
                was started by its own controls.
        """
        if self.phase is not SyncPhase.STOPPED:
            logger.debug(f"Start ignored - phase: {self.phase.value}")
            return

        self.phase = SyncPhase.DRAGGING if self.state.dragging else SyncPhase.STARTING
        self.state.playing = True
        self._last_check_ms = None
        self._rates.apply(self.state.playback_rate)
        self._apply_delay_line()
        if not self.state.dragging:
            self.corrective_seek("start")

        try:
            await self.audio.play()
            if play_video:
                await self.video.play()
        except Exception as e:
            logger.error(f"Playback start failed: {e}")
            self.stop()
            raise

        if not self.state.playing:
            # stopped while play() was pending
            return

        logger.info(
            f"Playback started: offset={self.state.offset_sec:+.3f}s, "
            f"rate={self.state.playback_rate:.2f}x, mode={self.mode.value}"
        )
        self._frame_handle = self._scheduler.request_frame(self._settle)

    def stop(self) -> None:
        """Pause both timelines and tear down the loop."""
        if self._frame_handle is not None:
            self._scheduler.cancel(self._frame_handle)
            self._frame_handle = None

        was_playing = self.state.playing
        self.state.playing = False
        self.phase = SyncPhase.STOPPED
        # pending seek retries must not land after stop
        self._seeker.invalidate()

        self.video.pause()
        self.audio.pause()
        if was_playing:
            logger.info("Playback stopped")

    def _settle(self) -> None:
        """One frame after start: absorb engine start-up latency."""
        self._frame_handle = None
        if not self.state.playing:
            return

        if self.phase is SyncPhase.STARTING:
            self.corrective_seek("settle")
            self.phase = SyncPhase.RUNNING

        self._frame_handle = self._scheduler.request_frame(self._on_frame)

    # ------------------------------------------------------------------
    # Per-frame loop
    # ------------------------------------------------------------------

    def _on_frame(self) -> None:
        self._frame_handle = None
        if not self.state.playing:
            return

        now = self._clock_ms()
        sample = self.sample(now)
        self.last_sample = sample

        if self.phase is SyncPhase.DRAGGING:
            self._rates.pin_audio()
        elif (
            self._last_check_ms is None
            or now - self._last_check_ms >= self.config.correction_interval_ms
        ):
            self._last_check_ms = now
            self._correct(sample)

        self._refresh_debug(sample, now)
        self._frame_handle = self._scheduler.request_frame(self._on_frame)

    def _correct(self, sample: SyncSample) -> None:
        if self.metrics is not None:
            self.metrics.set_sync_drift(sample.drift_ms)

        if abs(sample.drift_sec) > self.config.drift_threshold_s:
            logger.info(
                f"SYNC drift {sample.drift_ms:+.1f}ms exceeds "
                f"{self.config.drift_threshold_s * 1000:.0f}ms, seeking audio"
            )
            self._seek(self.seek_target(sample.video_time_sec), "drift")
            return

        if self.config.rate_nudging:
            rate = self._rates.nudge(sample.drift_sec)
            if self.metrics is not None:
                self.metrics.record_rate_nudge()
            logger.debug(f"SYNC nudge: drift={sample.drift_ms:+.1f}ms, audio_rate={rate:.4f}")
        else:
            self._rates.pin_audio()

    def _refresh_debug(self, sample: SyncSample, now: float) -> None:
        if (
            self._last_debug_ms is not None
            and now - self._last_debug_ms < self.config.debug_interval_ms
        ):
            return
        self._last_debug_ms = now
        self.debug_text = sample.format_debug()
        logger.debug(f"SYNC {self.debug_text}")

    # ------------------------------------------------------------------
    # Corrective seeks
    # ------------------------------------------------------------------

    def corrective_seek(self, reason: str) -> SeekOutcome:
        """Seek the audio timeline to match the current video position.

        Args:
            reason: Label for logs and metrics (start, settle, offset, ...)
        """
        return self._seek(self.seek_target(self.video.current_position), reason)

    def _seek(self, target: float, reason: str) -> SeekOutcome:
        if self.metrics is not None:
            self.metrics.record_corrective_seek(reason)

        outcome = self._seeker.seek(target)
        # corrections never leave the audio rate bent
        self._rates.pin_audio()
        logger.debug(f"Corrective seek ({reason}) -> {target:.3f}s: {outcome.value}")
        return outcome

    def _record_seek_outcome(self, outcome: SeekOutcome) -> None:
        if self.metrics is not None:
            self.metrics.record_seek_outcome(outcome.value)

    # ------------------------------------------------------------------
    # User input
    # ------------------------------------------------------------------

    def set_offset(self, offset_sec: float) -> float:
        """Change the offset.

        While dragging only the value is stored; otherwise the change is
        committed with one corrective seek if playing.

        Returns:
            The stored (clamped) offset
        """
        value = self.state.set_offset(offset_sec)
        self._apply_delay_line()

        if self.state.dragging or not self.state.playing:
            return value

        self.corrective_seek("offset")
        return value

    def begin_drag(self) -> None:
        """User started manipulating the offset control."""
        if self.state.dragging:
            return

        self.state.dragging = True
        if self.state.playing:
            self.phase = SyncPhase.DRAGGING
        self._rates.pin_audio()
        logger.debug("Offset drag started, correction suspended")

    def end_drag(self, offset_sec: float | None = None) -> None:
        """User released the offset control.

        Args:
            offset_sec: Final offset, if not already delivered via set_offset
        """
        if not self.state.dragging:
            return

        if offset_sec is not None:
            self.state.set_offset(offset_sec)
        self.state.dragging = False
        self._apply_delay_line()

        if not self.state.playing:
            return

        if self.phase is SyncPhase.DRAGGING:
            self.phase = SyncPhase.RUNNING
        self._last_check_ms = None
        logger.debug(f"Offset drag ended at {self.state.offset_sec:+.3f}s")
        self.corrective_seek("drag_end")

    def set_playback_rate(self, rate: float) -> float:
        """Change the nominal rate of both timelines.

        Returns:
            The stored (clamped) rate
        """
        value = self.state.set_rate(rate)
        self._rates.apply(value)
        return value

    def set_sync_mode(self, mode: SyncMode) -> None:
        """Switch between seek-only and delay-line handling of positive offsets."""
        if mode is self.mode:
            return

        self.mode = mode
        self._apply_delay_line()
        logger.info(f"Sync mode changed to {mode.value}")

        if self.state.playing and not self.state.dragging:
            self.corrective_seek("offset")

    def _apply_delay_line(self) -> None:
        if self.delay_line is not None:
            self.delay_line.set_delay(self.delay_seconds)

    # ------------------------------------------------------------------
    # Video element events
    # ------------------------------------------------------------------

    async def on_video_started(self) -> None:
        """Video started from its own controls: bring the audio along."""
        if self.phase is not SyncPhase.STOPPED:
            return
        await self.start(play_video=False)

    def on_video_paused(self) -> None:
        """Video paused: stop the audio and the loop."""
        self.stop()

    def on_video_ended(self) -> None:
        """Video reached its end."""
        self.stop()

    def on_video_seeked(self) -> None:
        """User scrubbed the video: one-shot realignment."""
        if self.state.dragging:
            return
        self.corrective_seek("scrub")
