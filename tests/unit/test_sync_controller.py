"""
Unit tests for SyncController.

Validates the drift loop, the playback state machine, drag suspension,
video element events and delay-line mode against fake timelines.
"""

from __future__ import annotations

import asyncio
import math

import pytest

from conftest import FakeClock, FakeDelayLine, FakeMediaElement, ManualFrameScheduler
from offset_player.config.sync_config import SyncConfig
from offset_player.media.scheduling import AsyncioFrameScheduler
from offset_player.models.state import SyncMode, SyncPhase
from offset_player.sync.controller import SyncController
from offset_player.sync.seek_guard import SeekOutcome


async def start_running(controller: SyncController, scheduler: ManualFrameScheduler) -> None:
    """Start playback and step through the settle frame and first tick."""
    await controller.start()
    scheduler.step()  # settle
    scheduler.step()  # first tick


class TestTimelineMath:
    """Tests for expected audio position and seek targets."""

    def test_positive_offset_delays_audio(self, controller: SyncController) -> None:
        """offset=0.3 at video 5.0 expects audio at 4.7."""
        controller.set_offset(0.3)

        assert controller.expected_audio_time(5.0) == pytest.approx(4.7)

    def test_negative_offset_advances_audio(self, controller: SyncController) -> None:
        """offset=-0.3 at video 5.0 expects audio at 5.3."""
        controller.set_offset(-0.3)

        assert controller.expected_audio_time(5.0) == pytest.approx(5.3)

    def test_rate_does_not_change_offset_formula(self, controller: SyncController) -> None:
        """rate=1.5, offset=0 at video 10.0 expects audio at 10.0."""
        controller.set_playback_rate(1.5)
        controller.set_offset(0.0)

        assert controller.expected_audio_time(10.0) == pytest.approx(10.0)

    def test_seek_target_clamped_at_zero(self, controller: SyncController) -> None:
        """Target before the start of audio is clamped to 0."""
        controller.set_offset(0.5)

        assert controller.seek_target(0.2) == 0.0

    def test_seek_target_clamped_to_duration(self, controller: SyncController) -> None:
        """Target past the end of audio is clamped to its duration."""
        assert controller.seek_target(100.0) == 60.0

    def test_seek_target_unknown_duration(
        self, video: FakeMediaElement, scheduler: ManualFrameScheduler
    ) -> None:
        """Unknown audio duration leaves the upper bound open."""
        audio = FakeMediaElement(duration=None)
        controller = SyncController(video, audio, scheduler, config=SyncConfig())

        assert controller.seek_target(100.0) == 100.0

    def test_seek_target_nan_duration(
        self, video: FakeMediaElement, scheduler: ManualFrameScheduler
    ) -> None:
        """NaN duration is treated as unknown."""
        audio = FakeMediaElement(duration=math.nan)
        controller = SyncController(video, audio, scheduler, config=SyncConfig())

        assert controller.seek_target(42.0) == 42.0

    def test_seek_target_zero_duration(
        self, video: FakeMediaElement, scheduler: ManualFrameScheduler
    ) -> None:
        """A zero duration while metadata loads does not pin seeks to 0."""
        audio = FakeMediaElement(duration=0.0)
        controller = SyncController(video, audio, scheduler, config=SyncConfig())

        assert controller.seek_target(42.0) == 42.0

    def test_sample_measures_drift(
        self, controller: SyncController, audio: FakeMediaElement
    ) -> None:
        """Drift is actual minus expected audio position."""
        controller.set_offset(-0.5)
        audio.position = 5.25

        sample = controller.sample(now_ms=12.0)

        assert sample.video_time_sec == 5.0
        assert sample.expected_audio_time_sec == 5.5
        assert sample.drift_sec == -0.25
        assert sample.timestamp_ms == 12.0


class TestStartStop:
    """Tests for the playback lifecycle."""

    @pytest.mark.asyncio
    async def test_start_seeks_and_plays(
        self,
        controller: SyncController,
        video: FakeMediaElement,
        audio: FakeMediaElement,
    ) -> None:
        """Start aligns the audio before playing both timelines."""
        controller.set_offset(0.5)

        await controller.start()

        assert audio.seeks == [4.5]
        assert audio.play_calls == 1
        assert video.play_calls == 1
        assert controller.phase is SyncPhase.STARTING
        assert controller.state.playing is True

    @pytest.mark.asyncio
    async def test_settle_seek_one_frame_after_start(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        video: FakeMediaElement,
        audio: FakeMediaElement,
    ) -> None:
        """A second alignment runs on the first frame, then the loop runs."""
        await controller.start()
        video.position = 5.5  # video advanced during start-up

        scheduler.step()

        assert audio.seeks == [5.0, 5.5]
        assert controller.phase is SyncPhase.RUNNING
        assert len(scheduler.pending) == 1

    @pytest.mark.asyncio
    async def test_start_applies_rate_to_both(
        self,
        controller: SyncController,
        video: FakeMediaElement,
        audio: FakeMediaElement,
    ) -> None:
        """Nominal rate is written to both timelines on start."""
        controller.state.set_rate(0.75)

        await controller.start()

        assert video.rate == 0.75
        assert audio.rate == 0.75

    @pytest.mark.asyncio
    async def test_start_twice_is_ignored(
        self, controller: SyncController, audio: FakeMediaElement
    ) -> None:
        """A second start while playing does nothing."""
        await controller.start()
        await controller.start()

        assert audio.play_calls == 1

    @pytest.mark.asyncio
    async def test_start_failure_stops_and_raises(
        self,
        controller: SyncController,
        video: FakeMediaElement,
        audio: FakeMediaElement,
    ) -> None:
        """A rejected play() leaves the controller stopped."""
        audio.play_error = RuntimeError("autoplay blocked")

        with pytest.raises(RuntimeError):
            await controller.start()

        assert controller.phase is SyncPhase.STOPPED
        assert controller.state.playing is False
        assert video.paused is True

    @pytest.mark.asyncio
    async def test_stop_tears_down_loop(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        video: FakeMediaElement,
        audio: FakeMediaElement,
    ) -> None:
        """Stop cancels the frame callback and pauses both timelines."""
        await start_running(controller, scheduler)

        controller.stop()

        assert scheduler.pending == {}
        assert controller.phase is SyncPhase.STOPPED
        assert video.paused is True
        assert audio.paused is True

    @pytest.mark.asyncio
    async def test_stop_discards_pending_seek_retry(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        audio: FakeMediaElement,
    ) -> None:
        """A retry scheduled before stop does not land after it."""
        await start_running(controller, scheduler)
        audio.reject_seeks = 1
        controller.corrective_seek("offset")
        seeks_before = list(audio.seeks)

        controller.stop()
        scheduler.step()

        assert audio.seeks == seeks_before
        assert controller.seek_guard.stats.superseded == 1


class TestDriftCorrection:
    """Tests for the periodic drift check."""

    @pytest.mark.asyncio
    async def test_drift_above_threshold_seeks(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        audio: FakeMediaElement,
        clock: FakeClock,
    ) -> None:
        """130 ms drift triggers a corrective seek to the expected position."""
        await start_running(controller, scheduler)
        audio.position = 5.13
        seeks_before = len(audio.seeks)

        clock.advance(100)
        scheduler.step()

        assert len(audio.seeks) == seeks_before + 1
        assert audio.seeks[-1] == 5.0

    @pytest.mark.asyncio
    async def test_drift_below_threshold_does_not_seek(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        audio: FakeMediaElement,
        clock: FakeClock,
    ) -> None:
        """110 ms drift is tolerated."""
        await start_running(controller, scheduler)
        audio.position = 4.89
        seeks_before = len(audio.seeks)

        clock.advance(100)
        scheduler.step()

        assert len(audio.seeks) == seeks_before

    @pytest.mark.asyncio
    async def test_drift_exactly_at_threshold_does_not_seek(
        self,
        video: FakeMediaElement,
        audio: FakeMediaElement,
        scheduler: ManualFrameScheduler,
        clock: FakeClock,
    ) -> None:
        """Correction requires drift strictly above the threshold."""
        config = SyncConfig(drift_threshold_s=0.125)
        controller = SyncController(video, audio, scheduler, config=config, clock_ms=clock)
        await start_running(controller, scheduler)
        seeks_before = len(audio.seeks)

        audio.position = 5.125
        clock.advance(100)
        scheduler.step()
        assert len(audio.seeks) == seeks_before

        audio.position = 4.875
        clock.advance(100)
        scheduler.step()
        assert len(audio.seeks) == seeks_before

        audio.position = 5.25
        clock.advance(100)
        scheduler.step()
        assert len(audio.seeks) == seeks_before + 1

    @pytest.mark.asyncio
    async def test_checks_are_throttled(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        audio: FakeMediaElement,
        clock: FakeClock,
    ) -> None:
        """Frames inside the correction interval do not re-check drift."""
        await start_running(controller, scheduler)
        audio.position = 6.0
        seeks_before = len(audio.seeks)

        clock.advance(50)
        scheduler.step()
        assert len(audio.seeks) == seeks_before

        clock.advance(50)
        scheduler.step()
        assert len(audio.seeks) == seeks_before + 1

    @pytest.mark.asyncio
    async def test_sub_threshold_pins_audio_rate(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        audio: FakeMediaElement,
        clock: FakeClock,
    ) -> None:
        """Without nudging a bent audio rate is restored to nominal."""
        await start_running(controller, scheduler)
        audio.rate = 1.03

        clock.advance(100)
        scheduler.step()

        assert audio.rate == 1.0

    @pytest.mark.asyncio
    async def test_rate_nudging_bends_audio_rate(
        self,
        video: FakeMediaElement,
        audio: FakeMediaElement,
        scheduler: ManualFrameScheduler,
        clock: FakeClock,
    ) -> None:
        """With nudging enabled, audio ahead is slowed proportionally."""
        config = SyncConfig(rate_nudging=True)
        controller = SyncController(video, audio, scheduler, config=config, clock_ms=clock)
        await start_running(controller, scheduler)

        audio.position = 5.0625
        clock.advance(100)
        scheduler.step()

        assert audio.rate == pytest.approx(1.0 - 0.0625 * 0.25)

    @pytest.mark.asyncio
    async def test_drift_seek_resets_nudged_rate(
        self,
        video: FakeMediaElement,
        audio: FakeMediaElement,
        scheduler: ManualFrameScheduler,
        clock: FakeClock,
    ) -> None:
        """A hard seek restores the nominal audio rate."""
        config = SyncConfig(rate_nudging=True)
        controller = SyncController(video, audio, scheduler, config=config, clock_ms=clock)
        await start_running(controller, scheduler)
        audio.rate = 0.97

        audio.position = 5.5
        clock.advance(100)
        scheduler.step()

        assert audio.rate == 1.0

    @pytest.mark.asyncio
    async def test_debug_text_refreshed(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        audio: FakeMediaElement,
        clock: FakeClock,
    ) -> None:
        """Debug text is throttled to the debug interval."""
        await start_running(controller, scheduler)
        assert controller.debug_text == "v=5.000 a=5.000 exp=5.000 diff=0.000"

        audio.position = 5.0625
        clock.advance(100)
        scheduler.step()
        assert controller.debug_text == "v=5.000 a=5.000 exp=5.000 diff=0.000"

        clock.advance(150)
        scheduler.step()
        assert controller.debug_text == "v=5.000 a=5.062 exp=5.000 diff=0.062"

    @pytest.mark.asyncio
    async def test_rejected_seek_retried_next_frame(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        audio: FakeMediaElement,
        clock: FakeClock,
    ) -> None:
        """A transiently rejected corrective seek lands one frame later."""
        await start_running(controller, scheduler)
        audio.position = 6.0
        audio.reject_seeks = 1

        clock.advance(100)
        scheduler.step()
        assert audio.position == 6.0

        scheduler.step()
        assert audio.position == 5.0


class TestDragging:
    """Tests for drag suspension of corrections."""

    @pytest.mark.asyncio
    async def test_no_seeks_while_dragging(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        audio: FakeMediaElement,
        clock: FakeClock,
    ) -> None:
        """Large drift and offset changes are ignored during a drag."""
        await start_running(controller, scheduler)
        seeks_before = len(audio.seeks)

        controller.begin_drag()
        assert controller.phase is SyncPhase.DRAGGING

        for offset in (0.1, 0.4, 0.8):
            controller.set_offset(offset)
            audio.position = 9.0
            clock.advance(100)
            scheduler.step()

        assert len(audio.seeks) == seeks_before

    @pytest.mark.asyncio
    async def test_exactly_one_seek_on_drag_end(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        audio: FakeMediaElement,
        clock: FakeClock,
    ) -> None:
        """Releasing the control commits the offset with one seek."""
        await start_running(controller, scheduler)
        seeks_before = len(audio.seeks)
        controller.begin_drag()
        controller.set_offset(0.4)

        controller.end_drag()

        assert len(audio.seeks) == seeks_before + 1
        assert audio.seeks[-1] == pytest.approx(4.6)
        assert controller.phase is SyncPhase.RUNNING

    @pytest.mark.asyncio
    async def test_drag_end_with_final_offset(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        audio: FakeMediaElement,
    ) -> None:
        """end_drag can deliver the final offset itself."""
        await start_running(controller, scheduler)
        controller.begin_drag()

        controller.end_drag(offset_sec=-0.25)

        assert controller.state.offset_sec == -0.25
        assert audio.seeks[-1] == 5.25

    @pytest.mark.asyncio
    async def test_drag_pins_audio_rate(
        self,
        video: FakeMediaElement,
        audio: FakeMediaElement,
        scheduler: ManualFrameScheduler,
        clock: FakeClock,
    ) -> None:
        """Nudged rates are reset while dragging."""
        config = SyncConfig(rate_nudging=True)
        controller = SyncController(video, audio, scheduler, config=config, clock_ms=clock)
        await start_running(controller, scheduler)
        audio.rate = 1.04

        controller.begin_drag()
        clock.advance(100)
        scheduler.step()

        assert audio.rate == 1.0

    def test_drag_while_stopped_does_not_seek(
        self, controller: SyncController, audio: FakeMediaElement
    ) -> None:
        """Drag end while stopped only stores the offset."""
        controller.begin_drag()
        controller.end_drag(offset_sec=0.2)

        assert audio.seeks == []
        assert controller.state.offset_sec == 0.2
        assert controller.phase is SyncPhase.STOPPED

    def test_end_drag_without_begin_is_ignored(
        self, controller: SyncController, audio: FakeMediaElement
    ) -> None:
        """end_drag outside a drag does nothing."""
        controller.end_drag(offset_sec=0.5)

        assert controller.state.offset_sec == 0.0
        assert audio.seeks == []

    @pytest.mark.asyncio
    async def test_start_while_dragging_enters_dragging(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        audio: FakeMediaElement,
    ) -> None:
        """Playback started mid-drag stays suspended until drag end."""
        controller.begin_drag()

        await controller.start()
        scheduler.step()

        assert controller.phase is SyncPhase.DRAGGING
        assert audio.seeks == []

        controller.end_drag()
        assert len(audio.seeks) == 1


class TestUserInput:
    """Tests for offset, rate and mode changes."""

    @pytest.mark.asyncio
    async def test_offset_change_while_playing_seeks(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        audio: FakeMediaElement,
    ) -> None:
        """A committed offset change realigns immediately."""
        await start_running(controller, scheduler)

        controller.set_offset(-0.5)

        assert audio.seeks[-1] == 5.5

    def test_offset_change_while_stopped_does_not_seek(
        self, controller: SyncController, audio: FakeMediaElement
    ) -> None:
        """Offsets set before playback are applied on start."""
        controller.set_offset(0.2)

        assert audio.seeks == []

    def test_offset_clamped(self, controller: SyncController) -> None:
        """Offsets outside [-1, 1] are clamped."""
        assert controller.set_offset(3.0) == 1.0
        assert controller.set_offset(-3.0) == -1.0

    def test_playback_rate_applied_and_clamped(
        self,
        controller: SyncController,
        video: FakeMediaElement,
        audio: FakeMediaElement,
    ) -> None:
        """Rate changes reach both timelines and stay within [0.1, 2.0]."""
        assert controller.set_playback_rate(3.0) == 2.0
        assert video.rate == 2.0
        assert audio.rate == 2.0

        controller.set_playback_rate(0.01)
        assert controller.state.playback_rate == 0.1


class TestVideoEvents:
    """Tests for video element event handling."""

    @pytest.mark.asyncio
    async def test_video_started_brings_audio_along(
        self,
        controller: SyncController,
        video: FakeMediaElement,
        audio: FakeMediaElement,
    ) -> None:
        """Video started by its own controls does not get play() again."""
        await controller.on_video_started()

        assert audio.play_calls == 1
        assert video.play_calls == 0
        assert controller.state.playing is True

    @pytest.mark.asyncio
    async def test_video_started_while_playing_ignored(
        self,
        controller: SyncController,
        audio: FakeMediaElement,
    ) -> None:
        """Started events during playback are ignored."""
        await controller.start()

        await controller.on_video_started()

        assert audio.play_calls == 1

    @pytest.mark.asyncio
    async def test_video_paused_stops(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        audio: FakeMediaElement,
    ) -> None:
        """Pausing the video pauses the audio and the loop."""
        await start_running(controller, scheduler)

        controller.on_video_paused()

        assert audio.paused is True
        assert controller.phase is SyncPhase.STOPPED

    @pytest.mark.asyncio
    async def test_video_ended_stops(
        self, controller: SyncController, scheduler: ManualFrameScheduler
    ) -> None:
        """End of video stops playback."""
        await start_running(controller, scheduler)

        controller.on_video_ended()

        assert controller.state.playing is False
        assert scheduler.pending == {}

    @pytest.mark.asyncio
    async def test_scrub_realigns_once(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        video: FakeMediaElement,
        audio: FakeMediaElement,
    ) -> None:
        """A scrub issues one seek to the new expected position."""
        await start_running(controller, scheduler)
        controller.set_offset(0.25)
        seeks_before = len(audio.seeks)

        video.position = 20.0
        controller.on_video_seeked()

        assert len(audio.seeks) == seeks_before + 1
        assert audio.seeks[-1] == 19.75

    @pytest.mark.asyncio
    async def test_scrub_ignored_while_dragging(
        self,
        controller: SyncController,
        scheduler: ManualFrameScheduler,
        video: FakeMediaElement,
        audio: FakeMediaElement,
    ) -> None:
        """Scrubs during an offset drag wait for drag end."""
        await start_running(controller, scheduler)
        controller.begin_drag()
        seeks_before = len(audio.seeks)

        video.position = 20.0
        controller.on_video_seeked()

        assert len(audio.seeks) == seeks_before


class TestDelayLineMode:
    """Tests for DELAY_LINE sync mode."""

    def _make(
        self,
        video: FakeMediaElement,
        audio: FakeMediaElement,
        scheduler: ManualFrameScheduler,
        delay_line: FakeDelayLine,
    ) -> SyncController:
        return SyncController(
            video,
            audio,
            scheduler,
            config=SyncConfig(),
            delay_line=delay_line,
            mode=SyncMode.DELAY_LINE,
        )

    def test_positive_offset_goes_to_delay_line(
        self,
        video: FakeMediaElement,
        audio: FakeMediaElement,
        scheduler: ManualFrameScheduler,
    ) -> None:
        """Positive offsets are delayed, timelines stay aligned."""
        delay_line = FakeDelayLine()
        controller = self._make(video, audio, scheduler, delay_line)

        controller.set_offset(0.4)

        assert delay_line.delay == 0.4
        assert controller.effective_offset == 0.0
        assert controller.expected_audio_time(5.0) == 5.0

    def test_negative_offset_still_seeks(
        self,
        video: FakeMediaElement,
        audio: FakeMediaElement,
        scheduler: ManualFrameScheduler,
    ) -> None:
        """Audio cannot be advanced by a delay line."""
        delay_line = FakeDelayLine()
        controller = self._make(video, audio, scheduler, delay_line)

        controller.set_offset(-0.3)

        assert delay_line.delay == 0.0
        assert controller.expected_audio_time(5.0) == pytest.approx(5.3)

    def test_delay_limited_by_max_delay(
        self,
        video: FakeMediaElement,
        audio: FakeMediaElement,
        scheduler: ManualFrameScheduler,
    ) -> None:
        """Offset beyond the delay line's range is made up by seeking."""
        delay_line = FakeDelayLine(max_delay=0.25)
        controller = self._make(video, audio, scheduler, delay_line)

        controller.set_offset(0.75)

        assert delay_line.delay == 0.25
        assert controller.effective_offset == 0.5

    @pytest.mark.asyncio
    async def test_mode_switch_realigns(
        self,
        video: FakeMediaElement,
        audio: FakeMediaElement,
        scheduler: ManualFrameScheduler,
    ) -> None:
        """Switching back to seek sync clears the delay and re-seeks."""
        delay_line = FakeDelayLine()
        controller = self._make(video, audio, scheduler, delay_line)
        controller.set_offset(0.5)
        await start_running(controller, scheduler)
        assert audio.seeks[-1] == 5.0

        controller.set_sync_mode(SyncMode.SEEK_SYNC)

        assert delay_line.delay == 0.0
        assert audio.seeks[-1] == 4.5

    def test_seek_mode_without_delay_line(self, controller: SyncController) -> None:
        """DELAY_LINE without a delay line falls back to seeking."""
        controller.set_sync_mode(SyncMode.DELAY_LINE)
        controller.set_offset(0.4)

        assert controller.effective_offset == 0.4


class TestMetricsHook:
    """Tests for the optional metrics sink."""

    @pytest.mark.asyncio
    async def test_seek_reasons_recorded(
        self,
        video: FakeMediaElement,
        audio: FakeMediaElement,
        scheduler: ManualFrameScheduler,
        clock: FakeClock,
    ) -> None:
        """Corrective seeks and outcomes are reported with their reason."""
        from unittest.mock import MagicMock

        metrics = MagicMock()
        controller = SyncController(
            video, audio, scheduler, config=SyncConfig(), clock_ms=clock, metrics=metrics
        )

        await start_running(controller, scheduler)

        reasons = [c.args[0] for c in metrics.record_corrective_seek.call_args_list]
        assert reasons == ["start", "settle"]
        metrics.record_seek_outcome.assert_called_with(SeekOutcome.APPLIED.value)
        metrics.set_sync_drift.assert_called_with(0.0)


class TestAsyncioIntegration:
    """Tests with the real asyncio frame scheduler."""

    @pytest.mark.asyncio
    async def test_loop_runs_on_event_loop(
        self, video: FakeMediaElement, audio: FakeMediaElement
    ) -> None:
        """The loop settles and keeps correcting on real timers."""
        scheduler = AsyncioFrameScheduler(frame_rate_hz=500)
        controller = SyncController(video, audio, scheduler, config=SyncConfig())

        await controller.start()
        audio.position = 7.0
        await asyncio.sleep(0.2)

        assert controller.phase is SyncPhase.RUNNING
        assert audio.position == 5.0

        controller.stop()
        assert controller.phase is SyncPhase.STOPPED
