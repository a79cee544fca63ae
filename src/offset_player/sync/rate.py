"""
Playback rate coordination for the video and audio timelines.
"""

from __future__ import annotations

import logging

from offset_player.media.interfaces import MediaElement
from offset_player.models.state import clamp

logger = logging.getLogger(__name__)


class PlaybackRateCoordinator:
    """Keeps both timelines at the nominal playback rate.

    The audio rate may be bent temporarily by ``nudge``; ``pin_audio``
    restores it so corrections never compound.
    """

    def __init__(
        self,
        video: MediaElement,
        audio: MediaElement,
        nudge_gain: float = 0.25,
        nudge_limit: float = 0.05,
    ) -> None:
        self.video = video
        self.audio = audio
        self.nudge_gain = nudge_gain
        self.nudge_limit = nudge_limit
        self.nominal_rate = 1.0

    def apply(self, rate: float) -> None:
        """Set the nominal rate on both timelines."""
        self.nominal_rate = rate
        self.video.rate = rate
        self.audio.rate = rate
        logger.debug(f"Playback rate applied to both timelines: {rate:.2f}x")

    def pin_audio(self) -> None:
        """Reset the audio rate to nominal."""
        if self.audio.rate != self.nominal_rate:
            self.audio.rate = self.nominal_rate

    def nudge(self, drift_sec: float) -> float:
        """Bend the audio rate proportionally against drift.

        Positive drift (audio ahead) slows the audio, negative speeds it up.

        Returns:
            The audio rate written
        """
        factor = clamp(
            1.0 - drift_sec * self.nudge_gain,
            1.0 - self.nudge_limit,
            1.0 + self.nudge_limit,
        )
        rate = factor * self.nominal_rate
        self.audio.rate = rate
        return rate
