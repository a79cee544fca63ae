"""
Asyncio-backed frame scheduler.

Fires one-shot callbacks roughly once per display refresh using the
running event loop's timer queue.
"""

from __future__ import annotations

import asyncio
import logging

from offset_player.media.interfaces import FrameCallback, FrameScheduler

logger = logging.getLogger(__name__)


class AsyncioFrameScheduler(FrameScheduler):
    """FrameScheduler driven by ``loop.call_later``.

    Attributes:
        interval_s: Delay between a request and its callback.
    """

    def __init__(
        self,
        frame_rate_hz: float = 60.0,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Initialize scheduler.

        Args:
            frame_rate_hz: Callbacks per second
            loop: Event loop to schedule on (default: running loop at first use)

        Raises:
            ValueError: If frame_rate_hz is not positive
        """
        if frame_rate_hz <= 0:
            raise ValueError(f"frame_rate_hz must be positive - got {frame_rate_hz}")

        self.interval_s = 1.0 / frame_rate_hz
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def request_frame(self, callback: FrameCallback) -> asyncio.TimerHandle:
        return self._get_loop().call_later(self.interval_s, callback)

    def cancel(self, handle: asyncio.TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()
