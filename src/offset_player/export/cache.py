"""
Session-scoped memoization of export results.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import NamedTuple

from offset_player.models.export import ExportRequest, ExportResult

logger = logging.getLogger(__name__)


class ExportCacheKey(NamedTuple):
    """Cache key: every field that changes the exported bytes."""

    fingerprint: str
    playback_rate: float
    offset_sec: float
    trim_start: float | None
    trim_end: float | None

    @classmethod
    def from_request(cls, request: ExportRequest) -> ExportCacheKey:
        return cls(
            fingerprint=request.fingerprint,
            playback_rate=request.playback_rate,
            offset_sec=request.offset_sec,
            trim_start=request.trim.start_sec,
            trim_end=request.trim.end_sec,
        )


class ExportCache:
    """Successful export results keyed by ExportCacheKey.

    Unbounded unless max_entries is given, in which case the least
    recently used entry is evicted first.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be >= 1 - got {max_entries}")

        self.max_entries = max_entries
        self._entries: OrderedDict[ExportCacheKey, ExportResult] = OrderedDict()

    def get(self, request: ExportRequest) -> ExportResult | None:
        """Return the cached result for request, if any."""
        key = ExportCacheKey.from_request(request)
        result = self._entries.get(key)
        if result is not None:
            self._entries.move_to_end(key)
        return result

    def put(self, request: ExportRequest, result: ExportResult) -> None:
        """Store a successful result. Failed results are ignored."""
        if not result.success:
            return

        key = ExportCacheKey.from_request(request)
        self._entries[key] = result
        self._entries.move_to_end(key)

        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Export cache evicted {evicted.fingerprint}")

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, request: object) -> bool:
        if not isinstance(request, ExportRequest):
            return False
        return ExportCacheKey.from_request(request) in self._entries
