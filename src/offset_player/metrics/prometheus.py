"""
Prometheus metrics for the offset player.

Provides observability for:
- Live sync drift and corrective seeks
- Seek retry outcomes and rate nudging
- Export runs, durations and cache effectiveness
"""

from __future__ import annotations

import logging
from typing import ClassVar

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)


class PlayerMetrics:
    """Prometheus metrics for one player session.

    All metrics use the 'offset_player_' prefix for namespace isolation.

    Note: Metrics are class-level singletons to avoid Prometheus
    "Duplicated timeseries" errors when creating multiple instances.
    """

    NAMESPACE = "offset_player"

    _sync_drift_ms: ClassVar[Gauge | None] = None
    _corrective_seeks: ClassVar[Counter | None] = None
    _seek_outcomes: ClassVar[Counter | None] = None
    _rate_nudges: ClassVar[Counter | None] = None
    _exports: ClassVar[Counter | None] = None
    _export_duration: ClassVar[Histogram | None] = None
    _cache_lookups: ClassVar[Counter | None] = None
    _metrics_initialized: ClassVar[bool] = False

    def __init__(self, session_id: str | None = None) -> None:
        """Initialize player metrics.

        Args:
            session_id: Session identifier for labels (optional)
        """
        self.session_id = session_id or "default"
        self._ensure_metrics_initialized()

    @classmethod
    def _ensure_metrics_initialized(cls) -> None:
        """Initialize all Prometheus metrics (once per class)."""
        if cls._metrics_initialized:
            return

        prefix = cls.NAMESPACE

        # Sync metrics
        cls._sync_drift_ms = Gauge(
            f"{prefix}_sync_drift_ms",
            "Last measured audio drift against the video clock in milliseconds",
            ["session_id"],
        )

        cls._corrective_seeks = Counter(
            f"{prefix}_corrective_seeks_total",
            "Corrective seeks issued on the audio timeline",
            ["session_id", "reason"],  # start|settle|drift|offset|drag_end|scrub
        )

        cls._seek_outcomes = Counter(
            f"{prefix}_seek_outcomes_total",
            "Seek attempt outcomes",
            ["session_id", "outcome"],  # applied|retry_scheduled|superseded|dropped
        )

        cls._rate_nudges = Counter(
            f"{prefix}_rate_nudges_total",
            "Sub-threshold drift corrections done by bending the audio rate",
            ["session_id"],
        )

        # Export metrics
        cls._exports = Counter(
            f"{prefix}_exports_total",
            "Export runs by final mode and status",
            ["session_id", "mode", "status"],  # status: success|failed
        )

        cls._export_duration = Histogram(
            f"{prefix}_export_duration_seconds",
            "Wall-clock time of export runs",
            ["session_id"],
            buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
        )

        cls._cache_lookups = Counter(
            f"{prefix}_export_cache_lookups_total",
            "Export cache lookups",
            ["session_id", "result"],  # hit|miss
        )

        cls._metrics_initialized = True

    @property
    def sync_drift_ms(self) -> Gauge:
        return self._sync_drift_ms

    @property
    def corrective_seeks(self) -> Counter:
        return self._corrective_seeks

    @property
    def seek_outcomes(self) -> Counter:
        return self._seek_outcomes

    @property
    def rate_nudges(self) -> Counter:
        return self._rate_nudges

    @property
    def exports(self) -> Counter:
        return self._exports

    @property
    def export_duration(self) -> Histogram:
        return self._export_duration

    @property
    def cache_lookups(self) -> Counter:
        return self._cache_lookups

    def set_sync_drift(self, drift_ms: float) -> None:
        """Set drift gauge.

        Args:
            drift_ms: Signed drift in milliseconds
        """
        self.sync_drift_ms.labels(session_id=self.session_id).set(drift_ms)

    def record_corrective_seek(self, reason: str) -> None:
        """Record a corrective seek request."""
        self.corrective_seeks.labels(session_id=self.session_id, reason=reason).inc()

    def record_seek_outcome(self, outcome: str) -> None:
        """Record a seek attempt outcome."""
        self.seek_outcomes.labels(session_id=self.session_id, outcome=outcome).inc()

    def record_rate_nudge(self) -> None:
        """Record a rate nudge."""
        self.rate_nudges.labels(session_id=self.session_id).inc()

    def record_export(self, mode: str, status: str, duration_seconds: float) -> None:
        """Record a finished export run.

        Args:
            mode: Final ExportMode value ("none" when no mode ran)
            status: "success" or "failed"
            duration_seconds: Run time in seconds
        """
        self.exports.labels(session_id=self.session_id, mode=mode, status=status).inc()
        self.export_duration.labels(session_id=self.session_id).observe(duration_seconds)

    def record_cache_lookup(self, hit: bool) -> None:
        """Record an export cache lookup."""
        self.cache_lookups.labels(
            session_id=self.session_id,
            result="hit" if hit else "miss",
        ).inc()
