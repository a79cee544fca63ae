"""
Metrics module for the offset player.

Provides Prometheus metrics for sync drift, seek outcomes and exports.
"""

from __future__ import annotations

from offset_player.metrics.prometheus import PlayerMetrics

__all__ = [
    "PlayerMetrics",
]
