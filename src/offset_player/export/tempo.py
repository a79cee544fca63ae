"""
Speed-change decomposition into bounded ``atempo`` stages.

ffmpeg's atempo filter only accepts factors in [0.5, 2.0], so arbitrary
rates are expressed as a chain: halvings/doublings first, then one final
stage for the remainder.
"""

from __future__ import annotations

from offset_player.models.export import FilterOp

MIN_TEMPO = 0.5
MAX_TEMPO = 2.0
UNITY_TOLERANCE = 1e-4


def tempo_factors(rate: float) -> list[float]:
    """Decompose rate into factors within [MIN_TEMPO, MAX_TEMPO].

    Args:
        rate: Positive speed multiplier

    Returns:
        Factors to apply left to right; empty when rate is ~1.0

    Raises:
        ValueError: If rate is not positive
    """
    if not rate > 0:
        raise ValueError(f"Tempo rate must be positive - got {rate}")

    factors: list[float] = []
    r = rate

    while r < MIN_TEMPO:
        factors.append(MIN_TEMPO)
        r /= MIN_TEMPO
    while r > MAX_TEMPO:
        factors.append(MAX_TEMPO)
        r /= MAX_TEMPO

    if abs(r - 1.0) > UNITY_TOLERANCE:
        factors.append(round(r, 3))

    return factors


def decompose_tempo(rate: float) -> list[FilterOp]:
    """Build the atempo filter chain for rate."""
    return [FilterOp(name="atempo", args=_format_factor(f)) for f in tempo_factors(rate)]


def _format_factor(factor: float) -> str:
    if factor in (MIN_TEMPO, MAX_TEMPO):
        return f"{factor:.1f}"
    return f"{factor:.3f}"
