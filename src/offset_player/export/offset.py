"""
Signed audio offset to filter operations.

Filters can only delay a stream, so an advance is expressed by cutting
the lead-in and resetting timestamps:
- offset > 0: adelay by round(offset * 1000) ms on both channels
- offset < 0: atrim the first |offset| seconds, then asetpts=PTS-STARTPTS
- offset == 0: nothing
"""

from __future__ import annotations

from offset_player.models.export import FilterOp

OFFSET_EPSILON = 1e-6


def format_seconds(seconds: float) -> str:
    """Plain decimal seconds for filter arguments.

    Microsecond precision, trailing zeros stripped, never exponent
    notation (ffmpeg's time parser rejects ``5e-05``).
    """
    text = f"{seconds:.6f}".rstrip("0").rstrip(".")
    if text in ("", "-0"):
        return "0"
    return text


def plan_offset(offset_sec: float) -> list[FilterOp]:
    """Audio filter operations realising offset_sec."""
    if abs(offset_sec) < OFFSET_EPSILON:
        return []

    if offset_sec > 0:
        ms = round(offset_sec * 1000)
        return [FilterOp(name="adelay", args=f"{ms}|{ms}")]

    cut = abs(offset_sec)
    return [
        FilterOp(name="atrim", args=f"start={format_seconds(cut)}"),
        FilterOp(name="asetpts", args="PTS-STARTPTS"),
    ]


def audio_start_shift(ops: list[FilterOp]) -> float:
    """Seconds by which ops move the start of audible audio.

    Positive values mean audio starts later than in the input. Only a
    lead-in cut (``atrim`` with a bare ``start``) counts; a trim window
    with an ``end`` selects a range and does not shift the offset.
    """
    shift = 0.0
    for op in ops:
        if not op.args:
            continue
        if op.name == "adelay":
            shift += int(op.args.split("|")[0]) / 1000.0
        elif op.name == "atrim":
            params = dict(part.partition("=")[::2] for part in op.args.split(":"))
            if set(params) == {"start"}:
                shift -= float(params["start"])
    return shift
