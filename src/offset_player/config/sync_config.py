"""
Live sync loop configuration from environment variables.

- Environment variables use SYNC_ prefix
- Defaults tuned for lip-sync perceptibility (~100-150 ms)
- Validation via Pydantic Field constraints
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class SyncConfig(BaseSettings):
    """Sync loop configuration from environment variables.

    Attributes:
        drift_threshold_s: Drift magnitude above which the audio timeline is
            hard-seeked. Default 120 ms sits below lip-sync perceptibility and
            above scheduling jitter.
        correction_interval_ms: Minimum time between drift decisions.
        debug_interval_ms: Minimum time between debug text refreshes.
        rate_nudging: Bend the audio rate for sub-threshold drift instead of
            pinning it to the nominal rate.
        nudge_gain: Proportional gain for rate nudging.
        nudge_limit: Maximum relative rate deviation while nudging.
        frame_rate_hz: Refresh rate of the default frame scheduler.
        max_delay_s: Longest delay a delay line may be asked for.
    """

    drift_threshold_s: float = Field(
        default=0.12,
        gt=0.0,
        le=1.0,
        description="Drift in seconds that triggers a corrective seek",
    )
    correction_interval_ms: float = Field(
        default=100.0,
        ge=0.0,
        le=1000.0,
        description="Throttle for drift decisions in milliseconds",
    )
    debug_interval_ms: float = Field(
        default=250.0,
        ge=0.0,
        le=5000.0,
        description="Throttle for debug text refresh in milliseconds",
    )
    rate_nudging: bool = Field(
        default=False,
        description="Use proportional rate nudging for sub-threshold drift",
    )
    nudge_gain: float = Field(
        default=0.25,
        ge=0.0,
        le=2.0,
        description="Proportional gain applied to drift when nudging",
    )
    nudge_limit: float = Field(
        default=0.05,
        ge=0.0,
        le=0.5,
        description="Maximum relative deviation from nominal rate",
    )
    frame_rate_hz: float = Field(
        default=60.0,
        ge=1.0,
        le=240.0,
        description="Frame callbacks per second for the asyncio scheduler",
    )
    max_delay_s: float = Field(
        default=5.0,
        gt=0.0,
        le=30.0,
        description="Maximum delay-line length in seconds",
    )

    model_config = {
        "env_prefix": "SYNC_",
        "case_sensitive": False,
    }

    @property
    def frame_interval_s(self) -> float:
        """Seconds between frame callbacks."""
        return 1.0 / self.frame_rate_hz
