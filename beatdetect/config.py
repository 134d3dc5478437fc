"""Application configuration."""

from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings with env var overrides."""

    # Audio
    sample_rate: int = 44100
    low_pass_freq: float = 150.0
    high_pass_freq: float = 100.0

    # Analysis
    min_bpm: float = 90.0
    max_bpm: float = 180.0
    time_signature: int = 4
    round_to_integer: bool = False
    precision: int = 8
    beat_map_precision: int = 4
    peak_window_seconds: float = 0.5
    offset_source: Literal["raw", "filtered"] = "raw"
    instrumentation: bool = False

    # Tap tempo
    tap_idle_seconds: float = 5.0
    tap_precision: int | None = None

    # Retrieval
    fetch_timeout: float = 60.0
    user_agent: str = "beatdetect/0.1"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    max_upload_mb: int = 50

    model_config = {"env_prefix": "BEATDETECT_"}

    @field_validator(
        "sample_rate", "low_pass_freq", "high_pass_freq", "min_bpm",
        "time_signature", "peak_window_seconds", "tap_idle_seconds",
    )
    @classmethod
    def _positive(cls, value):
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("precision", "beat_map_precision")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be >= 0")
        return value

    @model_validator(mode="after")
    def _check_bpm_range(self):
        if self.max_bpm <= self.min_bpm:
            raise ValueError("max_bpm must be greater than min_bpm")
        return self

    @property
    def bpm_range(self) -> tuple[float, float]:
        return (self.min_bpm, self.max_bpm)


settings = Settings()
