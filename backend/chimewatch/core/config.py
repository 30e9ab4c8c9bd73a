"""Configuration settings for the chime detection backend."""
from dataclasses import dataclass
from typing import List, Optional, Tuple
from pydantic_settings import BaseSettings


# Target tones of the station chime
DEFAULT_CHIME_FREQUENCIES = [650.0, 1180.0, 1560.0, 2093.0, 2490.0, 3000.0]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Capture settings
    sample_rate: int = 44100  # Hz
    fft_size: int = 2048  # transform size, frequency_bin_count = fft_size / 2
    smoothing_time_constant: float = 0.8  # 0.0-1.0, averaging with the previous frame
    min_decibels: float = -100.0  # maps to byte 0
    max_decibels: float = -30.0  # maps to byte 255
    frame_interval_ms: float = 1000.0 / 60  # one analysis per display frame
    input_device: Optional[str] = None  # sounddevice device name or index, None = default

    # Detection settings
    chime_frequencies: List[float] = DEFAULT_CHIME_FREQUENCIES
    range_start: int = 0  # first inspected bin
    range_end: int = 200  # one past the last inspected bin
    history_size: int = 20  # WindowSample history capacity
    window_size: int = 10  # samples in the rolling average
    score_history_size: int = 600
    threshold: float = 2.0  # normalized score must exceed this
    fire_mode: str = "once_per_crossing"  # every_frame, once_per_crossing or cooldown
    cooldown_seconds: float = 3.0  # only used with fire_mode=cooldown

    # Service settings
    stop_after_first_event: bool = False
    max_concurrent_streams: int = 10

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()


@dataclass(frozen=True)
class DetectionConfig:
    """Detection parameters handed to a single DetectionLoop."""
    chime_frequencies: Tuple[float, ...] = tuple(DEFAULT_CHIME_FREQUENCIES)
    range_start: int = 0
    range_end: int = 200
    history_size: int = 20
    window_size: int = 10
    score_history_size: int = 600
    threshold: float = 2.0
    fire_mode: str = "every_frame"
    cooldown_seconds: float = 0.0

    def __post_init__(self):
        """Validate parameter relationships."""
        if self.range_start < 0 or self.range_end < self.range_start:
            raise ValueError(f"Invalid bin range [{self.range_start}, {self.range_end})")
        if self.window_size <= 0:
            raise ValueError(f"window_size must be positive, got {self.window_size}")
        if self.history_size < self.window_size:
            raise ValueError(
                f"history_size ({self.history_size}) must hold at least window_size ({self.window_size}) samples"
            )
        if self.cooldown_seconds < 0:
            raise ValueError(f"cooldown_seconds must be non-negative, got {self.cooldown_seconds}")

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "DetectionConfig":
        """Build a detection config from application settings."""
        source = source or settings
        return cls(
            chime_frequencies=tuple(source.chime_frequencies),
            range_start=source.range_start,
            range_end=source.range_end,
            history_size=source.history_size,
            window_size=source.window_size,
            score_history_size=source.score_history_size,
            threshold=source.threshold,
            fire_mode=source.fire_mode,
            cooldown_seconds=source.cooldown_seconds,
        )
