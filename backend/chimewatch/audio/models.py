"""Spectral data models and structures."""
from dataclasses import dataclass
from typing import Optional
import numpy as np


@dataclass
class FrequencyFrame:
    """One snapshot of per-bin byte magnitudes from the spectrum analyser."""
    magnitudes: np.ndarray  # uint8, one value per bin
    sample_rate: int
    fft_size: int

    def __post_init__(self):
        """Validate frame data."""
        if len(self.magnitudes.shape) != 1:
            raise ValueError(f"Expected 1D magnitudes, got shape {self.magnitudes.shape}")
        if self.magnitudes.size and (self.magnitudes.min() < 0 or self.magnitudes.max() > 255):
            raise ValueError("Magnitudes must lie in [0, 255]")
        if self.magnitudes.dtype != np.uint8:
            self.magnitudes = self.magnitudes.astype(np.uint8)
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")
        if self.fft_size <= 0 or self.fft_size % 2:
            raise ValueError(f"FFT size must be a positive even number, got {self.fft_size}")

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2


@dataclass(frozen=True)
class WindowSample:
    """Per-frame energy averages, kept in the rolling history."""
    time: float
    chime_avg: float
    no_chime_avg: float


@dataclass(frozen=True)
class DetectionEvent:
    """A detected chime onset."""
    timestamp: float  # onset time, same unit as the detection clock
    score: float  # normalized score that crossed the threshold
    stream_id: Optional[str] = None
