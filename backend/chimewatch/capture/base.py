"""Capture collaborator interface consumed by the detection loop."""
from abc import ABC, abstractmethod
from typing import Optional
from chimewatch.audio.models import FrequencyFrame


class CaptureError(RuntimeError):
    """Raised when an audio capture cannot be opened."""


class SpectrumCapture(ABC):
    """Source of frequency frames at the host's frame cadence."""

    sample_rate: int
    fft_size: int

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    @abstractmethod
    async def next_frame(self) -> Optional[FrequencyFrame]:
        """Wait for the next frame; None once the capture is closed or exhausted."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying capture resources."""
