"""Byte-scaled spectrum analysis of time-domain audio."""
import numpy as np
from chimewatch.core.logging import logger


class SpectrumAnalyser:
    """
    Turns the latest block of audio samples into 0-255 magnitude bytes.

    Processing per call:
    1. Blackman window over the last fft_size samples
    2. Real FFT, magnitude scaled by 1 / fft_size
    3. Exponential smoothing with the previous result
    4. Conversion to dB and linear mapping of [min_decibels, max_decibels] onto 0-255
    """

    def __init__(
        self,
        fft_size: int = 2048,
        smoothing_time_constant: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0
    ):
        if fft_size <= 0 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two, got {fft_size}")
        if not 0.0 <= smoothing_time_constant <= 1.0:
            raise ValueError(f"smoothing_time_constant must be in [0, 1], got {smoothing_time_constant}")
        if min_decibels >= max_decibels:
            raise ValueError(f"min_decibels ({min_decibels}) must be below max_decibels ({max_decibels})")

        self.fft_size = fft_size
        self.smoothing_time_constant = smoothing_time_constant
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels

        n = np.arange(fft_size)
        self.window = (
            0.42
            - 0.5 * np.cos(2 * np.pi * n / fft_size)
            + 0.08 * np.cos(4 * np.pi * n / fft_size)
        )
        self._smoothed = np.zeros(fft_size // 2, dtype=np.float64)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def byte_frequency_data(self, samples: np.ndarray) -> np.ndarray:
        """
        Analyse the most recent samples.

        Args:
            samples: float audio in [-1, 1]; the last fft_size values are used,
                shorter input is zero-padded at the front

        Returns:
            uint8 array of frequency_bin_count magnitudes
        """
        block = np.asarray(samples, dtype=np.float64)
        if block.size >= self.fft_size:
            block = block[-self.fft_size:]
        else:
            logger.debug(f"Analysing {block.size} samples, padding to {self.fft_size}")
            block = np.pad(block, (self.fft_size - block.size, 0), mode='constant')

        spectrum = np.fft.rfft(block * self.window)[:self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self.fft_size

        tau = self.smoothing_time_constant
        self._smoothed = tau * self._smoothed + (1.0 - tau) * magnitude

        with np.errstate(divide='ignore'):
            decibels = 20 * np.log10(self._smoothed)

        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.floor(scale * (decibels - self.min_decibels))
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def reset(self) -> None:
        """Clear the smoothing state."""
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)
