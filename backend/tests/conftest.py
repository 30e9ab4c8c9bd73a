"""
Pytest configuration and shared fixtures.

Provides frame builders and a scripted capture for driving the detection loop
without an audio device.
"""
import asyncio
import itertools
from typing import Iterable, List, Optional
import numpy as np
import pytest
from chimewatch.audio.models import FrequencyFrame
from chimewatch.capture.base import SpectrumCapture

# Test constants
TEST_SAMPLE_RATE = 44100
TEST_FFT_SIZE = 2048
# Bins of the default chime frequencies at 44100 Hz / 2048
DEFAULT_CHIME_BINS = frozenset({30, 55, 72, 97, 116, 139})


def make_frame(
    chime_level: int = 200,
    background_level: int = 10,
    chime_bins: Iterable[int] = DEFAULT_CHIME_BINS,
    sample_rate: int = TEST_SAMPLE_RATE,
    fft_size: int = TEST_FFT_SIZE
) -> FrequencyFrame:
    """
    Build a frame with one level on the chime bins and another everywhere else.

    Args:
        chime_level: Magnitude on chime bins (0-255)
        background_level: Magnitude on all other bins (0-255)
        chime_bins: Bins receiving chime_level
        sample_rate: Frame sample rate
        fft_size: Frame transform size

    Returns:
        FrequencyFrame with fft_size / 2 magnitudes
    """
    magnitudes = np.full(fft_size // 2, background_level, dtype=np.uint8)
    magnitudes[list(chime_bins)] = chime_level
    return FrequencyFrame(magnitudes=magnitudes, sample_rate=sample_rate, fft_size=fft_size)


class ScriptedCapture(SpectrumCapture):
    """Capture returning a fixed list of frames, then None."""

    def __init__(
        self,
        frames: List[FrequencyFrame],
        repeat_last: bool = False,
        honor_close: bool = True,
        sample_rate: int = TEST_SAMPLE_RATE,
        fft_size: int = TEST_FFT_SIZE
    ):
        """
        Args:
            frames: Frames to hand out in order
            repeat_last: Keep returning the last frame forever once the list runs out
            honor_close: If False, keep producing frames after close()
        """
        self.sample_rate = sample_rate
        self.fft_size = fft_size
        self.frames = list(frames)
        self.repeat_last = repeat_last
        self.honor_close = honor_close
        self.close_calls = 0
        self.frames_served = 0
        self.exhausted: Optional[asyncio.Event] = None

    async def next_frame(self) -> Optional[FrequencyFrame]:
        if self.exhausted is None:
            self.exhausted = asyncio.Event()
        await asyncio.sleep(0)

        if self.close_calls and self.honor_close:
            self.exhausted.set()
            return None

        if self.frames_served < len(self.frames):
            frame = self.frames[self.frames_served]
        elif self.repeat_last and self.frames:
            frame = self.frames[-1]
        else:
            self.exhausted.set()
            return None

        self.frames_served += 1
        return frame

    def close(self) -> None:
        self.close_calls += 1


@pytest.fixture
def chime_frame() -> FrequencyFrame:
    """Frame with chime bins at 200 and the rest at 10."""
    return make_frame(200, 10)


@pytest.fixture
def silent_frame() -> FrequencyFrame:
    """Frame with every magnitude at 0."""
    return make_frame(0, 0)


@pytest.fixture
def step_clock():
    """Clock returning 0.0, 1.0, 2.0, ... on successive calls."""
    counter = itertools.count()
    return lambda: float(next(counter))
