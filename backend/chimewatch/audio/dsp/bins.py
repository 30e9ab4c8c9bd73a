"""Mapping of target frequencies onto spectral bins."""
import math
from typing import FrozenSet, Iterable, Optional
from chimewatch.core.logging import logger


def map_frequency_to_bin(target_hz: float, sample_rate: int, fft_size: int) -> Optional[int]:
    """
    Find the spectral bin closest to a target frequency.

    Args:
        target_hz: Frequency to locate (Hz)
        sample_rate: Analyser sample rate (Hz)
        fft_size: Transform size (samples)

    Returns:
        Bin index in [0, fft_size / 2), or None if the frequency falls outside it
    """
    if not math.isfinite(target_hz):
        return None

    resolution = sample_rate / fft_size  # Hz per bin
    # Round half up, negative half toward zero
    index = math.floor(target_hz / resolution + 0.5)

    if 0 <= index < fft_size // 2:
        return index
    return None


def build_chime_bin_set(
    frequencies: Iterable[float],
    sample_rate: int,
    fft_size: int
) -> FrozenSet[int]:
    """
    Resolve the chime target frequencies into a set of bin indices.

    Frequencies outside the analyser range are logged and left out.
    """
    bins = set()
    for frequency in frequencies:
        index = map_frequency_to_bin(frequency, sample_rate, fft_size)
        if index is None:
            logger.warning(
                f"Chime frequency {frequency} Hz is outside the analyser range "
                f"(0-{sample_rate / 2:.0f} Hz), ignoring it"
            )
            continue
        bins.add(index)
    return frozenset(bins)
