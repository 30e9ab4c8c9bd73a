"""Per-frame energy aggregation over chime and non-chime bins."""
from typing import FrozenSet
import numpy as np
from chimewatch.audio.buffers import DetectionState
from chimewatch.audio.models import FrequencyFrame, WindowSample


class FrameAggregator:
    """Averages chime-bin and non-chime-bin magnitudes inside an inspection range."""

    def __init__(self, chime_bins: FrozenSet[int], range_start: int = 0, range_end: int = 200):
        self.chime_bins = chime_bins
        self.range_start = range_start
        self.range_end = range_end

    def ingest(self, frame: FrequencyFrame, timestamp: float, state: DetectionState) -> WindowSample:
        """
        Compute the energy averages of one frame and append them to the history.

        Args:
            frame: Frequency frame to aggregate
            timestamp: Time the frame was taken
            state: Detection state receiving the sample

        Returns:
            The WindowSample that was appended
        """
        end = min(self.range_end, len(frame.magnitudes))
        start = min(self.range_start, end)

        values = frame.magnitudes[start:end].astype(np.float64)
        is_chime = np.isin(np.arange(start, end), list(self.chime_bins))

        chime_values = values[is_chime]
        no_chime_values = values[~is_chime]

        sample = WindowSample(
            time=timestamp,
            chime_avg=float(chime_values.mean()) if chime_values.size else 0.0,
            no_chime_avg=float(no_chime_values.mean()) if no_chime_values.size else 0.0,
        )
        state.add_sample(sample)
        return sample
