"""Rolling chime score normalized by the background energy."""
import math
from typing import Optional, Sequence
from chimewatch.audio.models import WindowSample


class ScoreEvaluator:
    """Computes the normalized chime score over the most recent samples."""

    def __init__(self, window_size: int = 10):
        self.window_size = window_size

    def evaluate(self, history: Sequence[WindowSample]) -> Optional[float]:
        """
        Ratio of the mean chime energy to the mean non-chime energy.

        Returns None while fewer than `window_size` samples exist, and when
        the baseline is zero so the ratio is undefined.
        """
        if len(history) < self.window_size:
            return None

        window = list(history)[-self.window_size:]
        score = sum(s.chime_avg for s in window) / self.window_size
        baseline = sum(s.no_chime_avg for s in window) / self.window_size

        if baseline <= 0.0 or not math.isfinite(baseline):
            return None

        normalized = score / baseline
        if not math.isfinite(normalized):
            return None
        return normalized
