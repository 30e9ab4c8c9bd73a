"""Rolling detection history owned by a single detection loop."""
from collections import deque
from typing import List
from chimewatch.audio.models import WindowSample


class DetectionState:
    """Holds the sample history and score history for one detection run."""

    def __init__(self, history_size: int = 20, score_history_size: int = 600):
        """
        Initialize empty histories.

        Args:
            history_size: Maximum number of WindowSamples to keep
            score_history_size: Maximum number of normalized scores to keep
        """
        self.history: deque = deque(maxlen=history_size)
        self.score_history: deque = deque(maxlen=score_history_size)
        self.frame_count = 0

    def add_sample(self, sample: WindowSample) -> None:
        """Append a sample, evicting the oldest once the history is full."""
        self.history.append(sample)
        self.frame_count += 1

    def add_score(self, score: float) -> None:
        """Record a normalized score."""
        self.score_history.append(score)

    def recent_samples(self, count: int) -> List[WindowSample]:
        """Return up to the last `count` samples, oldest first."""
        if count <= 0:
            return []
        return list(self.history)[-count:]

    def clear(self) -> None:
        """Drop all recorded history."""
        self.history.clear()
        self.score_history.clear()
        self.frame_count = 0
