"""Threshold detection with configurable re-firing policy."""
import math
from enum import Enum
from typing import Optional, Sequence
from chimewatch.audio.models import DetectionEvent, WindowSample


class FireMode(str, Enum):
    """How often a sustained score above threshold produces events."""
    EVERY_FRAME = "every_frame"
    ONCE_PER_CROSSING = "once_per_crossing"
    COOLDOWN = "cooldown"


class ThresholdDetector:
    """
    Fires a detection event when the normalized score exceeds the threshold.

    The reported timestamp is the time of the oldest sample in the averaging
    window, which compensates for the lag of the rolling mean.

    Modes:
        every_frame: fire on every frame above threshold
        once_per_crossing: fire on the rising edge, re-arm once the score
            drops to or below the threshold (or becomes undefined)
        cooldown: fire when above threshold and at least `cooldown_seconds`
            have passed since the previous firing frame
    """

    def __init__(
        self,
        threshold: float = 2.0,
        window_size: int = 10,
        mode: FireMode = FireMode.EVERY_FRAME,
        cooldown_seconds: float = 0.0
    ):
        self.threshold = threshold
        self.window_size = window_size
        self.mode = FireMode(mode)
        self.cooldown_seconds = cooldown_seconds

        self._armed = True
        self._last_fire_time: Optional[float] = None

    def check(
        self,
        score: Optional[float],
        history: Sequence[WindowSample],
        stream_id: Optional[str] = None
    ) -> Optional[DetectionEvent]:
        """
        Test one evaluated score.

        Args:
            score: Normalized score, None when undefined
            history: Sample history the score was computed from
            stream_id: Optional stream label attached to the event

        Returns:
            DetectionEvent if the detector fired, None otherwise
        """
        above = (
            score is not None
            and math.isfinite(score)
            and score > self.threshold
            and len(history) >= self.window_size
        )

        if not above:
            self._armed = True
            return None

        now = history[-1].time

        if self.mode == FireMode.ONCE_PER_CROSSING:
            if not self._armed:
                return None
            self._armed = False
        elif self.mode == FireMode.COOLDOWN:
            if self._last_fire_time is not None and now - self._last_fire_time < self.cooldown_seconds:
                return None

        self._last_fire_time = now
        return DetectionEvent(
            timestamp=history[-self.window_size].time,
            score=score,
            stream_id=stream_id
        )

    def reset(self) -> None:
        """Forget crossing and cooldown state."""
        self._armed = True
        self._last_fire_time = None
