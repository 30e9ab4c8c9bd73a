"""Chime detection pipeline: aggregation, scoring and thresholding."""
import time
from typing import Optional
from chimewatch.audio.buffers import DetectionState
from chimewatch.audio.detector import ThresholdDetector
from chimewatch.audio.dsp.aggregate import FrameAggregator
from chimewatch.audio.dsp.bins import build_chime_bin_set
from chimewatch.audio.dsp.score import ScoreEvaluator
from chimewatch.audio.models import DetectionEvent, FrequencyFrame
from chimewatch.core.config import DetectionConfig, settings
from chimewatch.core.logging import logger


class ChimePipeline:
    """Runs one frequency frame through the detection stages."""

    def __init__(
        self,
        config: DetectionConfig,
        sample_rate: int,
        fft_size: int,
        stream_id: Optional[str] = None
    ):
        """
        Resolve the chime bins for the analyser geometry and build the stages.

        Args:
            config: Detection parameters
            sample_rate: Analyser sample rate (Hz)
            fft_size: Analyser transform size
            stream_id: Label attached to emitted events
        """
        self.config = config
        self.sample_rate = sample_rate
        self.fft_size = fft_size
        self.stream_id = stream_id

        self.chime_bins = build_chime_bin_set(config.chime_frequencies, sample_rate, fft_size)
        if not self.chime_bins:
            logger.warning("No chime frequency maps into the analyser range, detection cannot fire")

        self.aggregator = FrameAggregator(self.chime_bins, config.range_start, config.range_end)
        self.evaluator = ScoreEvaluator(config.window_size)
        self.detector = ThresholdDetector(
            threshold=config.threshold,
            window_size=config.window_size,
            mode=config.fire_mode,
            cooldown_seconds=config.cooldown_seconds
        )

    def process_frame(
        self,
        frame: FrequencyFrame,
        timestamp: float,
        state: DetectionState
    ) -> Optional[DetectionEvent]:
        """
        Process a single frequency frame.

        The pipeline applies, in order:
        1. Aggregation of chime / non-chime bin energy into the history
        2. Rolling normalized score over the last window_size samples
        3. Threshold check

        Args:
            frame: Frequency frame from the capture
            timestamp: Clock reading for this frame
            state: Detection state owned by the caller

        Returns:
            DetectionEvent if a chime was detected on this frame
        """
        start_time = time.perf_counter()

        self.aggregator.ingest(frame, timestamp, state)
        score = self.evaluator.evaluate(state.history)
        if score is not None:
            state.add_score(score)
        event = self.detector.check(score, state.history, stream_id=self.stream_id)

        processing_time = (time.perf_counter() - start_time) * 1000
        if processing_time > settings.frame_interval_ms:
            logger.warning(
                f"Frame processing took {processing_time:.2f}ms (frame interval: {settings.frame_interval_ms:.2f}ms)"
            )

        return event
