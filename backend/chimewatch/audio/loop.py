"""Detection driver: pulls frames from a capture and runs the chime pipeline."""
import asyncio
import time
from typing import Callable, Optional
from chimewatch.audio.buffers import DetectionState
from chimewatch.audio.models import DetectionEvent, FrequencyFrame
from chimewatch.audio.pipeline import ChimePipeline
from chimewatch.capture.base import SpectrumCapture
from chimewatch.core.config import DetectionConfig
from chimewatch.core.logging import logger

Listener = Callable[[float], None]
Clock = Callable[[], float]


class DetectionLoop:
    """
    Drives one capture through the chime pipeline, one frame per step.

    The loop owns its DetectionState exclusively. Cancellation is checked at
    step boundaries only, so a step that is running when stop() is called
    (for example from inside the listener) always completes first.
    """

    def __init__(
        self,
        capture: SpectrumCapture,
        listener: Listener,
        get_time: Clock = time.perf_counter,
        config: Optional[DetectionConfig] = None,
        stream_id: Optional[str] = None,
        on_event: Optional[Callable[[DetectionEvent], None]] = None
    ):
        """
        Build the pipeline for the capture's analyser geometry.

        Args:
            capture: Frame source, released on stop()
            listener: Called with the onset timestamp of every detection
            get_time: Monotonic clock used to stamp frames
            config: Detection parameters
            stream_id: Label attached to detection events
            on_event: Optional callback receiving the full DetectionEvent
        """
        self.capture = capture
        self.listener = listener
        self.get_time = get_time
        self.config = config or DetectionConfig()
        self.stream_id = stream_id
        self.on_event = on_event

        self.state = DetectionState(self.config.history_size, self.config.score_history_size)
        self.pipeline = ChimePipeline(self.config, capture.sample_rate, capture.fft_size, stream_id=stream_id)

        self._cancelled = False
        self._released = False
        self._task: Optional[asyncio.Task] = None

    def step(self, frame: FrequencyFrame) -> Optional[DetectionEvent]:
        """Process one frame and notify the listener if a chime was detected."""
        event = self.pipeline.process_frame(frame, self.get_time(), self.state)
        if event is None:
            return None

        logger.debug(f"Chime detected at {event.timestamp:.3f} (score {event.score:.2f})")
        try:
            self.listener(event.timestamp)
            if self.on_event is not None:
                self.on_event(event)
        except Exception as e:
            logger.error(f"Detection listener failed: {e}", exc_info=True)
        return event

    async def run(self) -> None:
        """Pull and process frames until stopped or the capture runs dry."""
        try:
            while not self._cancelled:
                frame = await self.capture.next_frame()
                if frame is None or self._cancelled:
                    break
                self.step(frame)
        finally:
            self.stop()

    def start(self) -> asyncio.Task:
        """Schedule run() on the current event loop."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self.run())
            self._task.add_done_callback(self._report_failure)
        return self._task

    def _report_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Detection loop failed: {exc}", exc_info=exc)

    def stop(self) -> None:
        """Cancel detection and release the capture; later calls are no-ops."""
        self._cancelled = True
        if self._released:
            return
        self._released = True
        self.capture.close()
        label = f" for stream {self.stream_id}" if self.stream_id else ""
        logger.info(f"Detection stopped after {self.state.frame_count} frames{label}")
        self.state.clear()


async def start_detection(
    listener: Listener,
    get_time: Clock = time.perf_counter,
    capture: Optional[SpectrumCapture] = None,
    config: Optional[DetectionConfig] = None,
    stream_id: Optional[str] = None,
    on_event: Optional[Callable[[DetectionEvent], None]] = None
) -> Callable[[], None]:
    """
    Start detecting chimes and return a teardown function.

    Args:
        listener: Called with the estimated onset time of each detected chime
        get_time: Clock source, defaults to a high-resolution monotonic clock
        capture: Frame source; a microphone capture from settings if omitted
        config: Detection parameters; derived from settings if omitted
        stream_id: Label attached to detection events
        on_event: Optional callback receiving the full DetectionEvent

    Returns:
        Teardown function that stops the loop and releases the capture

    Raises:
        CaptureError: if the default microphone capture cannot be opened
    """
    if capture is None:
        from chimewatch.capture.microphone import MicrophoneCapture
        capture = MicrophoneCapture.from_settings()
    if config is None:
        config = DetectionConfig.from_settings()

    try:
        loop = DetectionLoop(capture, listener, get_time, config, stream_id=stream_id, on_event=on_event)
    except ValueError:
        capture.close()
        raise
    logger.info(
        f"Starting chime detection: {capture.sample_rate} Hz, FFT size {capture.fft_size}, "
        f"chime bins {sorted(loop.pipeline.chime_bins)}, mode {config.fire_mode}"
    )
    loop.start()
    return loop.stop
