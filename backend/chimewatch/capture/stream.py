"""Queue-backed capture fed with frames received from a network client."""
import asyncio
from typing import Optional
import numpy as np
from chimewatch.audio.models import FrequencyFrame
from chimewatch.capture.base import SpectrumCapture
from chimewatch.core.logging import logger


class StreamCapture(SpectrumCapture):
    """Hands frames pushed by a producer to the detection loop."""

    def __init__(self, sample_rate: int, fft_size: int = 2048, max_frames: int = 120):
        """
        Initialize the frame queue.

        Args:
            sample_rate: Sample rate the client analysed with (Hz)
            fft_size: Transform size the client analysed with
            max_frames: Maximum number of pending frames before the oldest is dropped
        """
        self.sample_rate = sample_rate
        self.fft_size = fft_size
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_frames)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push_bytes(self, data: bytes) -> bool:
        """
        Queue one frame of raw uint8 magnitudes.

        Returns:
            True if the frame was accepted, False if it was malformed or the capture is closed
        """
        if self._closed:
            return False

        if len(data) != self.frequency_bin_count:
            logger.warning(f"Frame size {len(data)} != expected {self.frequency_bin_count} bins")
            return False

        frame = FrequencyFrame(
            magnitudes=np.frombuffer(data, dtype=np.uint8).copy(),
            sample_rate=self.sample_rate,
            fft_size=self.fft_size
        )
        self.push_frame(frame)
        return True

    def push_frame(self, frame: FrequencyFrame) -> None:
        """Queue a frame, dropping the oldest one if the queue is full."""
        if self._closed:
            return
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning("Frame queue full, dropping oldest frame")
            try:
                self.queue.get_nowait()  # Remove oldest
                self.queue.put_nowait(frame)  # Add new
            except asyncio.QueueEmpty:
                pass

    async def next_frame(self) -> Optional[FrequencyFrame]:
        """Wait for the next pushed frame."""
        if self._closed:
            return None
        frame = await self.queue.get()
        if self._closed:
            return None
        return frame

    def close(self) -> None:
        """Stop accepting frames and wake a pending reader."""
        if self._closed:
            return
        self._closed = True
        while not self.queue.empty():
            self.queue.get_nowait()
        self.queue.put_nowait(None)
