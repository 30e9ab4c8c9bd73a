"""Microphone capture producing frequency frames via sounddevice."""
import asyncio
import threading
from typing import Optional, Union
import numpy as np
import sounddevice as sd
from chimewatch.audio.models import FrequencyFrame
from chimewatch.capture.analyser import SpectrumAnalyser
from chimewatch.capture.base import CaptureError, SpectrumCapture
from chimewatch.core.config import Settings, settings as default_settings
from chimewatch.core.logging import logger


class MicrophoneCapture(SpectrumCapture):
    """
    Records from an input device and analyses the latest fft_size samples
    once per frame interval.
    """

    def __init__(
        self,
        sample_rate: Optional[int] = None,
        fft_size: int = 2048,
        device: Optional[Union[int, str]] = None,
        frame_interval_ms: float = 1000.0 / 60,
        analyser: Optional[SpectrumAnalyser] = None
    ):
        """
        Open and start the input stream.

        Args:
            sample_rate: Requested rate (Hz), None uses the device default
            fft_size: Transform size
            device: sounddevice device name or index, None uses the default input
            frame_interval_ms: Delay between analysed frames
            analyser: Spectrum analyser, built with defaults if omitted

        Raises:
            CaptureError: if the device cannot be opened
        """
        self.fft_size = fft_size
        self.frame_interval = frame_interval_ms / 1000.0
        self.analyser = analyser or SpectrumAnalyser(fft_size=fft_size)

        self._ring = np.zeros(fft_size, dtype=np.float32)
        self._lock = threading.Lock()
        self._closed = False

        try:
            if sample_rate is None:
                sample_rate = int(sd.query_devices(device, 'input')['default_samplerate'])
            self.sample_rate = sample_rate
            self._stream = sd.InputStream(
                samplerate=sample_rate,
                channels=1,
                dtype=np.float32,
                device=device,
                callback=self._audio_callback
            )
        except (sd.PortAudioError, ValueError) as e:
            raise CaptureError(f"Could not open audio input: {e}") from e

        try:
            self._stream.start()
        except sd.PortAudioError as e:
            self._stream.close()
            raise CaptureError(f"Could not start audio input: {e}") from e

        logger.info(f"Microphone capture started: {self.sample_rate} Hz, FFT size {fft_size}")

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "MicrophoneCapture":
        """Open a capture configured from application settings."""
        source = source or default_settings
        device = source.input_device
        if device is not None and device.isdigit():
            device = int(device)
        analyser = SpectrumAnalyser(
            fft_size=source.fft_size,
            smoothing_time_constant=source.smoothing_time_constant,
            min_decibels=source.min_decibels,
            max_decibels=source.max_decibels
        )
        return cls(
            sample_rate=source.sample_rate,
            fft_size=source.fft_size,
            device=device,
            frame_interval_ms=source.frame_interval_ms,
            analyser=analyser
        )

    def _audio_callback(self, indata, frames, time_info, status):
        """Callback function for the audio input stream."""
        if status:
            logger.warning(f"Audio status: {status}")

        block = indata[:, 0]
        with self._lock:
            if len(block) >= self.fft_size:
                self._ring[:] = block[-self.fft_size:]
            else:
                self._ring = np.roll(self._ring, -len(block))
                self._ring[-len(block):] = block

    async def next_frame(self) -> Optional[FrequencyFrame]:
        """Wait one frame interval and analyse the latest samples."""
        await asyncio.sleep(self.frame_interval)
        if self._closed:
            return None

        with self._lock:
            samples = self._ring.copy()

        return FrequencyFrame(
            magnitudes=self.analyser.byte_frequency_data(samples),
            sample_rate=self.sample_rate,
            fft_size=self.fft_size
        )

    def close(self) -> None:
        """Stop and close the input stream."""
        if self._closed:
            return
        self._closed = True
        self._stream.stop()
        self._stream.close()
        logger.info("Microphone capture closed")
