"""Tests for the detection loop and start_detection."""
import asyncio
import logging
import sys
import types
import numpy as np
import pytest
from chimewatch.audio.loop import DetectionLoop, start_detection
from chimewatch.capture.analyser import SpectrumAnalyser
from chimewatch.capture.base import CaptureError
from chimewatch.core.config import DetectionConfig
from conftest import DEFAULT_CHIME_BINS, ScriptedCapture, make_frame


def test_ten_chime_frames_fire_once(chime_frame, step_clock):
    """Ten chime frames give exactly one event stamped at the first frame."""
    events = []
    capture = ScriptedCapture([chime_frame] * 10)
    loop = DetectionLoop(capture, events.append, step_clock, DetectionConfig())

    asyncio.run(loop.run())

    assert events == [0.0]
    assert capture.close_calls == 1


def test_event_reports_window_start(chime_frame, step_clock):
    """The onset timestamp is the oldest sample of the averaging window."""
    frames = [make_frame(0, 10)] * 15 + [chime_frame] * 10
    events = []
    loop = DetectionLoop(ScriptedCapture(frames), events.append, step_clock, DetectionConfig())

    asyncio.run(loop.run())

    # Rolling chime mean over the last 10 samples: 20 * k for k chime frames,
    # background stays 10, so the score first exceeds 2.0 at k = 2 (frame 17).
    assert events[0] == 7.0
    assert events == [float(t) for t in range(7, 16)]


def test_silence_never_fires(silent_frame, step_clock):
    """All-zero input never fires and never raises."""
    events = []
    loop = DetectionLoop(ScriptedCapture([silent_frame] * 100), events.append, step_clock, DetectionConfig())

    asyncio.run(loop.run())

    assert events == []


def test_history_bounded_while_running(chime_frame, step_clock):
    """Stepping many frames keeps the history at its capacity."""
    loop = DetectionLoop(ScriptedCapture([]), lambda t: None, step_clock, DetectionConfig())

    for _ in range(60):
        loop.step(chime_frame)
        assert len(loop.state.history) <= 20

    assert len(loop.state.score_history) == 51


def test_teardown_from_listener_stops_loop(chime_frame, step_clock):
    """Stopping inside the listener prevents any further event."""
    events = []
    capture = ScriptedCapture([chime_frame], repeat_last=True, honor_close=False)

    def listener(timestamp):
        events.append(timestamp)
        loop.stop()

    loop = DetectionLoop(capture, listener, step_clock, DetectionConfig(fire_mode="every_frame"))

    asyncio.run(loop.run())

    assert events == [0.0]
    assert capture.close_calls == 1
    assert capture.frames_served == 10


def test_teardown_is_idempotent(chime_frame):
    """Repeated teardown releases the capture only once."""
    async def scenario():
        capture = ScriptedCapture([chime_frame], repeat_last=True)
        teardown = await start_detection(lambda t: None, capture=capture, config=DetectionConfig())
        await asyncio.sleep(0)
        teardown()
        teardown()
        teardown()
        return capture

    capture = asyncio.run(scenario())
    assert capture.close_calls == 1


def test_no_events_after_external_teardown(chime_frame, step_clock):
    """A capture that keeps producing after teardown produces no more events."""
    async def scenario():
        events = []
        capture = ScriptedCapture([chime_frame], repeat_last=True, honor_close=False)
        teardown = await start_detection(
            events.append,
            get_time=step_clock,
            capture=capture,
            config=DetectionConfig(fire_mode="every_frame")
        )
        while len(events) < 3:
            await asyncio.sleep(0)
        teardown()
        fired = len(events)
        for _ in range(20):
            await asyncio.sleep(0)
        return fired, events, capture

    fired, events, capture = asyncio.run(scenario())

    assert len(events) == fired
    assert capture.close_calls == 1


def test_start_detection_runs_until_capture_exhausted(chime_frame, step_clock):
    """start_detection processes frames in the background."""
    async def scenario():
        events = []
        capture = ScriptedCapture([chime_frame] * 12)
        await start_detection(events.append, get_time=step_clock, capture=capture,
                              config=DetectionConfig(fire_mode="once_per_crossing"))
        await asyncio.wait_for(_exhausted(capture), timeout=5)
        return events, capture

    events, capture = asyncio.run(scenario())

    assert events == [0.0]
    assert capture.close_calls == 1


async def _exhausted(capture):
    while capture.exhausted is None:
        await asyncio.sleep(0)
    await capture.exhausted.wait()
    await asyncio.sleep(0)


def test_listener_errors_do_not_stop_detection(chime_frame, step_clock, caplog):
    """A failing listener is logged and detection goes on."""
    calls = []

    def listener(timestamp):
        calls.append(timestamp)
        raise RuntimeError("listener broke")

    loop = DetectionLoop(ScriptedCapture([chime_frame] * 12), listener, step_clock,
                         DetectionConfig(fire_mode="every_frame"))

    with caplog.at_level(logging.ERROR):
        asyncio.run(loop.run())

    assert calls == [0.0, 1.0, 2.0]
    assert "listener broke" in caplog.text


def test_on_event_receives_full_event(chime_frame, step_clock):
    """on_event gets the DetectionEvent with score and stream id."""
    received = []
    loop = DetectionLoop(ScriptedCapture([chime_frame] * 10), lambda t: None, step_clock,
                         DetectionConfig(), stream_id="mic", on_event=received.append)

    asyncio.run(loop.run())

    assert len(received) == 1
    assert received[0].score == 20.0
    assert received[0].stream_id == "mic"


def test_capture_init_failure_propagates(monkeypatch):
    """A microphone that cannot be opened fails start_detection without starting a loop."""
    class BrokenMicrophone:
        @classmethod
        def from_settings(cls, source=None):
            raise CaptureError("no input device")

    fake_module = types.ModuleType("chimewatch.capture.microphone")
    fake_module.MicrophoneCapture = BrokenMicrophone
    monkeypatch.setitem(sys.modules, "chimewatch.capture.microphone", fake_module)

    with pytest.raises(CaptureError):
        asyncio.run(start_detection(lambda t: None))


def test_analysed_chime_is_detected(step_clock):
    """Bin-centred chime tones analysed from audio trigger a detection."""
    sample_rate, fft_size = 44100, 2048
    t = np.arange(fft_size) / sample_rate
    tone = sum(
        np.sin(2 * np.pi * (b * sample_rate / fft_size) * t) for b in DEFAULT_CHIME_BINS
    ) * 0.1
    analyser = SpectrumAnalyser(fft_size=fft_size)

    frames = []
    for _ in range(15):
        frame = make_frame(0, 0)
        frame.magnitudes = analyser.byte_frequency_data(tone)
        frames.append(frame)

    events = []
    loop = DetectionLoop(ScriptedCapture(frames), events.append, step_clock, DetectionConfig())
    asyncio.run(loop.run())

    assert events
    assert events[0] == 0.0


class FailingCapture(ScriptedCapture):
    """Capture whose device disappears on the first read."""

    async def next_frame(self):
        raise OSError("device lost")


def test_background_failure_is_logged(caplog):
    """A detection task that dies is logged and still releases the capture."""
    async def scenario():
        capture = FailingCapture([])
        await start_detection(lambda t: None, capture=capture, config=DetectionConfig())
        for _ in range(5):
            await asyncio.sleep(0)
        return capture

    with caplog.at_level(logging.ERROR):
        capture = asyncio.run(scenario())

    assert "Detection loop failed: device lost" in caplog.text
    assert capture.close_calls == 1
