"""WebSocket endpoint for spectrum ingestion and chime event streaming."""
import asyncio
import json
import uuid
from typing import Callable
from fastapi import WebSocket
from fastapi.websockets import WebSocketState
from chimewatch.audio.loop import DetectionLoop
from chimewatch.audio.models import DetectionEvent
from chimewatch.capture.stream import StreamCapture
from chimewatch.core.config import DetectionConfig, settings
from chimewatch.core.logging import logger
from chimewatch.services.detection_service import detection_service

MIN_FFT_SIZE = 32
MAX_FFT_SIZE = 32768


def parse_stream_config(message: str) -> tuple[int, int]:
    """
    Parse the client's opening config message.

    Args:
        message: JSON text such as {"sample_rate": 44100, "fft_size": 2048}

    Returns:
        (sample_rate, fft_size)

    Raises:
        ValueError: if the message is not valid config
    """
    try:
        data = json.loads(message)
    except json.JSONDecodeError as e:
        raise ValueError(f"Config is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Config must be a JSON object")

    sample_rate = data.get("sample_rate")
    fft_size = data.get("fft_size", settings.fft_size)

    if not isinstance(sample_rate, int) or sample_rate <= 0:
        raise ValueError("sample_rate must be a positive integer")
    if (
        not isinstance(fft_size, int)
        or not MIN_FFT_SIZE <= fft_size <= MAX_FFT_SIZE
        or fft_size & (fft_size - 1)
    ):
        raise ValueError(f"fft_size must be a power of two between {MIN_FFT_SIZE} and {MAX_FFT_SIZE}")

    return sample_rate, fft_size


async def receive_frames(websocket: WebSocket, capture: StreamCapture, stop: Callable[[], None]) -> None:
    """
    Feed binary frames from the client into the capture until it disconnects.

    Args:
        websocket: WebSocket connection
        capture: Capture receiving the frames
        stop: Teardown of the detection loop
    """
    try:
        while not capture.closed:
            message = await websocket.receive()

            if message["type"] == "websocket.disconnect":
                logger.info("WebSocket disconnected")
                break

            if message.get("bytes") is not None:
                capture.push_bytes(message["bytes"])
            elif message.get("text") is not None:
                try:
                    command = json.loads(message["text"])
                except json.JSONDecodeError:
                    logger.warning(f"Ignoring non-JSON text message: {message['text'][:50]}")
                    continue
                if isinstance(command, dict) and command.get("type") == "stop":
                    logger.info("Client requested stop")
                    break
    finally:
        stop()


async def process_stream(stream_id: str, websocket: WebSocket, capture: StreamCapture) -> None:
    """
    Run chime detection on a stream and send every event to the client.

    Args:
        stream_id: Unique identifier for this stream
        websocket: WebSocket connection
        capture: Capture fed by this connection
    """
    outgoing: asyncio.Queue = asyncio.Queue()

    def on_event(event: DetectionEvent) -> None:
        outgoing.put_nowait(event)
        if settings.stop_after_first_event:
            detection.stop()

    detection = DetectionLoop(
        capture,
        listener=lambda t: logger.info(f"Chime detected on stream {stream_id} at {t:.3f}"),
        config=DetectionConfig.from_settings(),
        stream_id=stream_id,
        on_event=on_event
    )

    async def run_detection() -> None:
        try:
            await detection.run()
        finally:
            outgoing.put_nowait(None)

    detection_task = receive_task = None
    await detection_service.register_stream(stream_id)

    try:
        await websocket.send_json({
            "status": "ready",
            "stream_id": stream_id,
            "chime_bins": sorted(detection.pipeline.chime_bins)
        })

        detection_task = asyncio.create_task(run_detection())
        receive_task = asyncio.create_task(receive_frames(websocket, capture, detection.stop))

        while True:
            event = await outgoing.get()
            if event is None:
                break

            await detection_service.record_event(stream_id, event)
            await websocket.send_json({
                "event": "chime",
                "timestamp": event.timestamp,
                "score": round(event.score, 3),
                "stream_id": stream_id
            })
    finally:
        # Cleanup on disconnect
        detection.stop()
        if receive_task is not None:
            receive_task.cancel()
        tasks = [task for task in (detection_task, receive_task) if task is not None]
        await asyncio.gather(*tasks, return_exceptions=True)
        await detection_service.unregister_stream(stream_id)
        logger.info(f"Cleaned up stream {stream_id}")


async def websocket_spectrum_endpoint(websocket: WebSocket) -> None:
    """
    WebSocket endpoint handler for /ws/spectrum.

    Expects a JSON config message followed by binary uint8 frequency frames,
    and sends JSON chime events.
    """
    await websocket.accept()

    # Generate unique stream ID
    stream_id = f"ws-{uuid.uuid4().hex[:8]}"
    logger.info(f"New WebSocket connection: {stream_id}")

    try:
        if await detection_service.get_stream_count() >= settings.max_concurrent_streams:
            logger.warning(f"Rejecting {stream_id}: {settings.max_concurrent_streams} streams already active")
            await websocket.send_json({"error": "too many active streams"})
            return

        message = await websocket.receive()
        if message["type"] == "websocket.disconnect" or message.get("text") is None:
            logger.warning(f"Stream {stream_id} did not open with a config message")
            return

        try:
            sample_rate, fft_size = parse_stream_config(message["text"])
        except ValueError as e:
            logger.warning(f"Invalid config from {stream_id}: {e}")
            await websocket.send_json({"error": str(e)})
            return

        capture = StreamCapture(sample_rate, fft_size)
        await process_stream(stream_id, websocket, capture)
    except Exception as e:
        logger.error(f"WebSocket error for {stream_id}: {e}", exc_info=True)
    finally:
        if (
            websocket.client_state == WebSocketState.CONNECTED
            and websocket.application_state == WebSocketState.CONNECTED
        ):
            await websocket.close()
