#!/usr/bin/env python3
"""
Streaming client for the chime detection backend.

Captures audio from the microphone, turns it into byte frequency frames and
sends them to the WebSocket endpoint, printing every detected chime.
"""
import asyncio
import json
import sys
import time
from datetime import datetime
from typing import Optional
import numpy as np
import sounddevice as sd
import websockets
from chimewatch.capture.analyser import SpectrumAnalyser

# Audio configuration
SAMPLE_RATE = 44100  # Hz
CHANNELS = 1  # Mono
FFT_SIZE = 2048
FRAME_INTERVAL = 1 / 60  # seconds between frames sent

# Server configuration
SERVER_URL = "ws://localhost:8000/ws/spectrum"

# Latest FFT_SIZE samples, written by the audio callback
ring: Optional[np.ndarray] = None


def audio_callback(indata, frames, time_info, status):
    """Callback function for audio input stream."""
    global ring
    if status:
        print(f"Audio status: {status}", file=sys.stderr)

    block = indata[:, 0]
    if len(block) >= FFT_SIZE:
        ring = block[-FFT_SIZE:].copy()
    else:
        ring = np.concatenate([ring[len(block):], block])


async def send_frames(websocket, analyser: SpectrumAnalyser):
    """Analyse the latest samples and send one frame per interval."""
    try:
        while True:
            await asyncio.sleep(FRAME_INTERVAL)
            frame = analyser.byte_frequency_data(ring)
            await websocket.send(frame.tobytes())
    except asyncio.CancelledError:
        print("\nStopped sending frames")


async def receive_events(websocket, clock_offset: float):
    """Print chime events sent by the server."""
    try:
        async for message in websocket:
            if not isinstance(message, str):
                continue
            data = json.loads(message)
            if data.get("event") == "chime":
                wall_time = data["timestamp"] + clock_offset
                print(f"Chime detected at {datetime.fromtimestamp(wall_time)} (score {data['score']})")
            elif "error" in data:
                print(f"Server error: {data['error']}")
                return
    except websockets.exceptions.ConnectionClosed:
        print("\nConnection closed by server")


async def main():
    """Main function to run the streaming client."""
    global ring
    ring = np.zeros(FFT_SIZE, dtype=np.float32)
    analyser = SpectrumAnalyser(fft_size=FFT_SIZE)

    print("=" * 70)
    print("Chime Detection Backend - Streaming Client")
    print("=" * 70)
    print(f"Sample Rate: {SAMPLE_RATE} Hz, FFT size: {FFT_SIZE}")
    print(f"Server: {SERVER_URL}")
    print("=" * 70)

    input_stream = sd.InputStream(
        samplerate=SAMPLE_RATE,
        channels=CHANNELS,
        dtype=np.float32,
        callback=audio_callback
    )

    try:
        input_stream.start()
        async with websockets.connect(SERVER_URL, ping_interval=None) as websocket:
            await websocket.send(json.dumps({"sample_rate": SAMPLE_RATE, "fft_size": FFT_SIZE}))
            ready = json.loads(await websocket.recv())
            if "error" in ready:
                print(f"Server rejected stream: {ready['error']}")
                return
            print(f"Connected as {ready['stream_id']}, chime bins {ready['chime_bins']}")
            print("Press Ctrl+C to stop\n")

            # Server timestamps come from its perf_counter; approximate the offset locally
            clock_offset = time.time() - time.perf_counter()

            send_task = asyncio.create_task(send_frames(websocket, analyser))
            try:
                await receive_events(websocket, clock_offset)
            finally:
                send_task.cancel()
                await asyncio.gather(send_task, return_exceptions=True)
    except KeyboardInterrupt:
        print("\n\nStopped by user")
    finally:
        input_stream.stop()
        input_stream.close()
        print("\nAudio stream stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\nExiting...")
