#!/usr/bin/env python3
"""
Local chime monitor.

Listens on the microphone and logs the wall-clock time each chime started.
By default detection stops after the first chime.
"""
import argparse
import asyncio
import time
from datetime import datetime
from chimewatch.audio.loop import start_detection
from chimewatch.capture.base import CaptureError
from chimewatch.core.config import DetectionConfig, settings
from chimewatch.core.logging import setup_logging, logger


def to_wall_clock(timestamp: float, origin_perf: float, origin_wall: float) -> float:
    """Convert a perf_counter reading into a Unix timestamp."""
    return origin_wall + (timestamp - origin_perf)


def format_detection(wall_time: float) -> str:
    """Human-readable detection line with millisecond part."""
    return f"Chime detected at {datetime.fromtimestamp(wall_time)}, {(wall_time * 1000) % 1000:.1f}ms"


async def monitor(continuous: bool = False) -> int:
    """Run detection until the first chime (or forever with continuous=True)."""
    origin_perf = time.perf_counter()
    origin_wall = time.time()
    finished = asyncio.Event()
    teardown = None

    def on_chime(timestamp: float) -> None:
        logger.info(format_detection(to_wall_clock(timestamp, origin_perf, origin_wall)))
        if not continuous:
            teardown()
            finished.set()

    try:
        from chimewatch.capture.microphone import MicrophoneCapture
        capture = MicrophoneCapture.from_settings()
    except CaptureError as e:
        logger.error(f"{e}")
        return 1

    teardown = await start_detection(on_chime, capture=capture, config=DetectionConfig.from_settings())
    logger.info("Listening for the chime... Press Ctrl+C to stop")

    try:
        await finished.wait()
    finally:
        teardown()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Detect a multi-tone chime on the microphone")
    parser.add_argument("--continuous", action="store_true", help="keep listening after the first chime")
    parser.add_argument("--log-level", default=settings.log_level, help="logging level (default: %(default)s)")
    args = parser.parse_args()

    setup_logging(args.log_level)
    try:
        return asyncio.run(monitor(continuous=args.continuous))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
