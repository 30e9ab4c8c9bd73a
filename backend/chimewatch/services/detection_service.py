"""Service for tracking active detection streams and their events."""
import asyncio
import time
from typing import Dict, List, Optional
from chimewatch.audio.models import DetectionEvent
from chimewatch.core.logging import logger


class DetectionService:
    """Keeps the detection events of every active stream."""

    def __init__(self, max_events: int = 100):
        """
        Initialize the detection service.

        Args:
            max_events: Events kept per stream, oldest dropped first
        """
        self.max_events = max_events
        self._events: Dict[str, List[DetectionEvent]] = {}
        self._started_at: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    async def register_stream(self, stream_id: str) -> None:
        """
        Register a new active stream.

        Args:
            stream_id: Stream identifier
        """
        async with self._lock:
            self._events[stream_id] = []
            self._started_at[stream_id] = time.time()
            logger.info(f"Registered stream: {stream_id}")

    async def record_event(self, stream_id: str, event: DetectionEvent) -> None:
        """
        Store a detection event for a stream.

        Args:
            stream_id: Stream identifier
            event: Detected chime
        """
        async with self._lock:
            events = self._events.get(stream_id)
            if events is None:
                logger.debug(f"Dropping event for unknown stream {stream_id}")
                return
            events.append(event)
            if len(events) > self.max_events:
                del events[0]

    async def get_events(self, stream_id: str) -> Optional[dict]:
        """
        Get recorded events for a stream.

        Args:
            stream_id: Stream identifier

        Returns:
            Dictionary with the stream's events and start time, or None
        """
        async with self._lock:
            if stream_id not in self._events:
                return None

            return {
                "stream_id": stream_id,
                "started_at": self._started_at.get(stream_id),
                "events": [
                    {"timestamp": e.timestamp, "score": e.score}
                    for e in self._events[stream_id]
                ]
            }

    async def unregister_stream(self, stream_id: str) -> None:
        """
        Remove a stream and its events (on disconnect).

        Args:
            stream_id: Stream identifier
        """
        async with self._lock:
            self._events.pop(stream_id, None)
            self._started_at.pop(stream_id, None)
            logger.info(f"Unregistered stream: {stream_id}")

    async def list_active_streams(self) -> list[str]:
        """Get list of all active stream IDs."""
        async with self._lock:
            return list(self._events.keys())

    async def get_stream_count(self) -> int:
        """Get number of active streams."""
        async with self._lock:
            return len(self._events)


# Global detection service instance
detection_service = DetectionService()
