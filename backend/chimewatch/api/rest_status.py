"""REST endpoints for health and detection status."""
from fastapi import APIRouter, HTTPException
from datetime import datetime
from chimewatch.services.detection_service import detection_service

VERSION = "0.1.0"

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Status, version and number of active detection streams
    """
    return {
        "status": "ok",
        "version": VERSION,
        "active_streams": await detection_service.get_stream_count()
    }


@router.get("/streams/{stream_id}/events")
async def get_stream_events(stream_id: str):
    """
    Get the chimes detected so far on a stream.

    Args:
        stream_id: Stream identifier

    Returns:
        Detection events with the stream start time
    """
    result = await detection_service.get_events(stream_id)

    if result is None:
        raise HTTPException(status_code=404, detail=f"Stream {stream_id} not found")

    # Format timestamp as ISO 8601
    if result["started_at"]:
        result["started_at"] = datetime.fromtimestamp(result["started_at"]).isoformat() + "Z"

    return result
