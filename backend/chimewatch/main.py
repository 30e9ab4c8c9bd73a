"""FastAPI application entrypoint."""
from contextlib import asynccontextmanager
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from chimewatch.api import ws_spectrum, rest_status
from chimewatch.core.config import settings
from chimewatch.core.logging import setup_logging, logger

# Setup logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration on startup and shutdown."""
    logger.info(f"Starting chime detection backend on {settings.host}:{settings.port}")
    logger.info(
        f"Chime frequencies: {settings.chime_frequencies} Hz, "
        f"threshold {settings.threshold}, fire mode {settings.fire_mode}"
    )
    if settings.stop_after_first_event:
        logger.info("Streams stop after their first detected chime")
    yield
    logger.info("Shutting down chime detection backend")


# Create FastAPI app
app = FastAPI(
    title="Chime Detection Backend",
    description="Real-time detection of a multi-tone chime in streamed spectrum frames",
    version=rest_status.VERSION,
    lifespan=lifespan
)

# CORS middleware (allow browser clients)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when using "*" origins
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(rest_status.router)


# WebSocket endpoint
@app.websocket("/ws/spectrum")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for spectrum streaming."""
    # ws_spectrum.websocket_spectrum_endpoint already calls websocket.accept()
    await ws_spectrum.websocket_spectrum_endpoint(websocket)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "chimewatch.main:app",
        host=settings.host,
        port=settings.port
    )
