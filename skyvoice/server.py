"""FastAPI server for the SkyVoice dialogue backend.

Run with:
    uvicorn skyvoice.server:app --reload --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from skyvoice.api.routes import router
from skyvoice.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from skyvoice.runtime import build_runtime

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "SkyVoice Dialogue Backend"
VERSION = "1.0.0"


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Build the service runtime once, connect to the agent and start the
    background timers; stop them and end live agent sessions on shutdown.
    """
    logger.info("Building service runtime…")
    runtime = build_runtime()
    runtime.start()
    application.state.runtime = runtime
    logger.info("Runtime ready (intent index: %s).", runtime.matcher.index.name)
    yield
    logger.info("Shutting down runtime…")
    runtime.shutdown()
    application.state.runtime = None


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title=SERVICE_NAME,
    description=(
        "Voice assistant backend for the airline app: Bedrock agent prompts, "
        "intent recognition and guided booking flows."
    ),
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a request ID (``X-Request-ID``) to every request and response
    so each log line for a turn can be correlated.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Register routes ──────────────────────────────────────────────────
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "voice": "/api/voice",
            "intents": "/api/intents",
        },
    }


if __name__ == "__main__":
    logger.info("Starting SkyVoice API server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run("skyvoice.server:app", host=SERVER_HOST, port=SERVER_PORT, reload=True)
