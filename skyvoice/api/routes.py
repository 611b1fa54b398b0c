"""FastAPI route definitions for the SkyVoice API.

Every service call is synchronous (boto3, httpx, qdrant-client), so each
handler offloads it with ``asyncio.to_thread`` to keep the event loop free
for concurrent turns and health checks.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from skyvoice.api.schemas import (
    HealthResponse,
    PopulateRequest,
    RecognizeRequest,
    RecognizeResponse,
    SessionEndResponse,
    VoicePromptRequest,
    VoiceProcessRequest,
)
from skyvoice.config import INTENT_CORPUS_DIR
from skyvoice.runtime import Runtime
from skyvoice.services.corpus import CorpusNotFoundError, load_corpus

logger = logging.getLogger(__name__)

router = APIRouter()
voice_router = APIRouter(prefix="/voice", tags=["voice"])
intents_router = APIRouter(prefix="/intents", tags=["intents"])


def _get_runtime(request: Request) -> Runtime:
    """Retrieve the service runtime built during the FastAPI lifespan."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=503,
            detail="The service is still starting up. Please try again in a moment.",
        )
    return runtime


def _internal_error(request: Request, what: str, exc: Exception) -> HTTPException:
    request_id = getattr(request.state, "request_id", "?")
    logger.exception("[%s] %s failed", request_id, what)
    return HTTPException(status_code=500, detail=f"Failed to {what}. Please try again.")


# ── Health ───────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


# ── Voice: Bedrock agent ─────────────────────────────────────────────


@voice_router.post("/prompt")
async def voice_prompt(body: VoicePromptRequest, request: Request):
    """Send a prompt to the Bedrock agent on the user's session."""
    runtime = _get_runtime(request)
    try:
        result = await asyncio.to_thread(runtime.invoker.invoke, body.prompt, body.user_id)
    except Exception as exc:
        raise _internal_error(request, "process voice prompt", exc) from exc

    if not result["success"] and result.get("error_type") == "configuration" and not body.prompt.strip():
        return JSONResponse(status_code=400, content=result)
    return result


@voice_router.get("/session/{user_id}")
async def get_session(user_id: str, request: Request):
    runtime = _get_runtime(request)
    session = runtime.sessions.get(user_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"No active session for user {user_id}")
    return {"success": True, "user_id": user_id, "session": session.info()}


@voice_router.delete("/session/{user_id}", response_model=SessionEndResponse)
async def end_session(user_id: str, request: Request):
    runtime = _get_runtime(request)
    ended = runtime.sessions.end(user_id)
    runtime.history.clear(user_id)
    return SessionEndResponse(
        message="Session ended" if ended else "No active session",
        user_id=user_id,
        session_ended=ended,
    )


@voice_router.get("/status")
async def voice_status(request: Request):
    """Connection and session diagnostics."""
    runtime = _get_runtime(request)
    return {"success": True, **runtime.status()}


@voice_router.post("/process")
async def voice_process(body: VoiceProcessRequest, request: Request):
    """Run one dialogue turn: follow-up detection, classification, templated reply."""
    runtime = _get_runtime(request)
    try:
        return await asyncio.to_thread(
            runtime.dialogue.process, body.text, body.user_id, body.context,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise _internal_error(request, "process voice input", exc) from exc


# ── Intents ──────────────────────────────────────────────────────────


@intents_router.post("/recognize", response_model=RecognizeResponse)
async def recognize_intent(body: RecognizeRequest, request: Request):
    runtime = _get_runtime(request)
    try:
        match = await asyncio.to_thread(runtime.matcher.classify, body.text, body.threshold)
    except Exception as exc:
        raise _internal_error(request, "recognize intent", exc) from exc
    return RecognizeResponse(
        query=body.text,
        intent=match.intent,
        confidence=match.confidence,
        category=match.category,
        priority=match.priority,
        matched_text=match.matched_text,
    )


@intents_router.post("/populate")
async def populate_intents(request: Request, body: PopulateRequest | None = None):
    """Load the labeled CSV corpus into the intent index."""
    runtime = _get_runtime(request)
    body = body or PopulateRequest()
    try:
        return await asyncio.to_thread(
            load_corpus,
            runtime.matcher,
            INTENT_CORPUS_DIR,
            intent_folder=body.intent_folder,
            file_name=body.file_name,
        )
    except CorpusNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise _internal_error(request, "populate intent index", exc) from exc


@intents_router.get("/stats")
async def intent_stats(request: Request):
    runtime = _get_runtime(request)
    try:
        stats = await asyncio.to_thread(runtime.matcher.stats)
    except Exception as exc:
        raise _internal_error(request, "read intent index stats", exc) from exc
    return {"success": True, "stats": stats}


@intents_router.delete("/clear")
async def clear_intents(request: Request):
    runtime = _get_runtime(request)
    try:
        return await asyncio.to_thread(runtime.matcher.clear)
    except Exception as exc:
        raise _internal_error(request, "clear intent index", exc) from exc


router.include_router(voice_router)
router.include_router(intents_router)
