"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class VoicePromptRequest(BaseModel):
    """Free-form prompt for the Bedrock agent."""

    prompt: str = Field(..., max_length=4000, description="What the user said")
    user_id: str = Field("default", min_length=1, max_length=100)


class VoiceProcessRequest(BaseModel):
    """One dialogue turn from the mobile client."""

    text: str = Field(..., min_length=1, max_length=2000, description="Transcribed utterance")
    user_id: str = Field("default", min_length=1, max_length=100)
    context: dict[str, Any] = Field(default_factory=dict)


class SessionEndResponse(BaseModel):
    success: bool = True
    message: str
    user_id: str
    session_ended: bool


class RecognizeRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)
    threshold: Optional[float] = Field(None, ge=0.0, le=1.0)


class RecognizeResponse(BaseModel):
    success: bool = True
    query: str
    intent: str
    confidence: float
    category: Optional[str] = None
    priority: Optional[str] = None
    matched_text: Optional[str] = None


class PopulateRequest(BaseModel):
    """Load the labeled corpus into the intent index.

    Examples are always read from INTENT_CORPUS_DIR.  With no fields set
    every intent folder is loaded.
    """

    model_config = ConfigDict(extra="forbid")

    intent_folder: Optional[str] = None
    file_name: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "skyvoice"
