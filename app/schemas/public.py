# app/schemas/public.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from pydantic import Field

from app.schemas.session import CamelModel


class JoinRequest(CamelModel):
    """
    Body of POST /api/session/join.
    """

    session_code: str = Field(..., min_length=1, description="Code of the session to join.", examples=["K7Q2ZD"])
    user_id: str = Field(..., min_length=1, pattern=r"^[^/]+$", examples=["bob"])
    name: str = Field(..., min_length=1, examples=["Bob"])
    email: str | None = Field(None)


class JoinResponse(CamelModel):
    participant: Dict[str, Any]
    session_code: str


class ChatRequest(CamelModel):
    """
    Body of POST /api/chat: one message from a participant to the assistant.
    """

    session_code: str = Field(..., min_length=1, examples=["K7Q2ZD"])
    user_id: str = Field(..., min_length=1, pattern=r"^[^/]+$", examples=["bob"])
    message: str = Field(..., min_length=1, examples=["Tuesday 2-4pm works for me"])


class ChatResponse(CamelModel):
    reply: str = Field(..., description="Text shown to the participant.")
    action: str | None = Field(
        None,
        description="'analyze_availability' when the assistant proposed meeting times.",
    )
    proposals: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Proposals recorded during this turn, if any.",
    )


class AdminMetadata(CamelModel):
    session_code: str
    actor_id: str
    retrieved_at: datetime


class AdminSessionView(CamelModel):
    session: Dict[str, Any]
    metadata: AdminMetadata
