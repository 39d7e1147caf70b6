# app/schemas/session.py
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Dict, List, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# Percentage of participants who can attend; whole numbers stay integers.
Score = Union[
    Annotated[int, Field(ge=0, le=100)],
    Annotated[float, Field(ge=0, le=100)],
]


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CamelModel(BaseModel):
    """
    Base schema: snake_case attributes in Python, camelCase keys on the wire.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SessionStatus(str, Enum):
    """
    Lifecycle of a scheduling session. Transitions only move forward.
    """

    COLLECTING = "collecting"
    ANALYZING = "analyzing"
    FINALIZED = "finalized"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [SessionStatus.COLLECTING, SessionStatus.ANALYZING, SessionStatus.FINALIZED]


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


# --------------------------------------------------------------------------
# Stored aggregate
# --------------------------------------------------------------------------

class Message(CamelModel):
    role: MessageRole = Field(..., description="Author of the message.", examples=["user"])
    content: str = Field(..., description="Message text.", examples=["Tue 2-4pm works"])
    timestamp: datetime = Field(
        ...,
        description="Server-assigned time at which the message was recorded (UTC).",
        examples=["2025-10-20T09:15:00Z"],
    )


class Participant(CamelModel):
    user_id: str = Field(..., description="Stable participant identifier.", examples=["bob"])
    name: str = Field(..., description="Display name.", examples=["Bob"])
    email: str | None = Field(None, description="Optional contact address.")
    availability: str = Field(
        "",
        description="Free-text availability summary extracted by the AI assistant.",
    )
    conversation_history: List[Message] = Field(
        default_factory=list,
        description="Most recent messages exchanged with the assistant, oldest first.",
    )
    joined_at: datetime = Field(..., description="When the participant joined (UTC).")
    last_active: datetime = Field(..., description="When the participant last sent a message (UTC).")


class TimeProposal(CamelModel):
    id: str = Field(..., description="Proposal identifier, unique within the session.", examples=["p1"])
    date_time: datetime = Field(
        ...,
        description="Proposed start time (ISO-8601, UTC).",
        examples=["2025-10-25T14:00:00Z"],
    )
    duration: int = Field(..., gt=0, description="Meeting length in minutes.", examples=[60])
    score: Score = Field(
        ...,
        description="Percentage of participants who can attend.",
        examples=[100],
    )
    available_participants: List[str] = Field(default_factory=list)
    unavailable_participants: List[str] = Field(default_factory=list)
    reasoning: str = Field("", description="Why the assistant proposed this slot.")

    @field_validator("date_time")
    @classmethod
    def normalize_date_time(cls, value: datetime) -> datetime:
        return _ensure_utc(value)


class SchedulingSession(CamelModel):
    """
    The whole state of one scheduling session, persisted as a single document.
    """

    session_code: str = Field(..., description="6-character session code.", examples=["K7Q2ZD"])
    title: str = Field(..., examples=["Sync"])
    description: str | None = Field(None)
    created_by: str = Field(..., examples=["alice"])
    created_at: datetime
    last_activity_at: datetime
    status: SessionStatus = Field(SessionStatus.COLLECTING)
    participants: Dict[str, Participant] = Field(default_factory=dict)
    proposed_times: List[TimeProposal] = Field(default_factory=list)
    finalized_time: TimeProposal | None = Field(None)


# --------------------------------------------------------------------------
# Operation payloads
# --------------------------------------------------------------------------

class SessionCreate(CamelModel):
    title: str = Field(..., min_length=1, description="Meeting title.", examples=["Sync"])
    created_by: str = Field(..., min_length=1, description="Organizer name or id.", examples=["alice"])
    description: str | None = Field(None, description="Optional meeting description.")


class ParticipantJoin(CamelModel):
    user_id: str = Field(..., min_length=1, pattern=r"^[^/]+$", examples=["bob"])
    name: str = Field(..., min_length=1, examples=["Bob"])
    email: str | None = Field(None)


class MessageCreate(CamelModel):
    """
    Incoming message. Any client-supplied timestamp is ignored.
    """

    role: MessageRole
    content: str = Field(..., min_length=1)


class ProposalDraft(CamelModel):
    """
    A proposal as submitted for recording; `id` is assigned when missing.
    """

    id: str | None = Field(None)
    date_time: datetime
    duration: int = Field(..., gt=0)
    score: Score = Field(...)
    available_participants: List[str] = Field(default_factory=list)
    unavailable_participants: List[str] = Field(default_factory=list)
    reasoning: str = Field("")

    @field_validator("date_time")
    @classmethod
    def normalize_date_time(cls, value: datetime) -> datetime:
        return _ensure_utc(value)


class AnalyzeRequest(CamelModel):
    proposals: List[ProposalDraft] = Field(..., description="Ranked proposals, best first.")
    availability: Dict[str, str] | None = Field(
        None,
        description="Optional per-participant availability summaries keyed by userId.",
    )


class FinalizeRequest(CamelModel):
    proposal_id: str = Field(..., min_length=1, examples=["p1"])
