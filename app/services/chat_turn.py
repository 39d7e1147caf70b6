# app/services/chat_turn.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.core.exceptions import AIClientError, ParticipantNotFoundError
from app.schemas.session import MessageRole, SchedulingSession
from app.services.ai_client import AIClient
from app.services.inactivity_monitor import Clock, utcnow
from app.services.meeting_scheduler import MeetingScheduler
from app.services.proposal_extraction import build_conversation, parse_assistant_reply
from app.services.request_router import ActorRequest

logger = logging.getLogger(__name__)


@dataclass
class ChatTurnResult:
    reply: str
    action: Optional[str] = None
    proposals: List[Dict[str, Any]] = field(default_factory=list)


async def run_chat_turn(
    actor: MeetingScheduler,
    user_id: str,
    message: str,
    ai_client: AIClient,
    clock: Clock = utcnow,
) -> ChatTurnResult:
    """
    Run one assistant turn for a participant.

    Steps
    -----
    1) Load the session and check the participant belongs to it.
    2) Ask the AI with the system instruction, the participant's transcript
       and the new message.
    3) If the reply carries a valid analyze_availability action, record its
       proposals (and availability summaries) and use its message as reply.
    4) Persist the user's message.
    5) Persist the reply text as the assistant's message.

    The AI call happens before anything is written, so an AI failure leaves
    the session exactly as it was.
    """
    response = await actor.fetch(ActorRequest("GET", "/session"))
    response.raise_for_status()
    session = SchedulingSession.model_validate(response.body)

    if user_id not in session.participants:
        raise ParticipantNotFoundError()

    conversation = build_conversation(session, user_id, message, clock())
    raw_reply = await ai_client.chat(conversation)
    reply = parse_assistant_reply(raw_reply)
    if not reply.text.strip():
        raise AIClientError("AI returned an empty reply")

    result = ChatTurnResult(reply=reply.text)

    if reply.action is not None:
        response = await actor.fetch(
            ActorRequest(
                "POST",
                "/analyze",
                {
                    "proposals": [p.to_wire() for p in reply.action.proposals],
                    "availability": reply.action.availability_by_user(),
                },
            )
        )
        response.raise_for_status()
        result.action = reply.action.action
        result.proposals = response.body.get("proposedTimes", [])
        logger.info(
            "Assistant proposed %d time(s) for session %s",
            len(result.proposals),
            session.session_code,
        )

    response = await actor.fetch(
        ActorRequest(
            "POST",
            f"/participant/{user_id}",
            {"role": MessageRole.USER.value, "content": message},
        )
    )
    response.raise_for_status()

    response = await actor.fetch(
        ActorRequest(
            "POST",
            f"/participant/{user_id}",
            {"role": MessageRole.ASSISTANT.value, "content": reply.text},
        )
    )
    response.raise_for_status()

    return result
