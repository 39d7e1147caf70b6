"""
Contract between a participant's conversation, the AI assistant and the
session's proposal list.

The assistant answers either with plain conversational text, or with one
embedded JSON object tagged ``"action": "analyze_availability"`` that carries
per-participant availability summaries, ranked time proposals and a
human-readable message. Anything that does not validate against that schema
is treated as plain text; a half-parsed action never reaches session state.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import ConfigDict, Field, ValidationError

from app.schemas.session import CamelModel, ProposalDraft, SchedulingSession

logger = logging.getLogger(__name__)

ANALYZE_ACTION = "analyze_availability"

_ACTION_MARKER = re.compile(r'"action"\s*:\s*"analyze_availability"')
_JSON_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class ParticipantAvailability(CamelModel):
    user_id: str = Field(..., min_length=1)
    availability: str = Field("")


class AnalyzeAvailabilityAction(CamelModel):
    """
    Structured payload the assistant emits once it can propose meeting times.
    """

    model_config = ConfigDict(extra="ignore")

    action: Literal["analyze_availability"]
    participants: List[ParticipantAvailability] = Field(default_factory=list)
    proposals: List[ProposalDraft] = Field(..., min_length=1)
    message: str = Field(..., min_length=1)

    def availability_by_user(self) -> Dict[str, str]:
        return {p.user_id: p.availability for p in self.participants}


@dataclass
class AssistantReply:
    """
    Parsed assistant output: the text to show and, optionally, an action.
    """

    text: str
    action: Optional[AnalyzeAvailabilityAction] = None


def _candidates(response: str) -> List[str]:
    found = [m.group(1) for m in _JSON_BLOCK.finditer(response)]
    obj = _JSON_OBJECT.search(response)
    if obj:
        found.append(obj.group(0))
    return found


def parse_assistant_reply(response: str) -> AssistantReply:
    """
    Split an assistant response into display text and an optional action.

    Strategies, in order:
    1) No action marker anywhere        -> plain text.
    2) Each fenced code block           -> parse + validate.
    3) Outermost ``{ ... }`` span        -> parse + validate.
    The first candidate that validates wins; if none does, the raw response
    is returned unchanged as plain text.
    """
    if not response or not _ACTION_MARKER.search(response):
        return AssistantReply(text=response)

    errors: List[str] = []
    for candidate in _candidates(response):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as exc:
            errors.append(f"JSON decode failed: {exc}")
            continue
        if not isinstance(data, dict):
            errors.append("JSON payload is not an object")
            continue
        try:
            action = AnalyzeAvailabilityAction.model_validate(data)
        except ValidationError as exc:
            errors.append(f"Schema validation failed: {exc.error_count()} error(s)")
            continue
        return AssistantReply(text=action.message, action=action)

    logger.warning("Ignoring malformed analyze_availability action: %s", errors)
    return AssistantReply(text=response)


def build_system_prompt(session: SchedulingSession, now: datetime) -> str:
    """
    Instruction naming every participant and the current date/time.
    """
    lines: List[str] = [
        "You are a friendly scheduling assistant helping a group find a meeting time.",
        f'Meeting: "{session.title}"',
    ]
    if session.description:
        lines.append(f"Description: {session.description}")
    lines.append(f"Current date and time (UTC): {now.strftime('%A, %Y-%m-%d %H:%M')}")
    lines.append("")
    lines.append("Participants:")
    if session.participants:
        for participant in session.participants.values():
            entry = f"- {participant.name} (userId: {participant.user_id})"
            if participant.availability:
                entry += f": {participant.availability}"
            lines.append(entry)
    else:
        lines.append("- (nobody has joined yet)")

    lines.extend(
        [
            "",
            "Ask the participant about their availability in plain conversational text.",
            "When you have enough information to propose meeting times, reply with ONLY",
            "a single JSON object in this exact shape:",
            "```json",
            "{",
            f'  "action": "{ANALYZE_ACTION}",',
            '  "participants": [{"userId": "<id>", "availability": "<summary>"}],',
            '  "proposals": [',
            "    {",
            '      "id": "p1",',
            '      "dateTime": "<ISO-8601 UTC, e.g. 2025-10-25T14:00:00Z>",',
            '      "duration": 60,',
            '      "score": 100,',
            '      "availableParticipants": ["<id>"],',
            '      "unavailableParticipants": [],',
            '      "reasoning": "<why this slot>"',
            "    }",
            "  ],",
            '  "message": "<short message to show the participant>"',
            "}",
            "```",
            "Rank proposals best first. score is the percentage of participants who can attend.",
        ]
    )
    return "\n".join(lines)


def build_conversation(
    session: SchedulingSession,
    user_id: str,
    new_message: str,
    now: datetime,
) -> List[Dict[str, str]]:
    """
    Chat messages for one assistant turn: instruction, the participant's
    transcript, then the message they just sent.
    """
    messages: List[Dict[str, str]] = [
        {"role": "system", "content": build_system_prompt(session, now)}
    ]
    participant = session.participants.get(user_id)
    if participant is not None:
        messages.extend(
            {"role": m.role.value, "content": m.content}
            for m in participant.conversation_history
        )
    messages.append({"role": "user", "content": new_message})
    return messages
