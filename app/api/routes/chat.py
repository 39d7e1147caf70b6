# app/api/routes/chat.py
from fastapi import APIRouter, Depends

from app.api.dependencies.actors import get_registry, normalize_session_code
from app.schemas.public import ChatRequest, ChatResponse
from app.services.actor_registry import ActorRegistry
from app.services.ai_client import AIClient, get_ai_client
from app.services.chat_turn import run_chat_turn

router = APIRouter(prefix="/api/chat", tags=["Chat"])


@router.post(
    "",
    response_model=ChatResponse,
    summary="Send a message to the scheduling assistant",
    description=(
        "Runs one assistant turn for the participant: the assistant sees the "
        "meeting, every participant and this participant's conversation so far.\n\n"
        "When the assistant has enough information it proposes meeting times. "
        "Those are recorded on the session (status becomes `analyzing`) and "
        "returned in `proposals` with `action = analyze_availability`.\n\n"
        "Malformed assistant output is shown as plain text, never as an error."
    ),
    responses={
        400: {"description": "sessionCode, userId or message missing."},
        404: {"description": "Unknown session or participant."},
        502: {"description": "The AI assistant failed or timed out; nothing was saved."},
    },
)
async def chat(
    payload: ChatRequest,
    registry: ActorRegistry = Depends(get_registry),
    ai_client: AIClient = Depends(get_ai_client),
) -> ChatResponse:
    actor = registry.get(normalize_session_code(payload.session_code))
    result = await run_chat_turn(
        actor=actor,
        user_id=payload.user_id,
        message=payload.message,
        ai_client=ai_client,
    )
    return ChatResponse(
        reply=result.reply,
        action=result.action,
        proposals=result.proposals,
    )
