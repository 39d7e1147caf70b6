# app/api/routes/sessions.py
import logging
from http import HTTPStatus
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from app.api.dependencies.actors import get_registry, normalize_session_code
from app.core.config import get_settings
from app.core.exceptions import RequestValidationFailed, SchedulerError
from app.schemas.public import JoinRequest, JoinResponse
from app.schemas.session import SessionCreate
from app.services import meeting_scheduler
from app.services.actor_registry import ActorRegistry
from app.services.request_router import ActorRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["Sessions"])


@router.post(
    "",
    status_code=HTTPStatus.CREATED,
    summary="Create a new scheduling session",
    description=(
        "Create a scheduling session and return it together with its freshly "
        "generated 6-character `sessionCode`.\n\n"
        "The code names the actor instance that owns the session from now on; "
        "share it with participants so they can join.\n\n"
        "If a generated code is already taken, a new one is drawn (up to "
        "`SESSION_CODE_MAX_ATTEMPTS` times)."
    ),
    responses={
        201: {
            "description": "Session created.",
            "content": {
                "application/json": {
                    "example": {
                        "sessionCode": "K7Q2ZD",
                        "title": "Sync",
                        "createdBy": "alice",
                        "createdAt": "2025-10-20T09:00:00Z",
                        "lastActivityAt": "2025-10-20T09:00:00Z",
                        "status": "collecting",
                        "participants": {},
                        "proposedTimes": [],
                    }
                }
            },
        },
        400: {"description": "title or createdBy missing."},
    },
)
async def create_session(
    payload: SessionCreate,
    registry: ActorRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """
    Allocate a session code and create the session in its actor.
    """
    settings = get_settings()

    for _ in range(settings.SESSION_CODE_MAX_ATTEMPTS):
        code = meeting_scheduler.generate_session_code(settings.SESSION_CODE_LENGTH)
        response = await registry.get(code).fetch(
            ActorRequest("POST", "/session", payload.to_wire())
        )
        if response.status_code == HTTPStatus.CONFLICT:
            logger.warning("Session code %s already in use, drawing another", code)
            continue

        response.raise_for_status()
        return {**response.body, "sessionCode": code}

    raise SchedulerError(
        "Could not allocate a unique session code",
        status_code=HTTPStatus.SERVICE_UNAVAILABLE,
    )


@router.get(
    "",
    summary="Get a session by code",
    description="Return the full session document for the given `code`.",
    responses={
        200: {"description": "Session found."},
        400: {"description": "Query parameter `code` missing."},
        404: {"description": "No session exists for this code."},
    },
)
async def get_session(
    code: str | None = Query(
        default=None,
        description="Session code.",
        examples=["K7Q2ZD"],
    ),
    registry: ActorRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    if not code or not code.strip():
        raise RequestValidationFailed("Session code is required")

    code = normalize_session_code(code)
    response = await registry.get(code).fetch(ActorRequest("GET", "/session"))
    response.raise_for_status()
    return {**response.body, "sessionCode": code}


@router.post(
    "/join",
    response_model=JoinResponse,
    summary="Join an existing session",
    description=(
        "Add a participant to the session. Joining again with the same `userId` "
        "returns the existing participant unchanged (conversation history kept)."
    ),
    responses={
        400: {"description": "sessionCode, userId or name missing."},
        404: {"description": "No session exists for this code."},
    },
)
async def join_session(
    payload: JoinRequest,
    registry: ActorRegistry = Depends(get_registry),
) -> JoinResponse:
    code = normalize_session_code(payload.session_code)
    response = await registry.get(code).fetch(
        ActorRequest(
            "POST",
            "/session/join",
            payload.model_dump(
                mode="json",
                by_alias=True,
                exclude={"session_code"},
                exclude_none=True,
            ),
        )
    )
    response.raise_for_status()
    return JoinResponse(participant=response.body, session_code=code)
