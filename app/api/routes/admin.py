# app/api/routes/admin.py
from datetime import datetime, timezone
from http import HTTPStatus

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.api.dependencies.actors import get_registry, normalize_session_code
from app.schemas.public import AdminMetadata, AdminSessionView
from app.services.actor_registry import ActorRegistry
from app.services.request_router import ActorRequest

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get(
    "",
    response_model=AdminSessionView,
    summary="Inspect the raw data of a session",
    description=(
        "Read-only view of a session document plus the identity of the actor "
        "that owns it. Intended for debugging."
    ),
    responses={
        400: {
            "description": "Query parameter `code` missing.",
            "content": {
                "application/json": {
                    "example": {
                        "error": "Missing session code",
                        "usage": "GET /api/admin?code=ABC123",
                    }
                }
            },
        },
        404: {"description": "No session exists for this code."},
    },
)
async def inspect_session(
    code: str | None = Query(default=None, description="Session code.", examples=["K7Q2ZD"]),
    registry: ActorRegistry = Depends(get_registry),
):
    if not code or not code.strip():
        return JSONResponse(
            status_code=HTTPStatus.BAD_REQUEST,
            content={"error": "Missing session code", "usage": "GET /api/admin?code=ABC123"},
        )

    code = normalize_session_code(code)
    response = await registry.get(code).fetch(ActorRequest("GET", "/session"))
    response.raise_for_status()

    return AdminSessionView(
        session=response.body,
        metadata=AdminMetadata(
            session_code=code,
            actor_id=registry.actor_id(code),
            retrieved_at=datetime.now(tz=timezone.utc),
        ),
    )
