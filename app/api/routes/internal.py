# app/api/routes/internal.py
import json

from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import JSONResponse

from app.api.dependencies.actors import get_registry, normalize_session_code
from app.core.exceptions import RequestValidationFailed
from app.services.actor_registry import ActorRegistry
from app.services.request_router import ActorRequest

router = APIRouter(
    prefix="/internal",
    tags=["Internal"],
)


@router.api_route(
    "/actors/{session_code}/{actor_path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    summary="Forward an operation to the actor owning a session",
    description=(
        "Internal transport used by the orchestration layer. The `session_code` "
        "(case-insensitive, like the public endpoints) selects the actor "
        "instance; the remaining path and JSON body are handed "
        "to that actor's request router unchanged.\n\n"
        "Actor operations:\n"
        "- `POST /session` create session\n"
        "- `GET /session` get session\n"
        "- `POST /session/join` join session\n"
        "- `GET /session/participants` list participants\n"
        "- `POST /participant/{userId}` append message\n"
        "- `GET /participant/{userId}/history` conversation history\n"
        "- `POST /analyze` record proposals\n"
        "- `GET /proposals` list proposals\n"
        "- `POST /finalize` finalize a proposal\n\n"
        "Unknown operations return 404; unexpected failures return 500 with the "
        "error text in `error`."
    ),
    responses={
        400: {"description": "Missing or malformed request fields."},
        404: {"description": "Unknown operation, session, participant or proposal."},
        409: {"description": "Session already exists or status would move backwards."},
        500: {"description": "Unexpected actor failure."},
    },
)
async def forward_to_actor(
    request: Request,
    session_code: str = Path(
        ...,
        min_length=1,
        description="Session code naming the actor instance.",
        examples=["K7Q2ZD"],
    ),
    actor_path: str = Path(..., description="Operation path inside the actor."),
    registry: ActorRegistry = Depends(get_registry),
) -> JSONResponse:
    """
    Hand one request to the actor and relay its status and body.
    """
    body = None
    raw = await request.body()
    if raw:
        try:
            body = json.loads(raw)
        except ValueError:
            raise RequestValidationFailed("Request body must be valid JSON")

    actor = registry.get(normalize_session_code(session_code))
    response = await actor.fetch(ActorRequest(request.method, f"/{actor_path}", body))

    return JSONResponse(
        status_code=int(response.status_code),
        content=response.body,
    )
