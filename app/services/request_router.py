# app/services/request_router.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Pattern, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.core.exceptions import RequestValidationFailed, SchedulerError
from app.schemas.session import (
    AnalyzeRequest,
    CamelModel,
    FinalizeRequest,
    MessageCreate,
    ParticipantJoin,
    SessionCreate,
)

if TYPE_CHECKING:  # pragma: no cover
    from app.services.meeting_scheduler import MeetingScheduler

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class ActorRequest:
    """
    One operation addressed to an actor: HTTP-style method, path and JSON body.
    """

    method: str
    path: str
    body: Any = None


@dataclass
class ActorResponse:
    status_code: int
    body: Any = field(default=None)

    @property
    def ok(self) -> bool:
        return self.status_code // 100 == 2

    @property
    def error(self) -> str:
        if isinstance(self.body, dict) and "error" in self.body:
            return str(self.body["error"])
        return HTTPStatus(self.status_code).phrase

    def raise_for_status(self) -> None:
        """
        Re-raise a failed actor response as a SchedulerError with the same status.
        """
        if not self.ok:
            raise SchedulerError(self.error, status_code=self.status_code)


Handler = Callable[["MeetingScheduler", Dict[str, str], Any], Awaitable[ActorResponse]]


def _parse(schema: Type[T], body: Any) -> T:
    if not isinstance(body, dict):
        raise RequestValidationFailed("Request body must be a JSON object")
    try:
        return schema.model_validate(body)
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(loc) for loc in err['loc']) or 'body'}: {err['msg']}"
            for err in exc.errors()
        ]
        raise RequestValidationFailed("Invalid request: " + "; ".join(problems)) from exc


def _wire(value: Any) -> Any:
    if isinstance(value, CamelModel):
        return value.to_wire()
    if isinstance(value, list):
        return [_wire(item) for item in value]
    return value


def _user_id(params: Dict[str, str]) -> str:
    user_id = params.get("user_id", "")
    if not user_id.strip():
        raise RequestValidationFailed("Participant id is required")
    return user_id


# --------------------------------------------------------------------------
# Handlers
# --------------------------------------------------------------------------

async def _create_session(actor: "MeetingScheduler", params: Dict[str, str], body: Any) -> ActorResponse:
    payload = _parse(SessionCreate, body)
    session = await actor.create_session(
        title=payload.title,
        created_by=payload.created_by,
        description=payload.description,
    )
    return ActorResponse(HTTPStatus.CREATED, _wire(session))


async def _get_session(actor: "MeetingScheduler", params: Dict[str, str], body: Any) -> ActorResponse:
    return ActorResponse(HTTPStatus.OK, _wire(await actor.get_session()))


async def _join_session(actor: "MeetingScheduler", params: Dict[str, str], body: Any) -> ActorResponse:
    payload = _parse(ParticipantJoin, body)
    participant = await actor.join_session(
        user_id=payload.user_id,
        name=payload.name,
        email=payload.email,
    )
    return ActorResponse(HTTPStatus.OK, _wire(participant))


async def _list_participants(actor: "MeetingScheduler", params: Dict[str, str], body: Any) -> ActorResponse:
    return ActorResponse(HTTPStatus.OK, _wire(await actor.list_participants()))


async def _append_message(actor: "MeetingScheduler", params: Dict[str, str], body: Any) -> ActorResponse:
    user_id = _user_id(params)
    payload = _parse(MessageCreate, body)
    message = await actor.append_message(user_id, payload.role, payload.content)
    return ActorResponse(HTTPStatus.CREATED, _wire(message))


async def _get_history(actor: "MeetingScheduler", params: Dict[str, str], body: Any) -> ActorResponse:
    user_id = _user_id(params)
    return ActorResponse(HTTPStatus.OK, _wire(await actor.get_history(user_id)))


async def _record_proposals(actor: "MeetingScheduler", params: Dict[str, str], body: Any) -> ActorResponse:
    payload = _parse(AnalyzeRequest, body)
    session = await actor.record_proposals(payload.proposals, payload.availability)
    return ActorResponse(HTTPStatus.OK, _wire(session))


async def _list_proposals(actor: "MeetingScheduler", params: Dict[str, str], body: Any) -> ActorResponse:
    return ActorResponse(HTTPStatus.OK, _wire(await actor.list_proposals()))


async def _finalize(actor: "MeetingScheduler", params: Dict[str, str], body: Any) -> ActorResponse:
    payload = _parse(FinalizeRequest, body)
    return ActorResponse(HTTPStatus.OK, _wire(await actor.finalize(payload.proposal_id)))


ROUTES: List[Tuple[str, Pattern[str], Handler]] = [
    ("POST", re.compile(r"^/session$"), _create_session),
    ("GET", re.compile(r"^/session$"), _get_session),
    ("POST", re.compile(r"^/session/join$"), _join_session),
    ("GET", re.compile(r"^/session/participants$"), _list_participants),
    ("POST", re.compile(r"^/participant/(?P<user_id>[^/]*)$"), _append_message),
    ("GET", re.compile(r"^/participant/(?P<user_id>[^/]*)/history$"), _get_history),
    ("POST", re.compile(r"^/analyze$"), _record_proposals),
    ("GET", re.compile(r"^/proposals$"), _list_proposals),
    ("POST", re.compile(r"^/finalize$"), _finalize),
]


def resolve(method: str, path: str) -> Tuple[Handler, Dict[str, str]] | None:
    """
    Look up the handler for `method` + `path`, with extracted path parameters.
    """
    method = method.upper()
    for route_method, pattern, handler in ROUTES:
        if route_method != method:
            continue
        match = pattern.match(path)
        if match:
            return handler, match.groupdict()
    return None


async def route(actor: "MeetingScheduler", request: ActorRequest) -> ActorResponse:
    """
    Dispatch `request` to the matching actor operation.

    Failures never escape: expected scheduler errors keep their status
    (400/404/409/...), anything else becomes a 500 carrying the error text.
    """
    resolved = resolve(request.method, request.path)
    if resolved is None:
        return ActorResponse(HTTPStatus.NOT_FOUND, {"error": "Not found"})

    handler, params = resolved
    try:
        return await handler(actor, params, request.body)
    except SchedulerError as exc:
        return ActorResponse(int(exc.status_code), {"error": exc.message})
    except Exception as exc:
        logger.exception(
            "Actor %s failed handling %s %s", actor.name, request.method, request.path
        )
        return ActorResponse(HTTPStatus.INTERNAL_SERVER_ERROR, {"error": str(exc)})
