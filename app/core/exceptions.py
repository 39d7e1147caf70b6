# app/core/exceptions.py
"""
Error taxonomy for the meeting scheduler and the FastAPI handlers that
render it.

Every expected failure is a ``SchedulerError`` carrying the HTTP-equivalent
status it maps to. The actor's request router and the public API both rely
on that status, so handlers never need to inspect exception types.
"""
from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SchedulerError(Exception):
    """Base class for all expected scheduler failures."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(SchedulerError):
    status_code = HTTPStatus.NOT_FOUND


class SessionNotFoundError(NotFoundError):
    def __init__(self, message: str = "Session not found") -> None:
        super().__init__(message)


class ParticipantNotFoundError(NotFoundError):
    def __init__(self, message: str = "Participant not found") -> None:
        super().__init__(message)


class ProposalNotFoundError(NotFoundError):
    def __init__(self, message: str = "Proposal not found") -> None:
        super().__init__(message)


class RequestValidationFailed(SchedulerError):
    """Missing or malformed request fields."""

    status_code = HTTPStatus.BAD_REQUEST


class InvalidTransitionError(SchedulerError):
    """The requested operation would move the session status backwards."""

    status_code = HTTPStatus.CONFLICT


class SessionAlreadyExistsError(SchedulerError):
    status_code = HTTPStatus.CONFLICT

    def __init__(self, message: str = "Session already exists") -> None:
        super().__init__(message)


class AIClientError(SchedulerError):
    """The AI collaborator failed, timed out or returned an unusable payload."""

    status_code = HTTPStatus.BAD_GATEWAY


class DurableStoreError(SchedulerError):
    """Reading or writing actor storage failed."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


async def scheduler_exception_handler(request: Request, exc: SchedulerError) -> JSONResponse:
    """Render expected failures as ``{"error": ...}`` with their mapped status."""
    if exc.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.error("Request %s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=int(exc.status_code), content={"error": exc.message})


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        content={"error": str(exc)},
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation problems as 400 with a readable summary."""
    problems = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        problems.append(f"{field or 'body'}: {error['msg']}")

    return JSONResponse(
        status_code=HTTPStatus.BAD_REQUEST,
        content={"error": "Invalid request: " + "; ".join(problems)},
    )
