# app/api/routes/health.py
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from app.core.config import get_settings


router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """
    Response schema for the health check endpoint.
    """

    status: str = Field(
        ...,
        description="Overall health status of the Meeting Scheduler service.",
        examples=["ok"],
    )
    app_name: str = Field(
        ...,
        description="Human-friendly name of the running application.",
        examples=["Meeting Scheduler"],
    )
    environment: str = Field(
        ...,
        description="Current deployment environment (local/test/dev/stage/prod).",
        examples=["local"],
    )
    alarm_dispatcher_running: bool = Field(
        ...,
        description="Whether this process is currently firing inactivity alarms.",
        examples=[True],
    )
    loaded_actors: int = Field(
        ...,
        description="Number of session actors currently in use in this process.",
        examples=[3],
    )
    timestamp_utc: datetime = Field(
        ...,
        description="Server-side timestamp (UTC) at which this health check was generated.",
        examples=["2025-01-01T10:30:00Z"],
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check for Meeting Scheduler service",
    description=(
        "Lightweight endpoint to verify that the Meeting Scheduler backend is "
        "up and responding, and whether the inactivity alarm loop is active "
        "in this process."
    ),
    responses={
        200: {
            "description": "Service is healthy and responding as expected.",
            "content": {
                "application/json": {
                    "example": {
                        "status": "ok",
                        "app_name": "Meeting Scheduler",
                        "environment": "local",
                        "alarm_dispatcher_running": True,
                        "loaded_actors": 3,
                        "timestamp_utc": "2025-01-01T10:30:00Z",
                    }
                }
            },
        }
    },
)
async def health_check(request: Request) -> HealthResponse:
    """
    Returns the current health status of the service.

    Does not touch the database or the AI endpoint.
    """
    settings = get_settings()
    dispatcher = getattr(request.app.state, "alarm_dispatcher", None)
    registry = getattr(request.app.state, "registry", None)

    return HealthResponse(
        status="ok",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        alarm_dispatcher_running=bool(dispatcher and dispatcher.running),
        loaded_actors=len(registry) if registry is not None else 0,
        timestamp_utc=datetime.now(tz=timezone.utc),
    )
