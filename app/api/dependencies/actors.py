# app/api/dependencies/actors.py
from fastapi import Request

from app.services.actor_registry import ActorRegistry


def get_registry(request: Request) -> ActorRegistry:
    """
    FastAPI dependency returning the app-wide actor registry.
    """
    return request.app.state.registry


def normalize_session_code(code: str) -> str:
    return code.strip().upper()
