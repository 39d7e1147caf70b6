# app/services/ai_client.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import get_settings
from app.core.exceptions import AIClientError

logger = logging.getLogger(__name__)


class AIClient:
    """
    Minimal chat-completion client for the scheduling assistant.

    Supported providers
    -------------------
    - openai: any OpenAI-compatible server (/v1/chat/completions)
    - ollama: native Ollama API (/api/chat)

    Notes
    -----
    - The client is stateless; every call carries the full conversation.
    - Every failure mode (HTTP error, transport error, timeout, unexpected
      payload) surfaces as `AIClientError`. There is no partial result.
    """

    def __init__(
        self,
        api_base: str,
        model: str,
        provider: str = "openai",
        api_key: Optional[str] = None,
        timeout_seconds: float = 60.0,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> None:
        if not api_base or not model:
            raise ValueError("api_base and model are required")
        if provider not in ("openai", "ollama"):
            raise ValueError(f"Unsupported AI provider: {provider}")

        self._api_base = api_base.rstrip("/")
        self._model = model
        self._provider = provider
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._max_tokens = max_tokens
        self._temperature = temperature

    @property
    def model(self) -> str:
        return self._model

    @property
    def chat_url(self) -> str:
        if self._provider == "ollama":
            return f"{self._api_base}/api/chat"
        return f"{self._api_base}/v1/chat/completions"

    def _build_payload(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        if self._provider == "ollama":
            return {
                "model": self._model,
                "messages": messages,
                "stream": False,
                "options": {
                    "temperature": self._temperature,
                    "num_predict": self._max_tokens,
                },
            }
        return {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "stream": False,
        }

    def _extract_content(self, payload: Dict[str, Any]) -> str:
        try:
            if self._provider == "ollama":
                content = payload["message"]["content"]
            else:
                content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise AIClientError("AI response did not contain a message") from exc

        if not isinstance(content, str):
            raise AIClientError("AI response content is not text")
        return content

    async def chat(self, messages: List[Dict[str, str]]) -> str:
        """
        Send the conversation and return the assistant's reply text.

        Parameters
        ----------
        messages:
            Chat messages, each a dict with 'role' and 'content'.
        """
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.post(
                    self.chat_url,
                    headers=headers,
                    json=self._build_payload(messages),
                )
        except httpx.TimeoutException as exc:
            logger.warning("AI request timed out after %.0fs", self._timeout_seconds)
            raise AIClientError(
                f"AI request timed out after {self._timeout_seconds:.0f}s"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("AI request failed: %s", exc)
            raise AIClientError(f"AI request failed: {exc}") from exc

        if resp.status_code // 100 != 2:
            raise AIClientError(
                f"AI request failed (status={resp.status_code}): {resp.text}"
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise AIClientError("AI response was not valid JSON") from exc

        return self._extract_content(payload)


# Simple singleton-style accessor wired to app settings
_ai_client_instance: Optional[AIClient] = None


def get_ai_client() -> AIClient:
    """
    Lazily construct the shared AIClient from application settings.

    Also used as a FastAPI dependency, so tests can override it.
    """
    global _ai_client_instance
    if _ai_client_instance is None:
        settings = get_settings()
        _ai_client_instance = AIClient(
            api_base=settings.AI_API_BASE,
            model=settings.AI_MODEL,
            provider=settings.AI_PROVIDER,
            api_key=settings.AI_API_KEY,
            timeout_seconds=settings.AI_TIMEOUT_SECONDS,
            max_tokens=settings.AI_MAX_TOKENS,
            temperature=settings.AI_TEMPERATURE,
        )
    return _ai_client_instance
