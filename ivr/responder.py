"""AI responders — short spoken answers for the representative flows.

A responder takes a persona (system prompt) and one caller utterance and
returns plain text.  Whatever the backend produces is cut down to
``max_chars`` before it is spoken, ending on a sentence boundary when one
is available.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

import anthropic
import httpx

from ivr.config import Settings

log = logging.getLogger("ivr.responder")

_SENTENCE_END = re.compile(r"[.!?](?=\s|$)")


class AIResponderError(Exception):
    """The completion failed or returned nothing usable."""


def cap_reply(text: str, max_chars: int) -> str:
    """Collapse whitespace and enforce the hard length cap."""
    text = " ".join(text.split())
    if len(text) <= max_chars:
        return text
    window = text[:max_chars]
    ends = [m.end() for m in _SENTENCE_END.finditer(window)]
    if ends and ends[-1] >= max_chars // 3:
        return window[: ends[-1]]
    # leave room for the closing period
    cut = window[:-1]
    cut = cut.rsplit(" ", 1)[0] if " " in cut else cut
    return cut.rstrip(",;:-") + "."


class AIResponder(ABC):
    def __init__(self, max_chars: int = 320) -> None:
        self.max_chars = max_chars

    @abstractmethod
    async def _complete(self, persona: str, utterance: str) -> str:
        """Backend call. Raise AIResponderError on any failure."""

    async def respond(self, persona: str, utterance: str) -> str:
        text = await self._complete(persona, utterance)
        if not text or not text.strip():
            raise AIResponderError("Empty completion")
        return cap_reply(text, self.max_chars)


class AnthropicResponder(AIResponder):
    def __init__(
        self,
        api_key: str,
        model: str,
        max_chars: int = 320,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        super().__init__(max_chars)
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key)
        self._model = model

    async def _complete(self, persona: str, utterance: str) -> str:
        try:
            message = await self._client.messages.create(
                model=self._model,
                max_tokens=200,
                system=persona,
                messages=[{"role": "user", "content": utterance}],
            )
        except anthropic.APIError as e:
            raise AIResponderError(f"Anthropic request failed: {e}") from e
        parts = [
            block.text
            for block in getattr(message, "content", None) or []
            if getattr(block, "type", "") == "text"
        ]
        return " ".join(parts)


class OllamaResponder(AIResponder):
    def __init__(self, url: str, model: str, max_chars: int = 320, timeout: float = 8.0) -> None:
        super().__init__(max_chars)
        self._url = url.rstrip("/")
        self._model = model
        self._timeout = timeout

    async def _complete(self, persona: str, utterance: str) -> str:
        payload = {
            "model": self._model,
            "stream": False,
            "messages": [
                {"role": "system", "content": persona},
                {"role": "user", "content": utterance},
            ],
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(f"{self._url}/api/chat", json=payload)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise AIResponderError(f"Ollama request failed: {e}") from e
        content = data.get("message", {}).get("content") if isinstance(data, dict) else None
        if not isinstance(content, str):
            raise AIResponderError("Ollama response has no message content")
        return content


def build_responder(settings: Settings) -> AIResponder | None:
    """Pick the configured backend; None disables AI answers."""
    if settings.llm_provider == "claude" and settings.anthropic_api_key:
        return AnthropicResponder(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            max_chars=settings.ai_max_reply_chars,
        )
    if settings.llm_provider == "ollama":
        return OllamaResponder(
            url=settings.ollama_url,
            model=settings.ollama_model,
            max_chars=settings.ai_max_reply_chars,
            timeout=settings.ai_timeout_seconds,
        )
    log.warning("No AI responder configured (LLM_PROVIDER=%s)", settings.llm_provider)
    return None
