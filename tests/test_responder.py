"""Tests for the AI responders and the reply length cap."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import pytest

from ivr.config import Settings
from ivr.responder import (
    AIResponderError,
    AnthropicResponder,
    OllamaResponder,
    build_responder,
    cap_reply,
)

from conftest import FakeResponder


# ── cap_reply ──────────────────────────────────────────────────────


class TestCapReply:
    def test_short_text_untouched(self):
        assert cap_reply("We open at ten.", 320) == "We open at ten."

    def test_whitespace_collapsed(self):
        assert cap_reply("We  open\n at ten.", 320) == "We open at ten."

    def test_cuts_at_sentence(self):
        text = "We do branding. We also do web design for restaurants and bakeries."
        assert cap_reply(text, 40) == "We do branding."

    def test_cuts_at_word_without_sentence(self):
        result = cap_reply("one two three four five six seven", 15)
        assert result == "one two three."
        assert len(result) <= 15

    def test_never_exceeds_cap(self):
        assert len(cap_reply("word " * 200, 320)) <= 320


class TestResponderBase:
    async def test_empty_completion_raises(self):
        with pytest.raises(AIResponderError):
            await FakeResponder(reply="   ").respond("persona", "hi")

    async def test_reply_capped(self):
        responder = FakeResponder(reply="x" * 500)
        responder.max_chars = 50
        assert len(await responder.respond("persona", "hi")) <= 50


# ── Anthropic ──────────────────────────────────────────────────────


class TestAnthropicResponder:
    async def test_sends_persona_and_question(self):
        client = MagicMock()
        client.messages.create = AsyncMock(
            return_value=SimpleNamespace(content=[SimpleNamespace(type="text", text="We open at ten.")])
        )
        responder = AnthropicResponder(api_key="k", model="claude-test", client=client)
        assert await responder.respond("You are helpful.", "When do you open?") == "We open at ten."
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["system"] == "You are helpful."
        assert kwargs["model"] == "claude-test"
        assert kwargs["messages"] == [{"role": "user", "content": "When do you open?"}]

    async def test_api_error_wrapped(self):
        client = MagicMock()
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client.messages.create = AsyncMock(side_effect=anthropic.APIConnectionError(request=request))
        responder = AnthropicResponder(api_key="k", model="m", client=client)
        with pytest.raises(AIResponderError):
            await responder.respond("p", "q")


# ── Ollama ─────────────────────────────────────────────────────────


def _ollama_client(response):
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    client.post = AsyncMock(return_value=response)
    return client


class TestOllamaResponder:
    async def test_chat_request(self):
        request = httpx.Request("POST", "http://ollama/api/chat")
        response = httpx.Response(200, json={"message": {"content": "Sure thing."}}, request=request)
        client = _ollama_client(response)
        with patch("ivr.responder.httpx.AsyncClient", return_value=client):
            reply = await OllamaResponder("http://ollama/", "qwen").respond("p", "q")
        assert reply == "Sure thing."
        url = client.post.call_args.args[0]
        payload = client.post.call_args.kwargs["json"]
        assert url == "http://ollama/api/chat"
        assert payload["stream"] is False
        assert payload["messages"][0] == {"role": "system", "content": "p"}

    async def test_http_error(self):
        request = httpx.Request("POST", "http://ollama/api/chat")
        response = httpx.Response(500, request=request)
        with patch("ivr.responder.httpx.AsyncClient", return_value=_ollama_client(response)):
            with pytest.raises(AIResponderError):
                await OllamaResponder("http://ollama", "qwen").respond("p", "q")

    async def test_missing_content(self):
        request = httpx.Request("POST", "http://ollama/api/chat")
        response = httpx.Response(200, json={"done": True}, request=request)
        with patch("ivr.responder.httpx.AsyncClient", return_value=_ollama_client(response)):
            with pytest.raises(AIResponderError):
                await OllamaResponder("http://ollama", "qwen").respond("p", "q")


# ── Factory ────────────────────────────────────────────────────────


class TestBuildResponder:
    def test_claude_with_key(self):
        config = Settings(_env_file=None, llm_provider="claude", anthropic_api_key="sk-test")
        assert isinstance(build_responder(config), AnthropicResponder)

    def test_claude_without_key(self):
        config = Settings(_env_file=None, llm_provider="claude", anthropic_api_key="")
        assert build_responder(config) is None

    def test_ollama(self):
        config = Settings(_env_file=None, llm_provider="ollama")
        assert isinstance(build_responder(config), OllamaResponder)

    def test_none(self):
        assert build_responder(Settings(_env_file=None, llm_provider="none")) is None
