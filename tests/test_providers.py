"""
Wire-level tests for the AI backends using httpx.MockTransport
"""
import json

import httpx
import pytest

from sentinel.domain.models.errors import ProviderError, SessionError
from sentinel.domain.models.provider_models import DEFAULT_DESCRIPTORS
from sentinel.domain.models.session_state import Turn, TurnRole
from sentinel.domain.provider import (
    GeminiProvider, OllamaProvider, OpenAIProvider, ProviderRegistry, estimate_tokens
)

TRANSCRIPT = [
    Turn(role=TurnRole.SYSTEM, content="You operate db1.", ordinal=1),
    Turn(role=TurnRole.USER, content="check disk", ordinal=2),
    Turn(role=TurnRole.ASSISTANT, content="RUN: df -h", ordinal=3),
    Turn(role=TurnRole.USER, content="Command Output:\n45% used", ordinal=4),
]


def recording_transport(responder):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return responder(request)

    return httpx.MockTransport(handler), requests


def descriptor(name, **updates):
    return DEFAULT_DESCRIPTORS[name].model_copy(update=updates)


@pytest.mark.asyncio
async def test_openai_chat_sends_messages_and_bearer():
    transport, requests = recording_transport(lambda r: httpx.Response(
        200, json={"choices": [{"message": {"content": "Disk usage is healthy."}}]}
    ))
    provider = OpenAIProvider(descriptor("openai", credential="sk-test"), transport=transport)

    reply = await provider.chat(TRANSCRIPT)

    assert reply == "Disk usage is healthy."
    request = requests[0]
    assert str(request.url) == "https://api.openai.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(request.content)
    assert body["model"] == "gpt-4o"
    assert [m["role"] for m in body["messages"]] == ["system", "user", "assistant", "user"]


@pytest.mark.asyncio
async def test_openai_models_are_static():
    provider = OpenAIProvider(descriptor("openai"))
    assert "gpt-4o" in await provider.list_models()


@pytest.mark.asyncio
async def test_gemini_maps_roles_and_system_instruction():
    transport, requests = recording_transport(lambda r: httpx.Response(
        200, json={"candidates": [{"content": {"parts": [{"text": "All good."}]}}]}
    ))
    provider = GeminiProvider(descriptor("gemini", credential="g-key"), transport=transport)

    reply = await provider.chat(TRANSCRIPT)

    assert reply == "All good."
    request = requests[0]
    assert request.url.path.endswith("/gemini-pro:generateContent")
    assert request.url.params["key"] == "g-key"
    body = json.loads(request.content)
    assert body["systemInstruction"] == {"parts": [{"text": "You operate db1."}]}
    assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]


@pytest.mark.asyncio
async def test_ollama_ask_and_chat_routes():
    def responder(request):
        if request.url.path == "/api/generate":
            return httpx.Response(200, json={"response": "pong"})
        return httpx.Response(200, json={"message": {"role": "assistant", "content": "chatted"}})

    transport, requests = recording_transport(responder)
    provider = OllamaProvider(descriptor("ollama"), transport=transport)

    assert await provider.ask("ping") == "pong"
    assert await provider.chat(TRANSCRIPT) == "chatted"

    chat_body = json.loads(requests[1].content)
    assert chat_body["stream"] is False
    assert chat_body["model"] == "llama3"
    assert len(chat_body["messages"]) == 4


@pytest.mark.asyncio
async def test_ollama_lists_models_from_tags():
    transport, requests = recording_transport(lambda r: httpx.Response(
        200, json={"models": [{"name": "llama3:latest"}, {"name": "mistral"}]}
    ))
    provider = OllamaProvider(descriptor("ollama", endpoint="http://gpu-box:11434/api/"), transport=transport)

    assert await provider.list_models() == ["llama3:latest", "mistral"]
    assert str(requests[0].url) == "http://gpu-box:11434/api/tags"


@pytest.mark.asyncio
@pytest.mark.parametrize("status, kind", [(401, "auth"), (403, "auth"), (500, "api"), (429, "api")])
async def test_http_errors_map_to_kinds(status, kind):
    transport, _ = recording_transport(lambda r: httpx.Response(status, json={"error": "nope"}))
    provider = OpenAIProvider(descriptor("openai"), transport=transport)

    with pytest.raises(ProviderError) as exc_info:
        await provider.ask("hello")

    assert exc_info.value.kind == kind
    assert exc_info.value.provider == "openai"


@pytest.mark.asyncio
async def test_network_failure_is_provider_error():
    def responder(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport, _ = recording_transport(responder)
    provider = OllamaProvider(descriptor("ollama"), transport=transport)

    with pytest.raises(ProviderError) as exc_info:
        await provider.ask("hello")
    assert exc_info.value.kind == "network"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"content": b"not json"},
    {"json": ["a", "list"]},
    {"json": {"choices": []}},
    {"json": {"choices": [{"message": {"content": None}}]}},
])
async def test_malformed_responses_are_parse_errors(body):
    transport, _ = recording_transport(lambda r: httpx.Response(200, **body))
    provider = OpenAIProvider(descriptor("openai"), transport=transport)

    with pytest.raises(ProviderError) as exc_info:
        await provider.ask("hello")
    assert exc_info.value.kind == "parse"


def test_describe_and_token_estimate():
    assert OllamaProvider(descriptor("ollama")).describe() == (
        "Ollama (Model: llama3, URL: http://localhost:11434/api)"
    )
    assert GeminiProvider(descriptor("gemini")).describe() == "Gemini (Model: gemini-pro)"
    assert estimate_tokens("") == 0
    assert estimate_tokens("a b c d e") == 5
    assert estimate_tokens("x" * 40) == 10


def test_registry_rejects_unknown_and_normalizes():
    registry = ProviderRegistry()
    assert registry.known_providers() == ["gemini", "ollama", "openai"]
    assert registry.resolve(" OpenAI ") is OpenAIProvider
    assert not registry.is_known("claude")
    with pytest.raises(SessionError) as exc_info:
        registry.resolve("claude")
    assert "Available: gemini, ollama, openai" in str(exc_info.value)
