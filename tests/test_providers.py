# File: tests/test_providers.py
from __future__ import annotations

from collections.abc import AsyncIterator
from types import SimpleNamespace

import openai
import pytest
import pytest_asyncio
from aiohttp import web

from site_audit.ai import OllamaProvider, OpenAIProvider
from site_audit.ai.providers import SYSTEM_PROMPT, supports_temperature
from site_audit.config import OllamaSettings, OpenAISettings
from site_audit.errors import AIModelNotFoundError, AIProviderError, ConfigurationError


async def _serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        await runner.cleanup()


@pytest.fixture()
def chat_requests() -> list:
    return []


@pytest_asyncio.fixture
async def ollama_server(unused_tcp_port: int, chat_requests: list) -> AsyncIterator[str]:
    """Minimal Ollama API: one installed model, chat answers echo the model name."""

    async def tags(request: web.Request) -> web.Response:
        return web.json_response({"models": [{"name": "llama3:8b"}]})

    async def chat(request: web.Request) -> web.Response:
        body = await request.json()
        chat_requests.append(body)
        if body["model"] != "llama3:8b":
            return web.json_response({"error": f"model '{body['model']}' not found"}, status=404)
        return web.json_response({"message": {"role": "assistant", "content": f"answer from {body['model']}"}})

    app = web.Application()
    app.router.add_get("/api/tags", tags)
    app.router.add_post("/api/chat", chat)
    async for base in _serve_app(app, unused_tcp_port):
        yield base


# --------------------------------------------------------------------------- #
#                                     Ollama                                  #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_ollama_initialize_and_query(ollama_server: str, chat_requests: list):
    settings = OllamaSettings(host=ollama_server + "/", model="llama3:8b", temperature=0.3)
    async with OllamaProvider(settings) as provider:
        await provider.initialize()
        answer = await provider.query("Summarize the page")

    assert answer == "answer from llama3:8b"
    request = chat_requests[0]
    assert request["stream"] is False
    assert request["messages"] == [{"role": "user", "content": "Summarize the page"}]
    assert request["options"]["temperature"] == 0.3
    assert request["options"]["num_ctx"] == settings.num_ctx


@pytest.mark.asyncio()
async def test_ollama_missing_model(ollama_server: str):
    provider = OllamaProvider(OllamaSettings(host=ollama_server, model="ghost"))
    try:
        # initialize only warns about a model that is not installed
        await provider.initialize()
        with pytest.raises(AIModelNotFoundError, match="ollama pull ghost"):
            await provider.query("hello")
    finally:
        await provider.close()


@pytest.mark.asyncio()
async def test_ollama_unreachable_is_configuration_error(unused_tcp_port: int):
    provider = OllamaProvider(OllamaSettings(host=f"http://127.0.0.1:{unused_tcp_port}"))
    try:
        with pytest.raises(ConfigurationError, match="Cannot connect to Ollama"):
            await provider.initialize()
        with pytest.raises(AIProviderError, match="Please ensure Ollama is running"):
            await provider.query("hello")
    finally:
        await provider.close()


# --------------------------------------------------------------------------- #
#                                     OpenAI                                  #
# --------------------------------------------------------------------------- #


class FakeCompletions:
    def __init__(self, content: str = "hosted answer", error: Exception = None) -> None:
        self.content = content
        self.error = error
        self.requests = []

    async def create(self, **request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAIClient:
    def __init__(self, completions: FakeCompletions) -> None:
        self.chat = SimpleNamespace(completions=completions)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


def test_supports_temperature():
    assert supports_temperature("gpt-4o")
    assert not supports_temperature("gpt-5-mini")


def test_openai_build_request():
    provider = OpenAIProvider(OpenAISettings(api_key="sk-x", model="gpt-4o", max_tokens=500, temperature=0.2))
    request = provider.build_request("Audit this")
    assert request["model"] == "gpt-4o"
    assert request["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert request["messages"][1] == {"role": "user", "content": "Audit this"}
    assert request["max_completion_tokens"] == 500
    assert request["temperature"] == 0.2

    no_temp = OpenAIProvider(OpenAISettings(api_key="sk-x", model="gpt-5")).build_request("x")
    assert "temperature" not in no_temp


@pytest.mark.asyncio()
async def test_openai_requires_key():
    with pytest.raises(ConfigurationError, match="API key is required"):
        await OpenAIProvider(OpenAISettings()).initialize()


@pytest.mark.asyncio()
async def test_openai_query_with_injected_client():
    completions = FakeCompletions()
    client = FakeOpenAIClient(completions)
    provider = OpenAIProvider(OpenAISettings(api_key="sk-x"), client=client)

    await provider.initialize()
    assert await provider.query("Audit this") == "hosted answer"
    assert completions.requests[0]["model"] == "gpt-4"
    await provider.close()
    assert client.closed


@pytest.mark.asyncio()
async def test_openai_errors_are_translated():
    provider = OpenAIProvider(
        OpenAISettings(api_key="sk-x"),
        client=FakeOpenAIClient(FakeCompletions(error=openai.OpenAIError("quota exhausted"))),
    )
    with pytest.raises(AIProviderError, match="OpenAI API error: quota exhausted"):
        await provider.query("Audit this")
