"""site_audit.ai.providers: chat backends behind a single ``query(prompt) -> str`` call.

* :class:`OllamaProvider` – local Ollama server over its HTTP API (aiohttp).
* :class:`OpenAIProvider` – hosted chat completions through ``openai.AsyncOpenAI``.

Backend failures are translated into the :class:`~site_audit.errors.AIProviderError`
family so callers can tell authentication, rate limiting, missing models and
timeouts apart.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import openai
from aiohttp import ClientError, ClientSession, ClientTimeout
from openai import AsyncOpenAI

from site_audit.config import AISettings, OllamaSettings, OpenAISettings
from site_audit.errors import (
    AIAuthenticationError,
    AIModelNotFoundError,
    AIProviderError,
    AIRateLimitError,
    AITimeoutError,
    ConfigurationError,
)
from site_audit.logger import logger

SYSTEM_PROMPT = "You are an expert web developer and digital strategist helping with website audits."
HEALTH_CHECK_TIMEOUT = 10.0


class AIProvider:
    """Base class; subclasses implement :meth:`query` and may override the lifecycle hooks."""

    name = "base"

    async def initialize(self) -> None:
        """Verify the backend is usable; raise ``ConfigurationError`` otherwise."""

    async def query(self, prompt: str) -> str:
        raise NotImplementedError

    async def close(self) -> None:
        """Release network resources."""

    async def __aenter__(self) -> AIProvider:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


# --------------------------------------------------------------------------- #
# Ollama                                                                      #
# --------------------------------------------------------------------------- #


class OllamaProvider(AIProvider):
    name = "ollama"

    def __init__(self, settings: OllamaSettings, session: Optional[ClientSession] = None) -> None:
        self.settings = settings
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession()
            self._owns_session = True
        return self._session

    async def initialize(self) -> None:
        url = f"{self.settings.host}/api/tags"
        logger.info("Testing Ollama connection at %s", self.settings.host)
        try:
            async with self._get_session().get(url, timeout=ClientTimeout(total=HEALTH_CHECK_TIMEOUT)) as resp:
                if resp.status != 200:
                    raise ConfigurationError(f"Cannot connect to Ollama at {self.settings.host}: HTTP {resp.status}")
                data = await resp.json(content_type=None)
        except (ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise ConfigurationError(f"Cannot connect to Ollama at {self.settings.host}: {exc}") from exc

        models = data.get("models", []) if isinstance(data, dict) else []
        names = {m.get("name") for m in models if isinstance(m, dict)}
        if names and self.settings.model not in names:
            logger.warning(
                "Model %s is not installed in Ollama; install it with: ollama pull %s",
                self.settings.model,
                self.settings.model,
            )
        logger.info("Ollama connection successful")

    async def query(self, prompt: str) -> str:
        payload = {
            "model": self.settings.model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
            "options": {"temperature": self.settings.temperature, "num_ctx": self.settings.num_ctx},
        }
        url = f"{self.settings.host}/api/chat"
        try:
            async with self._get_session().post(
                url, json=payload, timeout=ClientTimeout(total=self.settings.timeout)
            ) as resp:
                body = await resp.json(content_type=None)
                if not isinstance(body, dict):
                    body = {"error": repr(body)}
                if resp.status == 404 or "not found" in str(body.get("error", "")).lower():
                    raise AIModelNotFoundError(
                        f"Model {self.settings.model} not found. "
                        f"Install it in Ollama using: ollama pull {self.settings.model}"
                    )
                if resp.status != 200:
                    raise AIProviderError(f"Ollama error: HTTP {resp.status}: {body.get('error', 'unknown error')}")
        except asyncio.TimeoutError as exc:
            raise AITimeoutError(f"Ollama did not answer within {self.settings.timeout:g} seconds") from exc
        except ClientError as exc:
            raise AIProviderError(
                f"Cannot connect to Ollama server at {self.settings.host}. Please ensure Ollama is running. ({exc})"
            ) from exc
        except ValueError as exc:
            raise AIProviderError(f"Ollama returned invalid JSON: {exc}") from exc

        try:
            return body["message"]["content"]
        except (KeyError, TypeError) as exc:
            raise AIProviderError(f"Unexpected Ollama response: {body!r}") from exc

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None


# --------------------------------------------------------------------------- #
# OpenAI                                                                      #
# --------------------------------------------------------------------------- #


def supports_temperature(model: str) -> bool:
    return "gpt-5" not in model


class OpenAIProvider(AIProvider):
    name = "openai"

    def __init__(self, settings: OpenAISettings, client: Optional[AsyncOpenAI] = None) -> None:
        self.settings = settings
        self._client = client

    async def initialize(self) -> None:
        if not self.settings.api_key:
            raise ConfigurationError("OpenAI API key is required")
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.timeout,
                max_retries=self.settings.max_retries,
            )
        logger.info("OpenAI client initialized (model %s)", self.settings.model)

    def build_request(self, prompt: str) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        request: Dict[str, Any] = {
            "model": self.settings.model,
            "messages": messages,
            "max_completion_tokens": self.settings.max_tokens,
        }
        if supports_temperature(self.settings.model):
            request["temperature"] = self.settings.temperature
        return request

    async def query(self, prompt: str) -> str:
        if self._client is None:
            await self.initialize()
        assert self._client is not None
        try:
            response = await self._client.chat.completions.create(**self.build_request(prompt))
        except openai.AuthenticationError as exc:
            raise AIAuthenticationError("OpenAI API authentication failed. Please check your API key.") from exc
        except openai.RateLimitError as exc:
            raise AIRateLimitError("OpenAI API rate limit exceeded. Please try again later.") from exc
        except openai.NotFoundError as exc:
            raise AIModelNotFoundError(f"OpenAI model {self.settings.model} not found or not accessible.") from exc
        except openai.APITimeoutError as exc:
            raise AITimeoutError("OpenAI API request timed out. Try again later.") from exc
        except openai.OpenAIError as exc:
            raise AIProviderError(f"OpenAI API error: {exc}") from exc
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


def create_provider(settings: AISettings) -> AIProvider:
    """Provider for ``settings.provider``; the settings are validated first."""
    settings.ensure_valid()
    if settings.provider == "ollama":
        return OllamaProvider(settings.ollama)
    if settings.provider == "openai":
        return OpenAIProvider(settings.openai)
    raise ConfigurationError(f"Unsupported AI provider: {settings.provider}")


__all__ = [
    "AIProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "create_provider",
    "supports_temperature",
    "SYSTEM_PROMPT",
]
