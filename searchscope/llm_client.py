"""Text generation across the supported model platforms.

Model ids take the form ``platform__model`` (``openai__gpt-4.1-mini``,
``anthropic__claude-3-7-sonnet-latest``). The platform selects a client from
a lookup table; every platform returns plain text.
"""
from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Protocol

import anthropic
import httpx
import openai
from openai import AsyncOpenAI

from searchscope.config import Settings
from searchscope.exceptions import (
    MisconfiguredError,
    RateLimitedError,
    SearchScopeError,
    UpstreamError,
    ValidationError,
)
from searchscope.services import logger as log_service

PLATFORM_SEPARATOR = "__"

MODEL_CATALOG: dict[str, dict[str, str]] = {
    "openai": {
        "gpt-4.1-2025-04-14": "GPT-4.1",
        "gpt-4.1-mini-2025-04-14": "GPT-4.1 Mini",
        "o3-mini": "o3 Mini",
    },
    "anthropic": {
        "claude-3-7-sonnet-latest": "Claude 3.7 Sonnet",
        "claude-3-5-haiku-latest": "Claude 3.5 Haiku",
    },
    "deepseek": {
        "chat": "DeepSeek V3",
        "reasoner": "DeepSeek R1",
    },
    "openrouter": {
        "openrouter/auto": "OpenRouter Auto",
    },
    "ollama": {
        "deepseek-r1:14b": "DeepSeek R1 14B (local)",
        "llama3.1:8b": "Llama 3.1 8B (local)",
    },
}


class TextGenerator(Protocol):
    async def generate(self, prompt: str, model_id: str | None = None) -> str:
        ...


def split_model_id(model_id: str) -> tuple[str, str]:
    platform, sep, model = (model_id or "").partition(PLATFORM_SEPARATOR)
    if not sep or not platform or not model:
        raise ValidationError(f"Model id must look like 'platform__model', got '{model_id}'")
    return platform.lower(), model


def available_models(settings: Settings) -> list[dict[str, str]]:
    enabled = {p.lower() for p in settings.enabled_platforms}
    return [
        {"id": f"{platform}{PLATFORM_SEPARATOR}{model}", "platform": platform, "label": label}
        for platform, models in MODEL_CATALOG.items()
        if platform in enabled
        for model, label in models.items()
    ]


def _translate_openai_error(exc: openai.APIError, platform: str) -> SearchScopeError:
    if isinstance(exc, openai.RateLimitError):
        return RateLimitedError(f"{platform} rate limited: {exc}")
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return MisconfiguredError(f"{platform} rejected credentials: {exc}")
    return UpstreamError(f"{platform} request failed: {exc}")


def _translate_anthropic_error(exc: anthropic.APIError) -> SearchScopeError:
    if isinstance(exc, anthropic.RateLimitError):
        return RateLimitedError(f"anthropic rate limited: {exc}")
    if isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return MisconfiguredError(f"anthropic rejected credentials: {exc}")
    return UpstreamError(f"anthropic request failed: {exc}")


class LLMClient:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._clients: dict[str, Any] = {}
        self._platforms: dict[str, Callable[[str, str], Awaitable[str]]] = {
            "openai": self._generate_openai,
            "anthropic": self._generate_anthropic,
            "deepseek": self._generate_deepseek,
            "openrouter": self._generate_openrouter,
            "ollama": self._generate_ollama,
        }

    async def generate(self, prompt: str, model_id: str | None = None) -> str:
        model_id = model_id or self.settings.default_model
        platform, model = split_model_id(model_id)
        handler = self._platforms.get(platform)
        if handler is None:
            raise ValidationError(f"Unsupported model platform: {platform}")
        if platform not in {p.lower() for p in self.settings.enabled_platforms}:
            raise ValidationError(f"Model platform '{platform}' is disabled")

        t0 = time.monotonic()
        try:
            text = await handler(prompt, model)
        except SearchScopeError as exc:
            log_service.log_llm_call(
                model_id,
                caller="LLMClient.generate",
                duration_ms=int((time.monotonic() - t0) * 1000),
                prompt_chars=len(prompt),
                status="error",
                error=str(exc),
            )
            raise

        if not text or not text.strip():
            raise UpstreamError(f"{platform} returned an empty response")
        log_service.log_llm_call(
            model_id,
            caller="LLMClient.generate",
            duration_ms=int((time.monotonic() - t0) * 1000),
            prompt_chars=len(prompt),
            response_chars=len(text),
        )
        return text

    # --- Platform clients ---

    def _openai_compatible(self, platform: str, api_key: str, base_url: str | None = None) -> AsyncOpenAI:
        if not api_key:
            raise MisconfiguredError(f"{platform.upper()}_API_KEY is not configured")
        client = self._clients.get(platform)
        if client is None:
            kwargs: dict[str, Any] = {"api_key": api_key}
            if base_url:
                kwargs["base_url"] = base_url
            client = AsyncOpenAI(**kwargs)
            self._clients[platform] = client
        return client

    async def _chat_completion(self, client: AsyncOpenAI, platform: str, **kwargs: Any) -> str:
        try:
            response = await client.chat.completions.create(**kwargs)
        except openai.APIError as exc:
            raise _translate_openai_error(exc, platform) from exc
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        return getattr(choices[0].message, "content", None) or ""

    async def _generate_openai(self, prompt: str, model: str) -> str:
        client = self._openai_compatible("openai", self.settings.openai_api_key)
        return await self._chat_completion(
            client,
            "openai",
            model=model,
            messages=[{"role": "user", "content": prompt}],
            max_completion_tokens=self.settings.llm_max_tokens,
            response_format={"type": "json_object"},
        )

    async def _generate_deepseek(self, prompt: str, model: str) -> str:
        client = self._openai_compatible("deepseek", self.settings.deepseek_api_key, self.settings.deepseek_base_url)
        model_name = model if model.startswith("deepseek-") else f"deepseek-{model}"
        return await self._chat_completion(
            client,
            "deepseek",
            model=model_name,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self.settings.llm_max_tokens,
        )

    async def _generate_openrouter(self, prompt: str, model: str) -> str:
        client = self._openai_compatible(
            "openrouter", self.settings.openrouter_api_key, self.settings.openrouter_base_url
        )
        return await self._chat_completion(
            client,
            "openrouter",
            model=model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self.settings.llm_max_tokens,
        )

    async def _generate_anthropic(self, prompt: str, model: str) -> str:
        if not self.settings.anthropic_api_key:
            raise MisconfiguredError("ANTHROPIC_API_KEY is not configured")
        client = self._clients.get("anthropic")
        if client is None:
            client = anthropic.AsyncAnthropic(api_key=self.settings.anthropic_api_key)
            self._clients["anthropic"] = client
        try:
            response = await client.messages.create(
                model=model,
                max_tokens=self.settings.llm_max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as exc:
            raise _translate_anthropic_error(exc) from exc
        return "".join(
            getattr(block, "text", "") for block in response.content if getattr(block, "type", "") == "text"
        )

    async def _generate_ollama(self, prompt: str, model: str) -> str:
        url = f"{self.settings.ollama_base_url.rstrip('/')}/api/generate"
        try:
            async with httpx.AsyncClient(timeout=max(self.settings.http_timeout_seconds, 120.0)) as client:
                response = await client.post(url, json={"model": model, "prompt": prompt, "stream": False})
        except httpx.HTTPError as exc:
            raise UpstreamError(f"ollama request failed: {exc}") from exc
        if response.status_code == 429:
            raise RateLimitedError("ollama rate limited (429)")
        if response.status_code >= 400:
            raise UpstreamError(f"ollama returned {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError("ollama returned invalid JSON") from exc
        return str(payload.get("response", ""))
