"""
LLM Service - Handles interactions with the hosted and self-hosted model backends
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any

import aiohttp

from .errors import MissingCredential, UnsupportedBackend, UpstreamBackendError

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_QWEN_MODEL = "qwen-coder"
SUPPORTED_PROVIDERS = ("openai", "qwen")


class LLMService:
    """Service for interacting with the configured model backend profiles"""

    def __init__(self, config: dict[str, Any], provider: str | None = None):
        self.config = config
        self.provider = provider or config.get("provider", "openai")
        if self.provider not in SUPPORTED_PROVIDERS:
            raise UnsupportedBackend(self.provider)

    # ========== Config Helpers ==========

    def _get_openai_config(self) -> tuple[str, str, dict[str, str]]:
        """Get OpenAI config: (model, url, headers). Raises if api_key missing."""
        cfg = self.config.get("openai", {})
        api_key = cfg.get("apiKey")
        if not api_key:
            raise MissingCredential("OPENAI_API_KEY not set on server")
        model = cfg.get("model") or DEFAULT_OPENAI_MODEL
        url = cfg.get("url") or OPENAI_CHAT_URL
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        return model, url, headers

    def _get_qwen_config(self) -> tuple[str, str, dict[str, str]]:
        """Get self-hosted endpoint config: (model, url, headers). Raises if endpoint missing."""
        cfg = self.config.get("qwen", {})
        endpoint = cfg.get("endpoint")
        if not endpoint:
            raise MissingCredential("QWEN_URL not set on server")
        model = cfg.get("model") or DEFAULT_QWEN_MODEL
        return model, endpoint, {"Content-Type": "application/json"}

    def _generation_defaults(self) -> tuple[float, int]:
        cfg = self.config.get("generation", {})
        return float(cfg.get("temperature", 0.2)), int(cfg.get("maxTokens", 1024))

    # ========== Message/Payload Builders ==========

    def _build_prompt(self, messages: list[dict[str, str]]) -> str:
        """Flatten role-tagged messages into a single completion prompt"""
        parts = []
        for message in messages:
            role = message.get("role", "user")
            if role == "system":
                parts.append(message["content"])
            else:
                parts.append(f"{role.capitalize()}:\n{message['content']}")
        parts.append("Return:")
        return "\n\n".join(parts)

    def _build_openai_payload(
        self,
        model: str,
        messages: list,
        max_tokens: int = 1024,
        temperature: float = 0.2,
        stream: bool = False,
    ) -> dict[str, Any]:
        """Build OpenAI-compatible request payload"""
        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if stream:
            payload["stream"] = True
        return payload

    def _build_qwen_payload(
        self,
        model: str,
        prompt: str,
        max_tokens: int = 1024,
        temperature: float = 0.2,
    ) -> dict[str, Any]:
        """Build completion-style payload for the self-hosted endpoint"""
        return {
            "model": model,
            "prompt": prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

    @asynccontextmanager
    async def _request(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout_seconds: int = 60,
        provider: str = "API",
    ):
        """Context manager for HTTP POST requests with automatic session cleanup"""
        timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, json=payload, headers=headers) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error("%s API error %s: %s", provider, response.status, error_text)
                        raise UpstreamBackendError(provider, response.status, error_text)
                    yield response
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamBackendError(provider, None, str(e) or type(e).__name__) from e

    async def _request_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout_seconds: int = 60,
        provider: str = "API",
    ) -> dict[str, Any]:
        """Make request and return JSON response"""
        async with self._request(url, payload, headers, timeout_seconds, provider) as response:
            return await response.json(content_type=None)

    async def _stream_response(
        self, url: str, payload: dict[str, Any], headers: dict[str, str] | None, provider: str, line_parser
    ):
        """Stream response and yield parsed content"""
        async with self._request(url, payload, headers, timeout_seconds=120, provider=provider) as response:
            async for line in response.content:
                line_text = line.decode("utf-8").strip()
                content = line_parser(line_text)
                if content:
                    yield content

    # ========== Response Parsers ==========

    def _parse_openai_response(self, data: dict[str, Any]) -> str:
        """Parse OpenAI-compatible response format"""
        choices = data.get("choices") or []
        if choices:
            choice = choices[0] or {}
            content = (choice.get("message") or {}).get("content")
            if content is not None:
                return content
            if choice.get("text") is not None:
                return choice["text"]
        raise UpstreamBackendError("OpenAI", 200, "no completion in response")

    def _parse_qwen_response(self, data: dict[str, Any]) -> str:
        """Parse the self-hosted response, which may be completion or chat shaped"""
        choices = data.get("choices") or []
        if choices:
            choice = choices[0]
            if choice.get("text") is not None:
                return choice["text"]
            message = choice.get("message") or {}
            if message.get("content") is not None:
                return message["content"]
        if data.get("output") is not None:
            return data["output"]
        return json.dumps(data)

    def _parse_sse_line(self, line_text: str, extractor) -> str | None:
        """Parse SSE line with given extractor function"""
        if not line_text.startswith("data: "):
            return None
        data_str = line_text[6:]
        if data_str == "[DONE]":
            return None
        try:
            data = json.loads(data_str)
            return extractor(data)
        except json.JSONDecodeError:
            return None

    def _extract_openai_delta(self, data: dict[str, Any]) -> str | None:
        """Extract content delta from OpenAI stream data"""
        if "choices" in data and len(data["choices"]) > 0:
            delta = data["choices"][0].get("delta", {})
            return delta.get("content", "") or None
        return None

    def _parse_openai_stream_line(self, line_text: str) -> str | None:
        """Parse a single SSE line from OpenAI-compatible stream"""
        return self._parse_sse_line(line_text, self._extract_openai_delta)

    # ========== Public API ==========

    async def complete(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send role-tagged messages to the backend and return the generated text"""
        default_temperature, default_max_tokens = self._generation_defaults()
        temperature = default_temperature if temperature is None else temperature
        max_tokens = max_tokens or default_max_tokens

        if self.provider == "openai":
            default_model, url, headers = self._get_openai_config()
            model = model or default_model
            payload = self._build_openai_payload(model, messages, max_tokens, temperature)
            logger.info("Calling OpenAI with model: %s", model)
            data = await self._request_json(url, payload, headers, provider="OpenAI")
            text = self._parse_openai_response(data)
        else:
            default_model, url, headers = self._get_qwen_config()
            model = model or default_model
            payload = self._build_qwen_payload(model, self._build_prompt(messages), max_tokens, temperature)
            logger.info("Calling self-hosted backend with model: %s", model)
            data = await self._request_json(url, payload, headers, provider="Qwen")
            text = self._parse_qwen_response(data)

        logger.info("Received response from %s (length: %d chars)", model, len(text))
        return text

    async def complete_stream(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ):
        """Yield generated text incrementally, in arrival order"""
        if self.provider == "openai":
            default_temperature, default_max_tokens = self._generation_defaults()
            default_model, url, headers = self._get_openai_config()
            payload = self._build_openai_payload(
                model or default_model,
                messages,
                max_tokens=max_tokens or default_max_tokens,
                temperature=default_temperature if temperature is None else temperature,
                stream=True,
            )
            async for content in self._stream_response(url, payload, headers, "OpenAI", self._parse_openai_stream_line):
                yield content
        else:
            # The self-hosted endpoint has no streaming mode: send the whole reply as one chunk
            yield await self.complete(messages, model, temperature, max_tokens)
