"""Provider Adapters: protocol-level handling for each LLM backend.

Each adapter turns ``NormalizedContent`` into its provider's HTTP request,
sends it, and returns a ``ProviderResult`` or raises ``ProviderError``.

Provider-specific behaviors:
  - Gemini: rich, with multimodal parts, ``urlContext`` tool when URLs are given,
    fixed safety settings; SAFETY finish / blocked prompt → upstream failure
  - DeepSeek: text-only, OpenAI-compatible chat completions
  - OpenAI: text-only, chat completions

An adapter without a usable key fails with NOT_CONFIGURED before any I/O.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

import httpx

from app.gateway.content import BinaryPart, ContentPart, NormalizedContent, TextPart
from app.gateway.normalizer import normalize_url_retrievals
from app.gateway.types import CapabilityClass, ProviderConfig, ProviderName, ProviderResult

logger = logging.getLogger(__name__)

# Values shipped in example env files that mean "no key"
PLACEHOLDER_API_KEYS = frozenset({"PLACEHOLDER_API_KEY", "your-api-key-here", "changeme"})


class ProviderErrorKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    UPSTREAM_FAILURE = "upstream_failure"
    TIMEOUT = "timeout"


class ProviderError(Exception):
    """Raised when a provider cannot produce a completion for this request."""

    def __init__(
        self,
        provider: ProviderName,
        kind: ProviderErrorKind,
        message: str,
        status_code: int = 0,
        error_code: str = "",
    ):
        super().__init__(message)
        self.provider = provider
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.error_code = error_code


class BaseVendorAdapter(ABC):
    """Base class for all provider adapters."""

    name: ProviderName
    capability: CapabilityClass
    default_model: str

    def __init__(self, api_key: str, model: str = ""):
        self.api_key = api_key
        self.model = model or self.default_model

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key.strip() not in PLACEHOLDER_API_KEYS

    @property
    def supports_rich_content(self) -> bool:
        return self.capability == CapabilityClass.RICH

    async def invoke(
        self,
        content: NormalizedContent,
        system_instruction: str,
        max_output_tokens: int,
        timeout: float = 60.0,
    ) -> ProviderResult:
        """Call the provider once and return its completion.

        Raises ProviderError for every failure mode; nothing else escapes.
        """
        if not self.is_configured:
            raise ProviderError(
                self.name,
                ProviderErrorKind.NOT_CONFIGURED,
                f"{self.name.value} API key not configured",
            )

        start = time.monotonic()
        try:
            result = await self._send(content, system_instruction, max_output_tokens, timeout)
        except httpx.TimeoutException as e:
            raise ProviderError(
                self.name, ProviderErrorKind.TIMEOUT, f"{self.name.value} timeout after {timeout}s"
            ) from e
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            raise ProviderError(
                self.name,
                ProviderErrorKind.UPSTREAM_FAILURE,
                self._describe_status(code, e.response),
                status_code=code,
                error_code=str(code),
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(
                self.name, ProviderErrorKind.UPSTREAM_FAILURE, f"{self.name.value} transport error: {e}"
            ) from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderError(
                self.name, ProviderErrorKind.UPSTREAM_FAILURE, f"{self.name.value} malformed response: {e!r}"
            ) from e

        result.latency_ms = int((time.monotonic() - start) * 1000)
        return result

    @abstractmethod
    async def _send(
        self,
        content: NormalizedContent,
        system_instruction: str,
        max_output_tokens: int,
        timeout: float,
    ) -> ProviderResult:
        """Send one request; let httpx errors propagate to ``invoke``."""
        ...

    def _describe_status(self, status_code: int, response: httpx.Response) -> str:
        if status_code == 429:
            return f"Rate limited by {self.name.value}"
        return f"{self.name.value} returned HTTP {status_code}"


# ---------------------------------------------------------------------------
# Gemini Adapter (Google AI), rich
# ---------------------------------------------------------------------------

SAFETY_SETTINGS: list[dict[str, str]] = [
    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]


class GeminiAdapter(BaseVendorAdapter):
    """Google Gemini adapter: inline images, URL fetching, safety filter detection."""

    name = ProviderName.GEMINI
    capability = CapabilityClass.RICH
    default_model = "gemini-2.5-flash"
    api_url_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def build_payload(
        self,
        content: NormalizedContent,
        system_instruction: str,
        max_output_tokens: int,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "contents": [
                {
                    "role": "user",
                    "parts": [self._to_part(p) for p in content.rich_parts()],
                }
            ],
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "safetySettings": SAFETY_SETTINGS,
            "generationConfig": {"maxOutputTokens": max_output_tokens},
        }
        if content.wants_url_fetching:
            payload["tools"] = [{"urlContext": {}}]
        return payload

    @staticmethod
    def _to_part(part: ContentPart) -> dict[str, Any]:
        if isinstance(part, BinaryPart):
            return {"inlineData": {"mimeType": part.mime_type, "data": part.data}}
        if isinstance(part, TextPart):
            return {"text": part.text}
        raise TypeError(f"Unsupported content part: {part!r}")

    async def _send(
        self,
        content: NormalizedContent,
        system_instruction: str,
        max_output_tokens: int,
        timeout: float,
    ) -> ProviderResult:
        url = self.api_url_template.format(model=self.model)
        payload = self.build_payload(content, system_instruction, max_output_tokens)

        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(
                url,
                json=payload,
                params={"key": self.api_key},
                headers={"Content-Type": "application/json"},
            )

        resp.raise_for_status()
        data = resp.json()

        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason", "")
            if block_reason:
                raise ProviderError(
                    self.name,
                    ProviderErrorKind.UPSTREAM_FAILURE,
                    f"Gemini blocked the prompt: {block_reason}",
                    error_code=f"BLOCKED_{block_reason}",
                )
            return ProviderResult(text="", provider_name=self.name, model_version=self.model)

        candidate = candidates[0]
        if candidate.get("finishReason") == "SAFETY":
            raise ProviderError(
                self.name,
                ProviderErrorKind.UPSTREAM_FAILURE,
                "Gemini safety filter triggered",
                error_code="SAFETY",
            )

        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts if "text" in p and not p.get("thought"))

        url_metadata = (candidate.get("urlContextMetadata") or {}).get("urlMetadata")
        url_retrievals = normalize_url_retrievals(url_metadata) or None

        usage = data.get("usageMetadata") or {}
        return ProviderResult(
            text=text,
            provider_name=self.name,
            model_version=data.get("modelVersion", self.model),
            url_retrievals=url_retrievals,
            input_tokens=usage.get("promptTokenCount", 0),
            output_tokens=usage.get("candidatesTokenCount", 0),
        )


# ---------------------------------------------------------------------------
# OpenAI-compatible chat completions, text-only
# ---------------------------------------------------------------------------


class _ChatCompletionsAdapter(BaseVendorAdapter):
    """Shared request/response handling for OpenAI-style chat completions."""

    capability = CapabilityClass.TEXT_ONLY
    api_url: str

    def build_payload(
        self,
        content: NormalizedContent,
        system_instruction: str,
        max_output_tokens: int,
    ) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": content.flattened_text()},
            ],
            "max_tokens": max_output_tokens,
        }

    async def _send(
        self,
        content: NormalizedContent,
        system_instruction: str,
        max_output_tokens: int,
        timeout: float,
    ) -> ProviderResult:
        payload = self.build_payload(content, system_instruction, max_output_tokens)

        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(
                self.api_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )

        resp.raise_for_status()
        data = resp.json()

        choices = data.get("choices") or []
        text = ""
        if choices:
            text = (choices[0].get("message") or {}).get("content") or ""

        usage = data.get("usage") or {}
        return ProviderResult(
            text=text,
            provider_name=self.name,
            model_version=data.get("model", self.model),
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
        )


class DeepSeekAdapter(_ChatCompletionsAdapter):
    """DeepSeek adapter (OpenAI-compatible API)."""

    name = ProviderName.DEEPSEEK
    default_model = "deepseek-chat"
    default_base_url = "https://api.deepseek.com"

    def __init__(self, api_key: str, model: str = "", base_url: str = ""):
        super().__init__(api_key, model=model)
        self.api_url = f"{(base_url or self.default_base_url).rstrip('/')}/chat/completions"

    def _describe_status(self, status_code: int, response: httpx.Response) -> str:
        if status_code == 503 and "busy" in response.text.lower():
            return "DeepSeek server busy"
        return super()._describe_status(status_code, response)


class OpenAIAdapter(_ChatCompletionsAdapter):
    """OpenAI Chat Completions adapter."""

    name = ProviderName.OPENAI
    default_model = "gpt-4o-mini"
    api_url = "https://api.openai.com/v1/chat/completions"


# ---------------------------------------------------------------------------
# Adapter registry
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[ProviderName, type[BaseVendorAdapter]] = {
    ProviderName.GEMINI: GeminiAdapter,
    ProviderName.DEEPSEEK: DeepSeekAdapter,
    ProviderName.OPENAI: OpenAIAdapter,
}


def get_adapter(name: ProviderName, api_key: str, **kwargs) -> BaseVendorAdapter:
    """Factory: get the appropriate adapter for a provider."""
    cls = ADAPTER_REGISTRY.get(name)
    if cls is None:
        raise ValueError(f"No adapter registered for provider: {name}")
    return cls(api_key=api_key, **kwargs)


def adapter_from_config(config: ProviderConfig) -> BaseVendorAdapter:
    kwargs: dict[str, str] = {"model": config.model}
    if config.base_url:
        kwargs["base_url"] = config.base_url
    return get_adapter(config.name, config.api_key, **kwargs)
