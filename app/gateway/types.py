"""Core types and DTOs for the provider-failover gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.core.config import Settings


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProviderName(str, Enum):
    """Supported LLM providers, in no particular order."""

    GEMINI = "gemini"
    DEEPSEEK = "deepseek"
    OPENAI = "openai"


class CapabilityClass(str, Enum):
    """What kind of content a provider can take."""

    RICH = "rich"  # multimodal parts + fetches URLs itself
    TEXT_ONLY = "text_only"  # one flattened text prompt


class UrlRetrievalStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    OTHER = "other"


# Fixed failover order: primary → secondary → tertiary
PROVIDER_ORDER: tuple[ProviderName, ...] = (
    ProviderName.GEMINI,
    ProviderName.DEEPSEEK,
    ProviderName.OPENAI,
)


# ---------------------------------------------------------------------------
# Knowledge items: user-supplied documents, immutable per request
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextKnowledgeItem:
    id: str
    name: str
    text_content: str


@dataclass(frozen=True)
class ImageKnowledgeItem:
    id: str
    name: str
    image_mime_type: str
    image_base64: str


KnowledgeItem = TextKnowledgeItem | ImageKnowledgeItem


def knowledge_item_from_file(
    id: str,
    name: str,
    mime_type: str,
    data: str | None = None,
    text: str | None = None,
) -> KnowledgeItem | None:
    """Build a knowledge item from the wire file shape.

    Extracted text wins over binary data. Returns None for items that carry
    neither usable text nor an image payload; callers drop those.
    """
    if text:
        return TextKnowledgeItem(id=id, name=name, text_content=text)
    if data and mime_type.startswith("image/"):
        return ImageKnowledgeItem(id=id, name=name, image_mime_type=mime_type, image_base64=data)
    return None


# ---------------------------------------------------------------------------
# Provider result: unified output of any adapter
# ---------------------------------------------------------------------------


@dataclass
class UrlRetrieval:
    url: str
    status: UrlRetrievalStatus


@dataclass
class ProviderResult:
    """Normalized successful completion, the same shape for every provider."""

    text: str
    provider_name: ProviderName
    model_version: str = ""
    url_retrievals: list[UrlRetrieval] | None = None  # only rich providers report these
    latency_ms: int = 0
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class SuggestionSet:
    suggestions: list[str] = field(default_factory=list)
    provider_name: ProviderName | None = None  # None when the static fallback was used
    is_fallback: bool = False


# ---------------------------------------------------------------------------
# Provider config
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderConfig:
    """Credentials and connection settings for one provider."""

    name: ProviderName
    api_key: str = ""
    model: str = ""
    base_url: str = ""


@dataclass(frozen=True)
class GatewayConfig:
    """Everything the gateway needs, loaded once at startup."""

    providers: tuple[ProviderConfig, ...]
    provider_order: tuple[ProviderName, ...] = PROVIDER_ORDER
    provider_timeout_seconds: float = 20.0
    request_deadline_seconds: float = 28.0

    def provider(self, name: ProviderName) -> ProviderConfig:
        for config in self.providers:
            if config.name == name:
                return config
        return ProviderConfig(name=name)

    @classmethod
    def from_settings(cls, settings: Settings) -> GatewayConfig:
        return cls(
            providers=(
                ProviderConfig(
                    name=ProviderName.GEMINI,
                    api_key=settings.gemini_api_key,
                    model=settings.gemini_model,
                ),
                ProviderConfig(
                    name=ProviderName.DEEPSEEK,
                    api_key=settings.deepseek_api_key,
                    model=settings.deepseek_model,
                    base_url=settings.deepseek_base_url,
                ),
                ProviderConfig(
                    name=ProviderName.OPENAI,
                    api_key=settings.openai_api_key,
                    model=settings.openai_model,
                ),
            ),
            provider_timeout_seconds=settings.provider_timeout_seconds,
            request_deadline_seconds=settings.request_deadline_seconds,
        )
