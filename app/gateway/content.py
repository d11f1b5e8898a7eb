"""Request Normalizer: turns one logical request into provider-ready content.

A request (prompt + URLs + knowledge items) is rendered two ways:
  - rich: ordered structured parts (prompt, one part per text document, one
    inline binary part per image, then the URL list) for providers that take
    multimodal input and fetch URLs themselves
  - flattened: a single text blob for text-only providers; documents are
    inlined under "Document context:", images are replaced by a note saying
    they are unavailable, and URLs are appended as plain reference text
"""

from __future__ import annotations

from dataclasses import dataclass, field

from app.gateway.types import ImageKnowledgeItem, KnowledgeItem, TextKnowledgeItem


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class BinaryPart:
    mime_type: str
    data: str  # base64


ContentPart = TextPart | BinaryPart


def document_block(item: TextKnowledgeItem) -> str:
    return f"--- START OF FILE: {item.name} ---\n{item.text_content}\n--- END OF FILE: {item.name} ---"


def image_unavailable_note(item: ImageKnowledgeItem) -> str:
    return f"[Image file: {item.name} - image content not available in text mode]"


@dataclass(frozen=True)
class NormalizedContent:
    prompt: str
    urls: tuple[str, ...] = ()
    items: tuple[KnowledgeItem, ...] = field(default_factory=tuple)

    @property
    def text_items(self) -> list[TextKnowledgeItem]:
        return [i for i in self.items if isinstance(i, TextKnowledgeItem)]

    @property
    def image_items(self) -> list[ImageKnowledgeItem]:
        return [i for i in self.items if isinstance(i, ImageKnowledgeItem)]

    @property
    def wants_url_fetching(self) -> bool:
        return len(self.urls) > 0

    def rich_parts(self) -> list[ContentPart]:
        parts: list[ContentPart] = [TextPart(self.prompt)]
        for item in self.items:
            if isinstance(item, TextKnowledgeItem):
                parts.append(TextPart(document_block(item)))
            else:
                parts.append(BinaryPart(mime_type=item.image_mime_type, data=item.image_base64))
        if self.urls:
            # The URL-fetching tool only retrieves URLs it can see in the prompt
            parts.append(TextPart("Reference URLs:\n" + "\n".join(self.urls)))
        return parts

    def flattened_text(self) -> str:
        context_blocks: list[str] = []
        for item in self.items:
            if isinstance(item, TextKnowledgeItem):
                context_blocks.append(document_block(item))
            else:
                context_blocks.append(image_unavailable_note(item))
        file_context = "\n\n".join(context_blocks)

        url_context = ""
        if self.urls:
            url_context = f"\n\nRelevant URLs for reference: {', '.join(self.urls)}"

        if file_context:
            return f"{self.prompt}\n\nDocument context:\n{file_context}{url_context}"
        return f"{self.prompt}{url_context}"


def _is_usable(item: KnowledgeItem | None) -> bool:
    if isinstance(item, TextKnowledgeItem):
        return bool(item.text_content)
    if isinstance(item, ImageKnowledgeItem):
        return bool(item.image_base64) and item.image_mime_type.startswith("image/")
    return False


def normalize(
    prompt: str,
    urls: list[str] | tuple[str, ...] = (),
    files: list[KnowledgeItem | None] | tuple[KnowledgeItem | None, ...] = (),
) -> NormalizedContent:
    """Build provider-agnostic content, dropping items with no usable payload."""
    items = tuple(item for item in files if _is_usable(item))
    return NormalizedContent(prompt=prompt, urls=tuple(urls), items=items)
