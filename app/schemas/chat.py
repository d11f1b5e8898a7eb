from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.gateway.types import KnowledgeItem, ProviderResult, knowledge_item_from_file


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileItem(_CamelModel):
    id: str
    name: str
    mime_type: str
    data: str | None = None  # base64, required for image/* to be usable
    text: str | None = None

    def to_knowledge_item(self) -> KnowledgeItem | None:
        return knowledge_item_from_file(
            id=self.id,
            name=self.name,
            mime_type=self.mime_type,
            data=self.data,
            text=self.text,
        )


class ChatRequest(_CamelModel):
    prompt: str = Field(min_length=1)
    urls: list[str] = Field(default_factory=list)
    files: list[FileItem] = Field(default_factory=list)


class SuggestionsRequest(_CamelModel):
    urls: list[str] = Field(default_factory=list)
    files: list[FileItem] = Field(default_factory=list)


class UrlRetrievalResponse(_CamelModel):
    url: str
    status: str


class ChatResponse(_CamelModel):
    text: str
    url_retrievals: list[UrlRetrievalResponse] | None = None
    provider_name: str

    @classmethod
    def from_result(cls, result: ProviderResult) -> "ChatResponse":
        retrievals = None
        if result.url_retrievals:
            retrievals = [UrlRetrievalResponse(url=r.url, status=r.status.value) for r in result.url_retrievals]
        return cls(text=result.text, url_retrievals=retrievals, provider_name=result.provider_name.value)


class SuggestionsResponse(_CamelModel):
    suggestions: list[str]
