"""Chat endpoint: answer a legal question through the provider failover chain."""

import logging

from fastapi import APIRouter, Depends

from app.core.config import settings
from app.core.exceptions import BadRequestError
from app.core.dependencies import enforce_quota, get_gateway, json_body
from app.core.security import AuthenticatedUser
from app.gateway.content import normalize
from app.gateway.gateway import LlmGateway
from app.schemas.chat import ChatRequest, ChatResponse, FileItem

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

chat_quota = enforce_quota("chat")


def check_request_limits(urls: list[str], files: list[FileItem]) -> None:
    if len(urls) > settings.max_urls:
        raise BadRequestError(f"Too many URLs (max {settings.max_urls})")
    if len(files) > settings.max_files:
        raise BadRequestError(f"Too many files (max {settings.max_files})")


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
async def chat(
    user: AuthenticatedUser = Depends(chat_quota),
    body: ChatRequest = Depends(json_body(ChatRequest, chat_quota)),
    gateway: LlmGateway = Depends(get_gateway),
):
    check_request_limits(body.urls, body.files)

    content = normalize(body.prompt, body.urls, [f.to_knowledge_item() for f in body.files])
    result = await gateway.execute(content)

    logger.info(
        "Chat for user %s served by %s (%d chars)",
        user.user_id,
        result.provider_name.value,
        len(result.text),
    )
    return ChatResponse.from_result(result)
