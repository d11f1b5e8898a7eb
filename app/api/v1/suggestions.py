"""Suggestions endpoint: quick-start questions for the user's documents.

Always answers 200: total provider failure ends on a static fallback list.
"""

from fastapi import APIRouter, Depends

from app.api.v1.chat import check_request_limits
from app.core.dependencies import enforce_quota, get_gateway, json_body
from app.core.security import AuthenticatedUser
from app.gateway.content import normalize
from app.gateway.gateway import LlmGateway
from app.gateway.prompts import EMPTY_KNOWLEDGE_SUGGESTIONS, SUGGESTION_PROMPT
from app.schemas.chat import SuggestionsRequest, SuggestionsResponse

router = APIRouter(tags=["suggestions"])

suggestions_quota = enforce_quota("suggestions")


@router.post("/suggestions", response_model=SuggestionsResponse)
async def suggestions(
    user: AuthenticatedUser = Depends(suggestions_quota),
    body: SuggestionsRequest = Depends(json_body(SuggestionsRequest, suggestions_quota)),
    gateway: LlmGateway = Depends(get_gateway),
):
    check_request_limits(body.urls, body.files)

    if not body.urls and not body.files:
        return SuggestionsResponse(suggestions=list(EMPTY_KNOWLEDGE_SUGGESTIONS))

    content = normalize(SUGGESTION_PROMPT, body.urls, [f.to_knowledge_item() for f in body.files])
    result = await gateway.suggest(content)
    return SuggestionsResponse(suggestions=result.suggestions)
