from collections.abc import Awaitable, Callable
from typing import TypeVar

from fastapi import Depends, Header, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

from app.core.exceptions import TooManyRequestsError, UnauthorizedError
from app.core.quota import QuotaLimiter
from app.core.security import AuthError, AuthenticatedUser, CredentialValidator
from app.gateway.gateway import LlmGateway

BodyT = TypeVar("BodyT", bound=BaseModel)


def get_credential_validator(request: Request) -> CredentialValidator:
    return request.app.state.credential_validator


def get_quota_limiter(request: Request) -> QuotaLimiter:
    return request.app.state.quota_limiter


def get_gateway(request: Request) -> LlmGateway:
    return request.app.state.gateway


async def get_current_user(
    authorization: str | None = Header(None, description="Bearer <token>"),
    validator: CredentialValidator = Depends(get_credential_validator),
) -> AuthenticatedUser:
    try:
        return await validator.validate(authorization)
    except AuthError as e:
        raise UnauthorizedError(e.message)


def enforce_quota(endpoint: str) -> Callable[..., Awaitable[AuthenticatedUser]]:
    """Dependency factory: count one request against ``endpoint``'s quota.

    Usage:
        chat_quota = enforce_quota("chat")

        @router.post("/chat")
        async def chat(user: AuthenticatedUser = Depends(chat_quota)): ...
    """

    async def _check(
        user: AuthenticatedUser = Depends(get_current_user),
        limiter: QuotaLimiter = Depends(get_quota_limiter),
    ) -> AuthenticatedUser:
        if not await limiter.allow(user.user_id, endpoint):
            raise TooManyRequestsError()
        return user

    return _check


def json_body(
    model: type[BodyT],
    guard: Callable[..., Awaitable[AuthenticatedUser]],
) -> Callable[..., Awaitable[BodyT]]:
    """Dependency factory: parse the JSON body into ``model`` once ``guard`` has passed.

    A declared body parameter is decoded by FastAPI before any dependency runs,
    so routes take their body through this instead. Pass the same ``guard``
    object the route uses; FastAPI then runs it once per request.
    """

    async def _parse(
        request: Request,
        user: AuthenticatedUser = Depends(guard),
    ) -> BodyT:
        raw = await request.body()
        try:
            return model.model_validate_json(raw)
        except ValidationError as e:
            raise RequestValidationError(e.errors()) from e

    return _parse
