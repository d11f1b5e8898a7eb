"""Bearer credential validation against the identity service.

The gateway never issues or decodes tokens itself: every request's token is
re-verified with the identity service (``GET /auth/v1/user``). A network error
and a rejected token look the same to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import httpx

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class AuthErrorKind(str, Enum):
    MALFORMED = "malformed"  # header absent or not "Bearer <token>"
    INVALID = "invalid"  # identity service rejected the token or was unreachable


class AuthError(Exception):
    def __init__(self, kind: AuthErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str


def parse_bearer(header_value: str | None) -> str:
    """Extract the token from an ``Authorization`` header value."""
    if not header_value or not header_value.startswith(BEARER_PREFIX):
        raise AuthError(AuthErrorKind.MALFORMED, "Missing or invalid Authorization header")
    token = header_value[len(BEARER_PREFIX) :].strip()
    if not token:
        raise AuthError(AuthErrorKind.MALFORMED, "Missing or invalid Authorization header")
    return token


class IdentityClient:
    """Thin client for the identity service's user lookup."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    async def verify(self, token: str) -> AuthenticatedUser:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(
                    f"{self.base_url}/auth/v1/user",
                    headers={
                        "apikey": self.api_key,
                        "Authorization": f"Bearer {token}",
                    },
                )
        except httpx.HTTPError as e:
            logger.warning("Identity service unreachable: %s", e)
            raise AuthError(AuthErrorKind.INVALID, "Invalid or expired token") from e

        if resp.status_code != 200:
            logger.info("Identity service rejected token (HTTP %d)", resp.status_code)
            raise AuthError(AuthErrorKind.INVALID, "Invalid or expired token")

        try:
            data = resp.json()
        except ValueError as e:
            logger.warning("Identity service returned non-JSON body")
            raise AuthError(AuthErrorKind.INVALID, "Invalid or expired token") from e

        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            raise AuthError(AuthErrorKind.INVALID, "Invalid or expired token")

        return AuthenticatedUser(user_id=str(user_id))


class CredentialValidator:
    """Turns an inbound ``Authorization`` header into an authenticated user."""

    def __init__(self, identity: IdentityClient):
        self.identity = identity

    async def validate(self, header_value: str | None) -> AuthenticatedUser:
        token = parse_bearer(header_value)
        return await self.identity.verify(token)
