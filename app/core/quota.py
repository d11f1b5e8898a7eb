"""Per-user, per-endpoint request quota.

The sliding-window counter lives in the shared store (a Postgres function
exposed over the identity service's RPC endpoint); this module only asks it to
check-and-increment atomically. Nothing is counted in-process.

If the store cannot answer, the request is let through (fail open).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import httpx

from app.core.metrics import QUOTA_DECISIONS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaPolicy:
    max_requests: int
    window_seconds: int


QUOTA_POLICIES: dict[str, QuotaPolicy] = {
    "chat": QuotaPolicy(max_requests=20, window_seconds=60),
    "suggestions": QuotaPolicy(max_requests=10, window_seconds=60),
}

DEFAULT_QUOTA_POLICY = QuotaPolicy(max_requests=20, window_seconds=60)


def policy_for(endpoint: str) -> QuotaPolicy:
    return QUOTA_POLICIES.get(endpoint, DEFAULT_QUOTA_POLICY)


class QuotaCheckOutcome(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"
    STORE_UNAVAILABLE = "store_unavailable"

    @property
    def permits(self) -> bool:
        """Whether the request may proceed. An unavailable store permits it."""
        return self is not QuotaCheckOutcome.DENIED


class QuotaStoreError(Exception):
    """The quota store could not give a yes/no answer."""


class QuotaStore(Protocol):
    async def check_and_increment(self, user_id: str, endpoint: str, policy: QuotaPolicy) -> bool:
        """Atomically count one request; return False when over the limit."""
        ...


class RpcQuotaStore:
    """Quota store backed by a Postgres RPC function (``/rest/v1/rpc/<name>``)."""

    def __init__(self, base_url: str, api_key: str, rpc_name: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.rpc_name = rpc_name
        self.timeout = timeout

    async def check_and_increment(self, user_id: str, endpoint: str, policy: QuotaPolicy) -> bool:
        payload = {
            "p_user_id": user_id,
            "p_endpoint": endpoint,
            "p_max_requests": policy.max_requests,
            "p_window_seconds": policy.window_seconds,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.base_url}/rest/v1/rpc/{self.rpc_name}",
                    json=payload,
                    headers={
                        "apikey": self.api_key,
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise QuotaStoreError(f"Quota RPC failed: {e}") from e

        if not isinstance(data, bool):
            raise QuotaStoreError(f"Quota RPC returned non-boolean: {data!r}")
        return data


class QuotaLimiter:
    """Checks the shared quota store before a request reaches any provider."""

    def __init__(self, store: QuotaStore):
        self.store = store

    async def check(self, user_id: str, endpoint: str) -> QuotaCheckOutcome:
        policy = policy_for(endpoint)
        try:
            allowed = await self.store.check_and_increment(user_id, endpoint, policy)
        except Exception as e:
            logger.error("Quota check failed for %s/%s, allowing request: %s", user_id, endpoint, e)
            outcome = QuotaCheckOutcome.STORE_UNAVAILABLE
        else:
            outcome = QuotaCheckOutcome.ALLOWED if allowed else QuotaCheckOutcome.DENIED

        QUOTA_DECISIONS.labels(endpoint=endpoint, outcome=outcome.value).inc()
        if outcome is QuotaCheckOutcome.DENIED:
            logger.info(
                "Quota exceeded for user %s on %s (%d/%ds)",
                user_id,
                endpoint,
                policy.max_requests,
                policy.window_seconds,
            )
        return outcome

    async def allow(self, user_id: str, endpoint: str) -> bool:
        outcome = await self.check(user_id, endpoint)
        return outcome.permits
