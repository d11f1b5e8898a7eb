from unittest.mock import AsyncMock, patch

import httpx
import pytest
from conftest import FakeQuotaStore, make_httpx_response

from app.core.quota import (
    DEFAULT_QUOTA_POLICY,
    QuotaCheckOutcome,
    QuotaLimiter,
    QuotaPolicy,
    QuotaStoreError,
    RpcQuotaStore,
    policy_for,
)


def _mock_client(mock_client_cls, *, post=None, post_side_effect=None):
    mock_client = AsyncMock()
    if post_side_effect is not None:
        mock_client.post.side_effect = post_side_effect
    else:
        mock_client.post.return_value = post
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    mock_client_cls.return_value = mock_client
    return mock_client


class TestPolicies:
    def test_known_endpoints(self):
        assert policy_for("chat") == QuotaPolicy(max_requests=20, window_seconds=60)
        assert policy_for("suggestions") == QuotaPolicy(max_requests=10, window_seconds=60)

    def test_unknown_endpoint_uses_default(self):
        assert policy_for("export") == DEFAULT_QUOTA_POLICY


class TestQuotaLimiter:
    @pytest.mark.asyncio
    async def test_denies_after_max_requests(self):
        limiter = QuotaLimiter(FakeQuotaStore())
        for _ in range(10):
            assert await limiter.allow("user-1", "suggestions")

        assert await limiter.check("user-1", "suggestions") == QuotaCheckOutcome.DENIED
        assert not await limiter.allow("user-1", "suggestions")

    @pytest.mark.asyncio
    async def test_counts_are_per_user_and_endpoint(self):
        limiter = QuotaLimiter(FakeQuotaStore())
        for _ in range(10):
            await limiter.allow("user-1", "suggestions")

        assert await limiter.allow("user-2", "suggestions")
        assert await limiter.allow("user-1", "chat")

    @pytest.mark.asyncio
    async def test_store_failure_fails_open(self):
        limiter = QuotaLimiter(FakeQuotaStore(fail=True))
        assert await limiter.check("user-1", "chat") == QuotaCheckOutcome.STORE_UNAVAILABLE
        assert await limiter.allow("user-1", "chat")

    def test_only_denied_blocks(self):
        assert QuotaCheckOutcome.ALLOWED.permits
        assert QuotaCheckOutcome.STORE_UNAVAILABLE.permits
        assert not QuotaCheckOutcome.DENIED.permits


class TestRpcQuotaStore:
    @pytest.fixture
    def store(self) -> RpcQuotaStore:
        return RpcQuotaStore("https://identity.test", "anon-key", "docschat_check_rate_limit", timeout=2.0)

    @pytest.mark.asyncio
    async def test_rpc_payload(self, store):
        with patch("app.core.quota.httpx.AsyncClient") as mock_client_cls:
            mock_client = _mock_client(mock_client_cls, post=make_httpx_response(200, json_data=True))
            allowed = await store.check_and_increment("user-1", "chat", QuotaPolicy(20, 60))

        assert allowed is True
        call = mock_client.post.call_args
        assert call.args[0] == "https://identity.test/rest/v1/rpc/docschat_check_rate_limit"
        assert call.kwargs["json"] == {
            "p_user_id": "user-1",
            "p_endpoint": "chat",
            "p_max_requests": 20,
            "p_window_seconds": 60,
        }
        assert call.kwargs["headers"]["apikey"] == "anon-key"

    @pytest.mark.asyncio
    async def test_over_limit(self, store):
        with patch("app.core.quota.httpx.AsyncClient") as mock_client_cls:
            _mock_client(mock_client_cls, post=make_httpx_response(200, json_data=False))
            assert await store.check_and_increment("user-1", "chat", QuotaPolicy(20, 60)) is False

    @pytest.mark.asyncio
    async def test_non_boolean_result(self, store):
        with patch("app.core.quota.httpx.AsyncClient") as mock_client_cls:
            _mock_client(mock_client_cls, post=make_httpx_response(200, json_data={"allowed": True}))
            with pytest.raises(QuotaStoreError):
                await store.check_and_increment("user-1", "chat", QuotaPolicy(20, 60))

    @pytest.mark.asyncio
    async def test_http_error(self, store):
        with patch("app.core.quota.httpx.AsyncClient") as mock_client_cls:
            _mock_client(mock_client_cls, post=make_httpx_response(500, text="boom"))
            with pytest.raises(QuotaStoreError):
                await store.check_and_increment("user-1", "chat", QuotaPolicy(20, 60))

    @pytest.mark.asyncio
    async def test_rpc_failure_fails_open_through_limiter(self, store):
        limiter = QuotaLimiter(store)
        with patch("app.core.quota.httpx.AsyncClient") as mock_client_cls:
            _mock_client(mock_client_cls, post_side_effect=httpx.ConnectError("refused"))
            assert await limiter.allow("user-1", "chat")
