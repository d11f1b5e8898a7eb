import asyncio
from collections.abc import AsyncGenerator

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import settings

# Override settings for tests
settings.supabase_url = "https://identity.test"
settings.supabase_anon_key = "test-anon-key"
settings.app_env = "development"

from app.core.dependencies import get_credential_validator, get_gateway, get_quota_limiter  # noqa: E402
from app.core.quota import QuotaLimiter, QuotaPolicy  # noqa: E402
from app.core.security import AuthError, AuthErrorKind, AuthenticatedUser, parse_bearer  # noqa: E402
from app.gateway.content import NormalizedContent  # noqa: E402
from app.gateway.gateway import LlmGateway  # noqa: E402
from app.gateway.types import (  # noqa: E402
    PROVIDER_ORDER,
    CapabilityClass,
    GatewayConfig,
    ProviderConfig,
    ProviderName,
    ProviderResult,
)
from app.gateway.vendor_adapters import BaseVendorAdapter  # noqa: E402
from app.main import app  # noqa: E402

VALID_TOKEN = "valid-token"
TEST_USER_ID = "user-123"
AUTH_HEADERS = {"Authorization": f"Bearer {VALID_TOKEN}"}


# ---------------------------------------------------------------------------
# Fakes for the three upstream collaborators
# ---------------------------------------------------------------------------


class FakeCredentialValidator:
    """Accepts exactly one token; counts calls."""

    def __init__(self):
        self.calls = 0

    async def validate(self, header_value: str | None) -> AuthenticatedUser:
        self.calls += 1
        token = parse_bearer(header_value)
        if token != VALID_TOKEN:
            raise AuthError(AuthErrorKind.INVALID, "Invalid or expired token")
        return AuthenticatedUser(user_id=TEST_USER_ID)


class FakeQuotaStore:
    """In-memory check-and-increment; ignores time, so one window per test."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple[str, str, QuotaPolicy]] = []
        self.counts: dict[tuple[str, str], int] = {}

    async def check_and_increment(self, user_id: str, endpoint: str, policy: QuotaPolicy) -> bool:
        self.calls.append((user_id, endpoint, policy))
        if self.fail:
            raise ConnectionError("quota store unreachable")
        key = (user_id, endpoint)
        if self.counts.get(key, 0) >= policy.max_requests:
            return False
        self.counts[key] = self.counts.get(key, 0) + 1
        return True


class ScriptedAdapter(BaseVendorAdapter):
    """Adapter whose outcome is set by the test: a text, a ProviderResult or an exception."""

    default_model = "scripted"

    def __init__(
        self,
        name: ProviderName,
        outcome: str | ProviderResult | BaseException = "",
        capability: CapabilityClass = CapabilityClass.TEXT_ONLY,
        api_key: str = "test-key",
        delay: float = 0.0,
    ):
        super().__init__(api_key=api_key)
        self.name = name
        self.capability = capability
        self.outcome = outcome
        self.delay = delay
        self.calls: list[NormalizedContent] = []

    async def _send(self, content, system_instruction, max_output_tokens, timeout) -> ProviderResult:
        self.calls.append(content)
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        if isinstance(self.outcome, ProviderResult):
            return self.outcome
        return ProviderResult(text=self.outcome, provider_name=self.name, model_version=self.default_model)


def make_gateway(
    adapters: dict[ProviderName, BaseVendorAdapter],
    provider_timeout_seconds: float = 5.0,
    request_deadline_seconds: float = 10.0,
) -> LlmGateway:
    config = GatewayConfig(
        providers=tuple(ProviderConfig(name=name, api_key="test-key") for name in PROVIDER_ORDER),
        provider_timeout_seconds=provider_timeout_seconds,
        request_deadline_seconds=request_deadline_seconds,
    )
    return LlmGateway(config, adapters=adapters)


def make_httpx_response(status_code: int, json_data=None, text: str = "") -> httpx.Response:
    """Create a proper httpx.Response with request set (needed for raise_for_status)."""
    request = httpx.Request("POST", "https://example.com")
    if json_data is not None:
        return httpx.Response(status_code, json=json_data, request=request)
    return httpx.Response(status_code, text=text, request=request)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def validator() -> FakeCredentialValidator:
    return FakeCredentialValidator()


@pytest.fixture
def quota_store() -> FakeQuotaStore:
    return FakeQuotaStore()


@pytest.fixture
def providers() -> dict[ProviderName, ScriptedAdapter]:
    """Three healthy providers in failover order; tests rescript them."""
    return {
        ProviderName.GEMINI: ScriptedAdapter(
            ProviderName.GEMINI, "Answer from gemini", capability=CapabilityClass.RICH
        ),
        ProviderName.DEEPSEEK: ScriptedAdapter(ProviderName.DEEPSEEK, "Answer from deepseek"),
        ProviderName.OPENAI: ScriptedAdapter(ProviderName.OPENAI, "Answer from openai"),
    }


@pytest.fixture
async def client(
    validator: FakeCredentialValidator,
    quota_store: FakeQuotaStore,
    providers: dict[ProviderName, ScriptedAdapter],
) -> AsyncGenerator[AsyncClient, None]:
    gateway = make_gateway(dict(providers))
    limiter = QuotaLimiter(quota_store)

    app.dependency_overrides[get_credential_validator] = lambda: validator
    app.dependency_overrides[get_quota_limiter] = lambda: limiter
    app.dependency_overrides[get_gateway] = lambda: gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
