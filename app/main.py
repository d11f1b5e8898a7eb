import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.router import api_v1_router
from app.core.config import settings, validate_settings_for_production
from app.core.dependencies import get_gateway
from app.core.logging import setup_logging
from app.core.metrics import PrometheusMiddleware, metrics_response
from app.core.middleware import RequestLoggingMiddleware
from app.core.quota import QuotaLimiter, RpcQuotaStore
from app.core.security import CredentialValidator, IdentityClient
from app.core.sentry import init_sentry
from app.gateway.gateway import LlmGateway
from app.gateway.types import GatewayConfig

# Configure logging before anything else
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: missing identity configuration is fatal here
    validate_settings_for_production()
    init_sentry()
    logger.info("Starting legal chat gateway...")

    app.state.credential_validator = CredentialValidator(
        IdentityClient(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout=settings.identity_timeout_seconds,
        )
    )
    app.state.quota_limiter = QuotaLimiter(
        RpcQuotaStore(
            settings.supabase_url,
            settings.supabase_anon_key,
            settings.quota_rpc_name,
            timeout=settings.identity_timeout_seconds,
        )
    )
    gateway = LlmGateway(GatewayConfig.from_settings(settings))
    app.state.gateway = gateway

    status = gateway.get_status()
    missing = [p for p in status["provider_order"] if p not in status["configured_providers"]]
    if missing:
        logger.warning("Providers disabled (no API key): %s", ", ".join(missing))
    if not status["configured_providers"]:
        logger.error("No LLM provider is configured; every chat request will fail")
    logger.info("Provider failover order: %s", " -> ".join(status["provider_order"]))

    yield

    logger.info("Legal chat gateway shut down")


app = FastAPI(
    title="Legal Chat Gateway",
    description="Authenticated, quota-limited legal Q&A over a failover chain of LLM providers",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


# Body validation → 400 with a fixed message; pydantic details stay out of the response
@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    prompt_error = any("prompt" in (str(part) for part in err.get("loc", ())) for err in exc.errors())
    detail = "Missing or invalid prompt" if prompt_error else "Invalid request body"
    return JSONResponse(status_code=400, content={"detail": detail})


# Log unhandled exceptions; the client only gets a generic message
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Request logging + metrics middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(PrometheusMiddleware)

# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_v1_router)


@app.get("/api/v1/health")
async def health(gateway: LlmGateway = Depends(get_gateway)):
    return {"status": "ok", "provider_order": gateway.get_status()["provider_order"]}


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()
