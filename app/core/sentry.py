"""Optional Sentry error tracking.

Enabled only when SENTRY_DSN is set. Request bodies carry user documents and
base64 images, so they are stripped from every event before it leaves the process.
"""

import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def scrub_event(event: dict, hint: dict) -> dict:
    """Drop request payloads and credentials from an outgoing Sentry event."""
    request = event.get("request")
    if isinstance(request, dict):
        request.pop("data", None)
        request.pop("cookies", None)
        headers = request.get("headers")
        if isinstance(headers, dict):
            for name in list(headers):
                if name.lower() in ("authorization", "apikey"):
                    headers[name] = "[Filtered]"
    return event


def init_sentry() -> bool:
    """Initialize Sentry; returns whether it was enabled."""
    if not settings.sentry_dsn:
        logger.debug("Sentry disabled (no SENTRY_DSN)")
        return False

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.httpx import HttpxIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        send_default_pii=False,
        max_request_body_size="never",
        before_send=scrub_event,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            HttpxIntegration(),
        ],
    )
    logger.info("Sentry enabled for %s", settings.app_env)
    return True
