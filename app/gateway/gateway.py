"""LLM Gateway: failover orchestrator over the provider adapters.

Main entry point for answering a request with whichever provider works first:
  1. Walks adapters strictly in the configured priority order, one at a time
  2. Bounds every attempt by the provider timeout and the request deadline
  3. Returns the first success; later providers are never called
  4. Records (provider, reason) for each failure and keeps going
  5. Chat: raises AllProvidersFailedError once the list is exhausted
     Suggestions: treats an empty parse as a failure and ends on a static
     fallback list instead of an error

Usage:
    gateway = LlmGateway(GatewayConfig.from_settings(settings))
    result = await gateway.execute(normalize(prompt, urls, files))
    suggestions = await gateway.suggest(normalize(SUGGESTION_PROMPT, urls, files))
"""

from __future__ import annotations

import asyncio
import logging

from app.core.exceptions import AllProvidersFailedError
from app.core.metrics import PROVIDER_ATTEMPTS
from app.gateway.content import NormalizedContent
from app.gateway.normalizer import parse_suggestions
from app.gateway.prompts import (
    CHAT_MAX_OUTPUT_TOKENS,
    FALLBACK_SUGGESTIONS,
    LEGAL_EXPERT_INSTRUCTION,
    SUGGESTIONS_MAX_OUTPUT_TOKENS,
)
from app.gateway.types import GatewayConfig, ProviderName, ProviderResult, SuggestionSet
from app.gateway.vendor_adapters import (
    BaseVendorAdapter,
    ProviderError,
    ProviderErrorKind,
    adapter_from_config,
)

logger = logging.getLogger(__name__)

# Don't start an attempt with less than this much of the request deadline left
MIN_ATTEMPT_SECONDS = 1.0

DEADLINE_SKIP_REASON = "skipped: request deadline exceeded"


class LlmGateway:
    """Sequential, priority-ordered failover across LLM providers."""

    def __init__(
        self,
        config: GatewayConfig,
        adapters: dict[ProviderName, BaseVendorAdapter] | None = None,
    ):
        """
        Args:
            config: Provider credentials, order and timeouts (loaded once)
            adapters: Pre-built adapters by provider; built from config when omitted
        """
        self.config = config
        if adapters is None:
            adapters = {name: adapter_from_config(config.provider(name)) for name in config.provider_order}
        self._adapters = adapters

    @property
    def adapters(self) -> list[BaseVendorAdapter]:
        """Adapters in failover order."""
        return [self._adapters[name] for name in self.config.provider_order if name in self._adapters]

    async def execute(
        self,
        content: NormalizedContent,
        system_instruction: str = LEGAL_EXPERT_INSTRUCTION,
        max_output_tokens: int = CHAT_MAX_OUTPUT_TOKENS,
    ) -> ProviderResult:
        """Return the first provider's completion, or raise AllProvidersFailedError."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.request_deadline_seconds
        failures: list[tuple[str, str]] = []

        for adapter in self.adapters:
            remaining = deadline - loop.time()
            if remaining < MIN_ATTEMPT_SECONDS:
                failures.append((adapter.name.value, DEADLINE_SKIP_REASON))
                PROVIDER_ATTEMPTS.labels(provider=adapter.name.value, outcome="skipped").inc()
                continue

            try:
                result = await self._attempt(adapter, content, system_instruction, max_output_tokens, remaining)
            except ProviderError as e:
                failures.append((adapter.name.value, e.message))
                continue

            if failures:
                logger.info(
                    "Served by %s after %d failed provider(s): %s",
                    adapter.name.value,
                    len(failures),
                    _format_failures(failures),
                )
            return result

        logger.error("All AI providers failed: %s", _format_failures(failures))
        raise AllProvidersFailedError(failures)

    async def suggest(
        self,
        content: NormalizedContent,
        system_instruction: str = LEGAL_EXPERT_INSTRUCTION,
        max_output_tokens: int = SUGGESTIONS_MAX_OUTPUT_TOKENS,
    ) -> SuggestionSet:
        """Return the first non-empty suggestion list; never fails.

        A provider whose output parses to zero suggestions counts as failed.
        When every provider fails, the static fallback set is returned.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.request_deadline_seconds
        failures: list[tuple[str, str]] = []

        for adapter in self.adapters:
            remaining = deadline - loop.time()
            if remaining < MIN_ATTEMPT_SECONDS:
                failures.append((adapter.name.value, DEADLINE_SKIP_REASON))
                PROVIDER_ATTEMPTS.labels(provider=adapter.name.value, outcome="skipped").inc()
                continue

            try:
                result = await self._attempt(adapter, content, system_instruction, max_output_tokens, remaining)
            except ProviderError as e:
                failures.append((adapter.name.value, e.message))
                continue

            suggestions = parse_suggestions(result.text)
            if suggestions:
                return SuggestionSet(suggestions=suggestions, provider_name=adapter.name)

            failures.append((adapter.name.value, "returned empty suggestions"))

        logger.warning("Using fallback suggestions; providers failed: %s", _format_failures(failures))
        return SuggestionSet(suggestions=list(FALLBACK_SUGGESTIONS), is_fallback=True)

    async def _attempt(
        self,
        adapter: BaseVendorAdapter,
        content: NormalizedContent,
        system_instruction: str,
        max_output_tokens: int,
        remaining: float,
    ) -> ProviderResult:
        """Run one bounded provider call. Every failure comes out as ProviderError."""
        timeout = min(self.config.provider_timeout_seconds, remaining)
        try:
            result = await asyncio.wait_for(
                adapter.invoke(content, system_instruction, max_output_tokens, timeout=timeout),
                timeout=timeout,
            )
        except ProviderError as e:
            outcome = e.kind.value
            if e.kind == ProviderErrorKind.NOT_CONFIGURED:
                logger.debug("%s skipped: %s", adapter.name.value, e.message)
            else:
                logger.warning("%s failed: %s", adapter.name.value, e.message, extra={"provider": adapter.name.value})
            PROVIDER_ATTEMPTS.labels(provider=adapter.name.value, outcome=outcome).inc()
            raise
        except asyncio.TimeoutError as e:
            PROVIDER_ATTEMPTS.labels(provider=adapter.name.value, outcome=ProviderErrorKind.TIMEOUT.value).inc()
            logger.warning("%s aborted after %.1fs", adapter.name.value, timeout, extra={"provider": adapter.name.value})
            raise ProviderError(
                adapter.name,
                ProviderErrorKind.TIMEOUT,
                f"{adapter.name.value} aborted after {timeout:.1f}s",
            ) from e
        except Exception as e:
            PROVIDER_ATTEMPTS.labels(
                provider=adapter.name.value, outcome=ProviderErrorKind.UPSTREAM_FAILURE.value
            ).inc()
            logger.exception("%s raised unexpectedly", adapter.name.value)
            raise ProviderError(
                adapter.name,
                ProviderErrorKind.UPSTREAM_FAILURE,
                f"{adapter.name.value} unexpected error: {type(e).__name__}",
            ) from e

        PROVIDER_ATTEMPTS.labels(provider=adapter.name.value, outcome="success").inc()
        logger.info("%s answered in %d ms", adapter.name.value, result.latency_ms)
        return result

    def get_status(self) -> dict:
        """Provider order and which providers have usable credentials."""
        return {
            "provider_order": [a.name.value for a in self.adapters],
            "configured_providers": [a.name.value for a in self.adapters if a.is_configured],
            "provider_timeout_seconds": self.config.provider_timeout_seconds,
            "request_deadline_seconds": self.config.request_deadline_seconds,
        }


def _format_failures(failures: list[tuple[str, str]]) -> str:
    return "; ".join(f"{name}: {reason}" for name, reason in failures)
