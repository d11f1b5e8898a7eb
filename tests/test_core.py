import json
import logging

import pytest
from httpx import AsyncClient

from app.core.config import settings, validate_settings_for_production
from app.core.logging import JSONFormatter, setup_logging
from app.core.metrics import _normalize_path
from app.core.sentry import init_sentry, scrub_event


class TestValidateSettings:
    def test_ok(self, monkeypatch):
        monkeypatch.setattr(settings, "app_env", "development")
        validate_settings_for_production()

    def test_missing_identity_service(self, monkeypatch):
        monkeypatch.setattr(settings, "supabase_url", "")
        with pytest.raises(SystemExit, match="SUPABASE_URL"):
            validate_settings_for_production()

    def test_non_positive_deadline(self, monkeypatch):
        monkeypatch.setattr(settings, "request_deadline_seconds", 0)
        with pytest.raises(SystemExit, match="REQUEST_DEADLINE_SECONDS"):
            validate_settings_for_production()

    def test_production_rejects_wildcard_cors(self, monkeypatch):
        monkeypatch.setattr(settings, "app_env", "production")
        monkeypatch.setattr(settings, "app_debug", False)
        monkeypatch.setattr(settings, "allowed_origins", "*")
        with pytest.raises(SystemExit, match="ALLOWED_ORIGINS"):
            validate_settings_for_production()


class TestJSONFormatter:
    def test_includes_request_id_and_provider(self):
        record = logging.LogRecord("app.gateway", logging.WARNING, __file__, 1, "%s failed", ("gemini",), None)
        record.request_id = "abc123"
        record.provider = "gemini"

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "gemini failed"
        assert data["level"] == "WARNING"
        assert data["request_id"] == "abc123"
        assert data["provider"] == "gemini"

    def test_omits_absent_context(self):
        record = logging.LogRecord("app.main", logging.INFO, __file__, 1, "started", (), None)
        data = json.loads(JSONFormatter().format(record))
        assert "request_id" not in data
        assert "provider" not in data


class TestSetupLogging:
    def test_quiets_http_clients(self):
        setup_logging(level="DEBUG", json_output=True)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
        setup_logging()


class TestSentry:
    def test_disabled_without_dsn(self, monkeypatch):
        monkeypatch.setattr(settings, "sentry_dsn", "")
        assert init_sentry() is False

    def test_scrub_event_drops_body_and_credentials(self):
        event = {
            "request": {
                "data": {"prompt": "confidential", "files": []},
                "cookies": {"sid": "x"},
                "headers": {"Authorization": "Bearer secret", "apikey": "anon", "Accept": "application/json"},
            }
        }
        scrubbed = scrub_event(event, {})
        assert "data" not in scrubbed["request"]
        assert "cookies" not in scrubbed["request"]
        assert scrubbed["request"]["headers"] == {
            "Authorization": "[Filtered]",
            "apikey": "[Filtered]",
            "Accept": "application/json",
        }


class TestMetrics:
    def test_unknown_paths_collapse(self):
        assert _normalize_path("/api/v1/chat") == "/api/v1/chat"
        assert _normalize_path("/wp-admin/setup.php") == "other"

    @pytest.mark.asyncio
    async def test_metrics_endpoint(self, client: AsyncClient):
        await client.get("/api/v1/health")
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert "http_requests_total" in response.text
