from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Identity service (token verification + quota RPC)
    supabase_url: str = ""
    supabase_anon_key: str = ""
    quota_rpc_name: str = "docschat_check_rate_limit"
    identity_timeout_seconds: float = 10.0

    # LLM providers: an empty or placeholder key disables that provider
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    deepseek_api_key: str = ""
    deepseek_model: str = "deepseek-chat"
    deepseek_base_url: str = "https://api.deepseek.com"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    # Timeouts (seconds)
    provider_timeout_seconds: float = 20.0  # per provider attempt
    request_deadline_seconds: float = 28.0  # whole failover run, below the client's 30s budget

    # Request limits
    max_urls: int = 20
    max_files: int = 5

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # CORS
    allowed_origins: str = "*"  # comma-separated, e.g. "https://app.example.com,https://admin.example.com"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable
    sentry_traces_sample_rate: float = 0.1

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    if not settings.supabase_url:
        errors.append("SUPABASE_URL must be set (identity service and quota store)")
    if not settings.supabase_anon_key:
        errors.append("SUPABASE_ANON_KEY must be set (identity service and quota store)")

    if settings.request_deadline_seconds <= 0 or settings.provider_timeout_seconds <= 0:
        errors.append("PROVIDER_TIMEOUT_SECONDS and REQUEST_DEADLINE_SECONDS must be positive")

    if settings.app_env == "production":
        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
