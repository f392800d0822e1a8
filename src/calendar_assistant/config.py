from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # OpenRouter (OpenAI-compatible chat completions)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "openai/gpt-4o-mini"
    app_title: str = "Calendar Assistant"
    app_url: str = "http://localhost:3000"

    user_timezone: str = "UTC"

    # Parse cache
    cache_ttl_seconds: int = 3600
    cache_sweep_interval_seconds: int = 60

    # Remote parsing
    llm_timeout_seconds: float = 10.0
    llm_max_retries: int = 3
    llm_retry_delay_seconds: float = 1.0
    rate_limit_default_seconds: int = 60

    # Sentry error tracking
    sentry_dsn: str = ""
    sentry_environment: str = "production"

    log_level: str = "INFO"

    @property
    def has_openrouter(self) -> bool:
        return bool(self.openrouter_api_key)

    @property
    def has_sentry(self) -> bool:
        return bool(self.sentry_dsn)


settings = Settings()
