"""
Application settings and environment configuration.

Purpose:
- Centralize all config (HTTP retry defaults, logging, CORS, API credentials)
- Load from environment variables for 12-factor app compliance
- Provide sensible defaults for local development

Credentials are only ever read from here. Request payloads never carry keys.
"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # API Configuration
    API_TITLE: str = "Portfolio Agent API"
    API_VERSION: str = "0.1"
    DEBUG: bool = False

    # Logging: DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_LEVEL: str = "INFO"

    # Outbound HTTP: per-attempt timeout and retry count for fetch_with_retry
    HTTP_TIMEOUT_MS: int = 10000
    HTTP_MAX_RETRIES: int = 2

    # Comma-separated list, "*" for any origin
    CORS_ORIGINS: str = "*"

    # Market data providers
    COINGECKO_API_KEY: str | None = None
    COINMARKETCAP_API_KEY: str | None = None
    BIRDEYE_API_KEY: str | None = None
    DEXSCREENER_API_KEY: str | None = None
    CRYPTOCOMPARE_API_KEY: str | None = None
    MESSARI_API_KEY: str | None = None
    LUNARCRUSH_TOKEN: str | None = None
    ETH_API_KEY: str | None = None
    SOL_API_KEY: str | None = None

    # Search / news providers
    SERPER_API_KEY: str | None = None
    TAVILY_API_KEY: str | None = None
    JINA_API_KEY: str | None = None

    # Inference providers
    FIREWORKS_API_KEY: str | None = None
    GROQ_API_KEY: str | None = None
    OPENROUTER_API_KEY: str | None = None
    AIML_API_KEY: str | None = None

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """FastAPI dependency; built once per process."""
    return Settings()


# Global settings instance
settings = get_settings()
