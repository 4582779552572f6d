from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rate_handler.models.constants import (
    DEFAULT_CACHE_TTL_MS,
    DEFAULT_FALLBACK_RATES,
    DEFAULT_INDEXER_BASE_URL,
    DEFAULT_INDEXER_TIMEOUT_SECONDS,
    DEFAULT_MINIMUM_RATES,
)
from rate_handler.services.money import to_decimal


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., DEBUG, RATES_CACHE_TTL_MS,
    FALLBACK_RATES='{"$ZRA+0000": "0.10"}', INDEXER_API_KEY).
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "Exchange Rate Resolver"
    debug: bool = False
    version: str = "0.1.0"

    # Cache & safeguards
    rates_cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS
    fallback_rates: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_FALLBACK_RATES)
    )
    minimum_rates: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_MINIMUM_RATES)
    )
    enable_safeguards: bool = True

    # Indexer source; disabled unless an API key is configured
    indexer_base_url: AnyHttpUrl = DEFAULT_INDEXER_BASE_URL  # type: ignore[assignment]
    indexer_api_key: Optional[str] = None
    indexer_timeout_seconds: float = DEFAULT_INDEXER_TIMEOUT_SECONDS

    # Mutating /rates endpoints (cache clear, table updates, safeguard toggle)
    enable_rate_admin: bool = True

    @field_validator("fallback_rates", "minimum_rates", mode="before")
    @classmethod
    def rates_as_strings(cls, v: Any) -> Any:
        # JSON tables may carry plain numbers ({"$ZRA+0000": 0.1})
        if isinstance(v, dict):
            return {
                key: value if isinstance(value, (str, bool)) else str(value)
                for key, value in v.items()
            }
        return v

    def init_post_load(self) -> None:
        """Validate derived constraints that pydantic cannot express per field."""
        if self.rates_cache_ttl_ms <= 0:
            raise ValueError("rates_cache_ttl_ms must be positive")
        if self.indexer_timeout_seconds <= 0:
            raise ValueError("indexer_timeout_seconds must be positive")
        for table_name in ("fallback_rates", "minimum_rates"):
            for key, value in getattr(self, table_name).items():
                to_decimal(value, what=f"{table_name}[{key}]")


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings
