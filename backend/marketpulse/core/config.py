from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    scheme = parsed.scheme.lower()

    if scheme == "postgres":
        scheme = "postgresql"

    if scheme == "postgresql":
        scheme = "postgresql+psycopg"

    if scheme not in {"postgresql+psycopg", "postgresql+asyncpg"}:
        scheme = "postgresql+psycopg"

    query_params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query_params.setdefault("sslmode", "require")
    query_params.setdefault("target_session_attrs", "read-write")
    new_query = urlencode(query_params, doseq=True)

    return urlunparse(parsed._replace(scheme=scheme, query=new_query))


def _parse_term_list(value: Any, field_name: str) -> list[str]:
    """Split comma separated include/exclude terms and lower-case them."""

    if value in (None, "", []):
        return []
    if isinstance(value, str):
        tokens = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        tokens = [str(item) for item in value]
    else:
        raise ValueError(f"{field_name} must be provided as a list or comma-separated string")
    return [token.strip().lower() for token in tokens if token.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )

    # Provider selection and market filters
    provider: str = Field(default="polymarket", description="Market data provider id")
    category: str = Field(default="sports", description="Market category label for this deployment")
    event_filters: list[str] | str = Field(
        default_factory=list,
        description="Comma-separated terms; a market must contain at least one (empty = all)",
    )
    blacklist: list[str] | str = Field(
        default_factory=list,
        description="Comma-separated terms; markets containing any of them are dropped",
    )
    active_only: bool = Field(True, description="Hide resolved markets from filtered listings")

    # Display
    site_name: str = Field(default="Market Pulse")
    deployment_id: str = Field(default="default", description="Scopes votes to one deployment")
    default_theme: str = Field(default="default")
    countdown_date: str | None = Field(default=None, description="Optional countdown target (ISO 8601)")
    countdown_label: str = Field(default="Event")
    affiliate_url: str = Field(default="https://polymarket.com")

    # Refresh intervals (seconds)
    data_refresh_interval: int = Field(default=60, ge=1)
    vote_refresh_interval: int = Field(default=5, ge=1)
    hero_rotation_interval: int = Field(default=30, ge=1)
    editorial_rotation_interval: int = Field(default=10, ge=1)
    enable_background_refresh: bool = Field(
        True, description="Warm the market caches on an interval scheduler"
    )

    # Upstream endpoints
    polymarket_gamma_url: AnyUrl = Field(default="https://gamma-api.polymarket.com")
    polymarket_clob_url: AnyUrl = Field(default="https://clob.polymarket.com")
    kalshi_api_url: AnyUrl = Field(default="https://api.elections.kalshi.com/trade-api/v2")
    http_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Upstream requests exceeding this fail instead of hanging"
    )
    ingestion_page_size: int = Field(200, ge=1, description="Events fetched per upstream page")
    ingestion_max_pages: int = Field(
        5, ge=1, description="Upper bound on pages fetched per refresh"
    )

    # Caching
    cache_dir: str = Field(default=".cache", description="Directory for the market snapshot file")
    market_cache_ttl_seconds: float = Field(default=600.0, gt=0)
    all_markets_cache_ttl_seconds: float = Field(default=4 * 60 * 60.0, gt=0)
    price_cache_ttl_seconds: float = Field(default=4 * 60 * 60.0, gt=0)

    # Vote + broadcast state store
    database_url: AnyUrl | str | None = Field(
        default=None,
        description="SQLAlchemy URL for the vote and broadcast-state store (unset = voting disabled)",
    )
    supabase_db_url: AnyUrl | str | None = Field(
        default=None,
        description="Supabase pooled Postgres connection string for production runs",
    )
    broadcast_poll_interval: float = Field(
        default=1.0, gt=0, description="Seconds between remote broadcast-state change checks"
    )

    # Editorial policy
    sentiment_gap_threshold: float = Field(default=5.0, ge=0, description="Percentage points")
    crowd_conviction_threshold: float = Field(default=85.0, ge=50, le=100)
    volume_surge_min_volume: float = Field(default=10_000.0, ge=0)
    volume_surge_min_ratio: float = Field(default=0.08, ge=0, le=1)
    fresh_market_hours: float = Field(default=48.0, gt=0)
    editorial_seed: int | None = Field(
        default=None, description="Seed for editorial copy selection (unset = random)"
    )

    @field_validator("event_filters", "blacklist", mode="after")
    @classmethod
    def _parse_terms(cls, value: Any, info) -> list[str]:
        return _parse_term_list(value, info.field_name.upper())

    @field_validator("provider")
    @classmethod
    def _normalize_provider(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("database_url", "supabase_db_url", mode="before")
    @classmethod
    def _normalize_postgres_urls(cls, value: Any) -> Any:
        if value is None or not isinstance(value, str):
            return value
        if not value.strip():
            return None

        if value.startswith("postgresql+psycopg://") or value.startswith(
            "postgresql+asyncpg://"
        ):
            return value

        normalized = value
        if normalized.startswith("postgres://"):
            normalized = "postgresql://" + normalized[len("postgres://") :]

        return normalized

    @property
    def resolved_database_url(self) -> str | None:
        environment = self.environment.lower()
        if environment == "production":
            if not self.supabase_db_url:
                raise ValueError(
                    "SUPABASE_DB_URL must be set when ENVIRONMENT=production"
                )
            return _ensure_sqlalchemy_postgres_scheme(str(self.supabase_db_url))
        if self.database_url is None:
            return None
        return _ensure_sqlalchemy_postgres_scheme(str(self.database_url))

    @property
    def votes_configured(self) -> bool:
        try:
            return self.resolved_database_url is not None
        except ValueError:
            return False

    @property
    def countdown(self) -> dict[str, str] | None:
        if not self.countdown_date:
            return None
        return {"date": self.countdown_date, "label": self.countdown_label}

    @property
    def refresh_intervals(self) -> dict[str, int]:
        return {
            "data": self.data_refresh_interval,
            "votes": self.vote_refresh_interval,
            "hero": self.hero_rotation_interval,
            "editorial": self.editorial_rotation_interval,
        }


@lru_cache
def get_settings() -> Settings:
    return Settings()
