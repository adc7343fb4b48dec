"""Configuration settings for the DentiPal backend."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings

from dentipal.config import MarketplaceConfig


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Persistence: "supabase" for the managed store, "memory" for local runs
    storage_backend: Literal["supabase", "memory"] = "supabase"
    table_prefix: str = ""  # e.g. "staging_" -> staging_job_postings

    # Supabase
    supabase_url: str | None = None
    supabase_secret_key: str | None = None  # Backend/admin access
    # Legacy key (deprecated, will be removed)
    supabase_service_role_key: str | None = None

    # JWT (tokens are issued by the identity provider; we only verify)
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = None
    jwt_issuer: str | None = None

    # App
    debug: bool = False
    log_level: str = "INFO"
    rate_limit_enabled: bool = True
    # Only these peers may set X-Forwarded-For
    trusted_proxy_cidrs: list[str] = [
        "10.0.0.0/8",  # Load balancer / VPC
        "172.16.0.0/12",  # Docker/private
        "192.168.0.0/16",  # Local dev
        "127.0.0.0/8",
        "::1/128",
    ]
    # CORS: Allowed origins for cross-origin requests
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Marketplace limits
    batch_write_limit: int = 25
    max_invitations_per_request: int = 50
    matching_jobs_max_limit: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model

    def marketplace_config(self) -> MarketplaceConfig:
        return MarketplaceConfig(
            batch_write_limit=self.batch_write_limit,
            max_invitations_per_request=self.max_invitations_per_request,
            matching_jobs_max_limit=self.matching_jobs_max_limit,
            matching_jobs_default_limit=min(50, self.matching_jobs_max_limit),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
