"""
Configuration management for the Storefront order API.

Loads settings from .env via pydantic-settings.

Notes:
    - validate_production_settings() enforces strict CORS and a JWT secret in production
    - supported_locales bounds which status-label locales the API will serve
"""
import logging
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.enums import Locale

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/storefront.db"

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"

    # ── Auth (JWT) ──────────────────────────────────────────────────
    jwt_secret: str = ""
    jwt_issuer: str = "storefront-api"
    jwt_access_ttl_minutes: int = 60

    # ── Localization ────────────────────────────────────────────────
    default_locale: str = "en"
    supported_locales: str = "en,ja,vi"

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def supported_locales_list(self) -> List[str]:
        return [loc.strip().lower() for loc in self.supported_locales.split(",") if loc.strip()]

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup. Raises ValueError on unsafe production
        settings; in other environments only logs warnings.
        """
        known = {loc.value for loc in Locale}
        unknown = [loc for loc in self.supported_locales_list if loc not in known]
        if unknown:
            raise ValueError(
                f"SUPPORTED_LOCALES lists locale(s) without status labels: {', '.join(unknown)}. "
                f"Available: {', '.join(sorted(known))}."
            )

        if self.default_locale.strip().lower() not in self.supported_locales_list:
            raise ValueError(
                f"DEFAULT_LOCALE '{self.default_locale}' is not listed in SUPPORTED_LOCALES "
                f"({self.supported_locales})."
            )

        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if not self.jwt_secret:
                raise ValueError(
                    "JWT_SECRET must be set in production. "
                    "It is used to sign access tokens."
                )
            logger.info("Production settings validated")
        else:
            warnings = []
            if not self.jwt_secret:
                warnings.append("JWT_SECRET is empty (authenticated endpoints will fail)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"⚠️  {w}")


# Global settings instance
settings = Settings()
