import json
from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173"]


def _parse_list(v: Any, default: List[str] | None = None) -> List[str]:
    """Accept a list, a JSON list string or a comma-separated string."""
    fallback = list(default or [])
    try:
        if v is None or v == "":
            return fallback
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return fallback
        if s.startswith("["):
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or fallback
        return [x.strip() for x in s.split(",") if x.strip()] or fallback
    except ValueError:
        return fallback


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="credit_billing", alias="MONGODB_DB_NAME")

    # Clerk (identity provider)
    clerk_webhook_secret: str = Field(default="", alias="CLERK_WEBHOOK_SECRET")
    clerk_jwks_url: str = Field(default="", alias="CLERK_JWKS_URL")
    clerk_issuer: str | None = Field(default=None, alias="CLERK_ISSUER")
    clerk_authorized_parties_raw: str = Field(
        default="",
        alias="CLERK_AUTHORIZED_PARTIES",
        description="Comma-separated or JSON list of allowed azp values",
    )
    jwt_leeway_seconds: int = Field(default=5, alias="JWT_LEEWAY_SECONDS")

    # Razorpay
    razorpay_key_id: str = Field(default="", alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: str = Field(default="", alias="RAZORPAY_KEY_SECRET")
    razorpay_webhook_secret: str = Field(default="", alias="RAZORPAY_WEBHOOK_SECRET")
    currency: str = Field(default="INR", alias="CURRENCY")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_list(self.cors_origins_raw, _DEFAULT_CORS)

    @property
    def clerk_authorized_parties(self) -> List[str]:
        return _parse_list(self.clerk_authorized_parties_raw)


@lru_cache
def get_settings() -> Settings:
    return Settings()
