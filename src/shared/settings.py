"""Runtime configuration, sourced from the environment (and an optional .env file).

Everything here is read once at process start and never mutated afterwards.
Tax rate and tax registration number are deliberately *not* configurable; they
live in ``ordering.order.vat``.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEV_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

DEFAULT_SITE_URL = "https://originbythesea.com"


def find_env_file() -> str:
    """Find .env file - check local dir, then project root."""
    local_env = Path(".env")
    root_env = Path("../.env")

    if local_env.exists():
        return str(local_env)
    elif root_env.exists():
        return str(root_env)
    return ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str | None = None

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""

    # SMTP
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    MAIL_FROM_NAME: str = "Origins By The Sea"

    # Comma separated; the first entry is the public storefront
    FRONTEND_URL: str = ""

    # Firestore
    STORE_BACKEND: str = Field(default="firestore", pattern="^(firestore|memory)$")
    FIREBASE_SERVICE_ACCOUNT: str = ""
    FIREBASE_SERVICE_ACCOUNT_PATH: str = ""
    FIREBASE_PROJECT_ID: str = ""

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in ("production", "staging")

    @property
    def frontend_urls(self) -> list[str]:
        return [url.strip().rstrip("/") for url in self.FRONTEND_URL.split(",") if url.strip()]

    @property
    def cors_origins(self) -> list[str]:
        origins = list(self.frontend_urls)
        for origin in _DEV_ORIGINS:
            if origin not in origins:
                origins.append(origin)
        return origins

    @property
    def public_site_url(self) -> str:
        urls = self.frontend_urls
        return urls[0] if urls else DEFAULT_SITE_URL

    @property
    def mail_sender(self) -> str:
        return self.SMTP_USER or "no-reply@originbythesea.com"


@lru_cache
def get_settings() -> Settings:
    return Settings()
