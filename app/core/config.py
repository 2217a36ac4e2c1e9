# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Env vars (.env):
      - DATABASE_URL (SQLite file by default, Postgres in deployments)
      - CATALOG_SERVICE_URL (product catalog base URL)

    Identity verification (one of):
      - IDENTITY_SERVICE_URL (remote token validation service)
      - IDENTITY_JWT_SECRET (verify HS256 tokens locally)

    Internal RPC:
      - RPC_SHARED_SECRET (shared secret expected in X-Internal-Token)
    """

    PROJECT_NAME: str = "Cart Service"
    API_V1_STR: str = "/api/v1"
    RPC_PREFIX: str = "/rpc"

    DATABASE_URL: str = "sqlite:///./cart.db"

    # Product catalog
    CATALOG_SERVICE_URL: str = "http://localhost:5002"
    CATALOG_TIMEOUT_SECONDS: float = 5.0

    # Identity verification
    IDENTITY_SERVICE_URL: str | None = None
    IDENTITY_TIMEOUT_SECONDS: float = 5.0
    IDENTITY_JWT_SECRET: str | None = None
    IDENTITY_JWT_ALG: str = "HS256"

    # Internal RPC callers must send this in X-Internal-Token.
    # Unset => the RPC surface rejects every call.
    RPC_SHARED_SECRET: str | None = None

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
