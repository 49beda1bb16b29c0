import os
from dataclasses import dataclass, field
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = "postgresql://postgres:postgres@db:5432/postgres"
    secret_key: str = "dev_change_me"
    access_token_ttl_seconds: int = 60 * 60 * 24
    multi_tenant: bool = True
    default_tenant: str = "default"
    auto_create_schema: bool = True
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = "INFO"
    log_format: str = "json"
    default_currency: str = "USD"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            secret_key=os.getenv("JWT_SECRET") or os.getenv("SECRET_KEY") or cls.secret_key,
            access_token_ttl_seconds=int(
                os.getenv("ACCESS_TOKEN_TTL_SECONDS", cls.access_token_ttl_seconds)
            ),
            multi_tenant=_env_bool("MULTI_TENANT", cls.multi_tenant),
            default_tenant=os.getenv("DEFAULT_TENANT", cls.default_tenant),
            auto_create_schema=_env_bool("AUTO_CREATE_SCHEMA", cls.auto_create_schema),
            cors_origins=_env_list("CORS_ORIGINS", ["http://localhost:3000"]),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            log_format=os.getenv("LOG_FORMAT", cls.log_format),
            default_currency=os.getenv("DEFAULT_CURRENCY", cls.default_currency),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
