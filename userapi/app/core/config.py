import json
import re
from typing import Annotated, Any, Literal
from urllib.parse import quote_plus

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from userapi.app.core.utils import parse_size


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate plain comma/space separated values.
    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]

    origins: list[str] = []
    for part in re.split(r"[,\s]+", raw):
        if not part:
            continue
        if part == "*":
            return ["*"]
        if part not in origins:
            origins.append(part)
    return origins


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Application
    app_env: Literal["development", "production", "test", "staging"] = Field(
        default="development",
        validation_alias=AliasChoices("APP_ENV", "NODE_ENV", "app_env"),
    )
    debug: bool = False
    port: int = 3000
    api_prefix: str = "api"
    max_body_size: str = "10mb"  # bytes-style size string, e.g. "512kb"

    # CORS
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    # Database settings
    database_host: str = "localhost"
    database_port: int = 5432
    database_user: str = "postgres"
    database_password: str = ""
    database_name: str = "myapp"
    database_logging: bool = False

    # Connection pool settings
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_pool_timeout: int = 30
    database_pool_recycle: int = 300

    # Explicit DATABASE_URL (takes priority over database_* settings)
    database_url_override: str = Field(default="", validation_alias="DATABASE_URL")

    # Redis settings (optional shared throttle store)
    redis_enabled: bool = False
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""

    # Throttling settings
    throttle_ttl: int = 60000  # window length in milliseconds
    throttle_limit: int = 10  # requests per window
    throttle_max_entries: int = 10000
    throttle_store_timeout: float = 0.5
    throttle_fail_closed: bool = False  # deny requests when the store is down

    # Health check thresholds
    health_memory_rss: int = 150 * 1024 * 1024
    health_disk_threshold: float = 0.9
    health_disk_path: str = "/"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @property
    def database_url(self) -> str:
        """Build database connection URL.

        Priority:
        1. database_url_override (from DATABASE_URL env var or .env file)
        2. Built from database_* settings
        """
        if self.database_url_override:
            return self.database_url_override

        # URL-encode password to handle special characters
        password = quote_plus(self.database_password)
        return (
            f"postgresql+asyncpg://{self.database_user}:{password}@"
            f"{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def redis_url(self) -> str:
        auth = f":{quote_plus(self.redis_password)}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/0"

    @property
    def max_body_size_bytes(self) -> int:
        return parse_size(self.max_body_size)

    @property
    def docs_enabled(self) -> bool:
        return self.app_env != "production"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator("max_body_size")
    @classmethod
    def validate_max_body_size(cls, v: str) -> str:
        """Validate the size string parses to a positive byte count."""
        if parse_size(v) < 1:
            raise ValueError("max_body_size must be at least 1 byte")
        return v

    @field_validator("throttle_ttl", "throttle_limit", "throttle_max_entries")
    @classmethod
    def validate_throttle_positive(cls, v: int) -> int:
        """Validate throttle values are positive."""
        if v < 1:
            raise ValueError("Throttle values must be at least 1")
        return v

    @field_validator("throttle_store_timeout")
    @classmethod
    def validate_store_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("throttle_store_timeout must be positive")
        return v

    @field_validator("health_disk_threshold")
    @classmethod
    def validate_disk_threshold(cls, v: float) -> float:
        """Validate disk threshold is a ratio."""
        if not 0 <= v <= 1:
            raise ValueError("health_disk_threshold must be between 0 and 1")
        return v

    @field_validator("api_prefix")
    @classmethod
    def strip_api_prefix(cls, v: str) -> str:
        return v.strip("/")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
