import pytest
from pydantic import ValidationError

from userapi.app.core.config import Settings


def test_defaults(monkeypatch) -> None:
    for name in ("THROTTLE_TTL", "THROTTLE_LIMIT", "MAX_BODY_SIZE", "NODE_ENV", "APP_ENV"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.throttle_ttl == 60000
    assert settings.throttle_limit == 10
    assert settings.max_body_size_bytes == 10 * 1024 * 1024
    assert settings.app_env == "development"
    assert settings.docs_enabled is True


def test_throttle_and_body_size_from_env(monkeypatch) -> None:
    monkeypatch.setenv("THROTTLE_TTL", "1000")
    monkeypatch.setenv("THROTTLE_LIMIT", "5")
    monkeypatch.setenv("MAX_BODY_SIZE", "512kb")

    settings = Settings(_env_file=None)

    assert settings.throttle_ttl == 1000
    assert settings.throttle_limit == 5
    assert settings.max_body_size_bytes == 512 * 1024


def test_node_env_alias_disables_docs_in_production(monkeypatch) -> None:
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.setenv("NODE_ENV", "production")

    settings = Settings(_env_file=None)

    assert settings.app_env == "production"
    assert settings.docs_enabled is False


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("THROTTLE_LIMIT", "0"),
        ("THROTTLE_TTL", "-1"),
        ("MAX_BODY_SIZE", "lots"),
        ("MAX_BODY_SIZE", "0"),
        ("HEALTH_DISK_THRESHOLD", "1.5"),
        ("THROTTLE_STORE_TIMEOUT", "0"),
    ],
)
def test_invalid_values_fail_fast(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_database_url_is_built_with_encoded_password(monkeypatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("DATABASE_HOST", "db")
    monkeypatch.setenv("DATABASE_PASSWORD", "p@ss:word")

    settings = Settings(_env_file=None)

    assert settings.database_url == "postgresql+asyncpg://postgres:p%40ss%3Aword@db:5432/myapp"


def test_database_url_override_wins(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./app.db")

    settings = Settings(_env_file=None)

    assert settings.database_url == "sqlite+aiosqlite:///./app.db"


def test_api_prefix_is_stripped(monkeypatch) -> None:
    monkeypatch.setenv("API_PREFIX", "/v1/")

    assert Settings(_env_file=None).api_prefix == "v1"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('["http://localhost:5173"]', ["http://localhost:5173"]),
        ("http://a.example, http://b.example", ["http://a.example", "http://b.example"]),
        ("*", ["*"]),
        ("[]", []),
        ("", []),
    ],
)
def test_cors_origins_parsing_variants(monkeypatch, raw: str, expected: list[str]) -> None:
    monkeypatch.setenv("CORS_ORIGINS", raw)

    settings = Settings(_env_file=None)
    assert settings.cors_origins == expected
