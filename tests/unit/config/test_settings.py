# tests/unit/config/test_settings.py
from __future__ import annotations

import pytest
from pydantic import ValidationError

from cached_counter.application.counter.config import DEFAULT_KEY_TEMPLATE
from cached_counter.config.settings import Environment, Settings, get_settings

DB_URL = "postgresql+asyncpg://counter:s3cret@db:5432/app"


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CACHED_COUNTER_DATABASE_URL", DB_URL)

    settings = get_settings()

    assert settings.environment is Environment.DEVELOPMENT
    assert settings.cache_backend == "redis"
    assert settings.key_template == DEFAULT_KEY_TEMPLATE
    assert settings.max_attempts == 10
    assert settings.cache_ttl_seconds is None
    assert settings.counter_models is None
    assert get_settings() is settings


def test_env_aliases_are_honored(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CACHED_COUNTER_DATABASE_URL", DB_URL)
    monkeypatch.setenv("CACHED_COUNTER_ENVIRONMENT", "production")
    monkeypatch.setenv("CACHED_COUNTER_CACHE_BACKEND", "memory")
    monkeypatch.setenv("CACHED_COUNTER_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("CACHED_COUNTER_CACHE_TTL_SECONDS", "600")
    monkeypatch.setenv("CACHED_COUNTER_KEY_TEMPLATE", "cc:{entity_type}:{entity_id}:{attribute}")

    settings = get_settings()

    assert settings.environment is Environment.PRODUCTION
    assert settings.cache_backend == "memory"
    assert settings.max_attempts == 3
    assert settings.cache_ttl_seconds == 600
    assert settings.key_template.startswith("cc:")


def test_counter_models_accepts_import_string(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CACHED_COUNTER_DATABASE_URL", DB_URL)
    monkeypatch.setenv("CACHED_COUNTER_MODELS", "os:environ")

    settings = get_settings()

    assert settings.counter_models is not None
    assert settings.counter_models["CACHED_COUNTER_DATABASE_URL"] == DB_URL


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("CACHED_COUNTER_MAX_ATTEMPTS", "0"),
        ("CACHED_COUNTER_MAX_ATTEMPTS", "101"),
        ("CACHED_COUNTER_KEY_TEMPLATE", "{entity_type}/{attribute}"),
    ],
)
def test_invalid_values_raise_runtime_error(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv("CACHED_COUNTER_DATABASE_URL", DB_URL)
    monkeypatch.setenv(name, value)

    with pytest.raises(RuntimeError, match="Invalid configuration"):
        get_settings()


def test_database_url_is_required(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CACHED_COUNTER_DATABASE_URL", raising=False)

    with pytest.raises(ValidationError):
        Settings()  # type: ignore[call-arg]


def test_masked_database_url_hides_password() -> None:
    settings = Settings(database_url=DB_URL)

    assert settings.masked_database_url() == "postgresql+asyncpg://counter:***@db:5432/app"
    assert "s3cret" not in settings.masked_database_url()
