"""
Tests for settings validation.
"""

import pytest
from pydantic import ValidationError
from storefront.config import Settings

VALID = {
    "DB_URL": "sqlite+aiosqlite:///./x.db",
    "JWT_SECRET_KEY": "k" * 32,
}


def build(**overrides) -> Settings:
    return Settings(**{**VALID, **overrides})


def test_defaults():
    settings = build()

    assert settings.APP_PORT == 3000
    assert settings.RATE_LIMIT_WINDOW_SECONDS == 60
    assert settings.RATE_LIMIT_MAX_REQUESTS == 100
    assert settings.JWT_EXPIRATION_MINUTES == 1440
    assert settings.is_sqlite is True


def test_plain_postgres_url_uses_async_driver():
    settings = build(DB_URL="postgresql://u:p@localhost/db")

    assert settings.DB_URL == "postgresql+asyncpg://u:p@localhost/db"
    assert settings.is_sqlite is False


@pytest.mark.parametrize("overrides", [
    {"DB_URL": "mysql://u:p@localhost/db"},
    {"JWT_SECRET_KEY": "short"},
    {"BCRYPT_SALT_ROUNDS": 3},
    {"BCRYPT_SALT_ROUNDS": 32},
    {"RATE_LIMIT_MAX_REQUESTS": 0},
    {"RATE_LIMIT_WINDOW_SECONDS": 0},
])
def test_invalid_settings_rejected(overrides):
    with pytest.raises(ValidationError):
        build(**overrides)


def test_cors_origins_parsing():
    settings = build(CORS_ORIGINS="http://a.test, http://b.test ,")

    assert settings.get_cors_origins() == ["http://a.test", "http://b.test"]
