from __future__ import annotations

import pytest

from auth_service.config import Settings, get_settings
from auth_service.errors import ConfigurationError

from conftest import SECRET


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _set_required(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", SECRET)
    monkeypatch.setenv("JWT_ACCESS_TTL_SECONDS", "900")
    monkeypatch.setenv("JWT_REFRESH_TTL_SECONDS", "604800")


def test_settings_from_env(monkeypatch):
    _set_required(monkeypatch)
    monkeypatch.setenv("RATE_LIMIT_BACKEND", "REDIS")

    settings = get_settings()

    assert settings.access_ttl_seconds == 900
    assert settings.refresh_ttl_seconds == 604800
    assert settings.jwt_issuer == "edubridge.auth"
    assert settings.rate_limit_backend == "redis"


@pytest.mark.parametrize("missing", ["JWT_SECRET", "JWT_ACCESS_TTL_SECONDS", "JWT_REFRESH_TTL_SECONDS"])
def test_missing_required_setting_is_fatal(monkeypatch, missing):
    _set_required(monkeypatch)
    monkeypatch.delenv(missing)

    with pytest.raises(ConfigurationError, match=missing):
        Settings.from_env()


def test_non_integer_ttl_is_fatal(monkeypatch):
    _set_required(monkeypatch)
    monkeypatch.setenv("JWT_ACCESS_TTL_SECONDS", "fifteen minutes")

    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_short_secret_is_fatal():
    with pytest.raises(ConfigurationError):
        Settings(jwt_secret="short", access_ttl_seconds=60, refresh_ttl_seconds=60)


def test_secret_is_not_in_repr():
    settings = Settings(jwt_secret=SECRET, access_ttl_seconds=60, refresh_ttl_seconds=60)

    assert SECRET not in repr(settings)
