# tests/test_settings.py
"""Tests for environment-driven configuration."""

import pytest
from pydantic import ValidationError

from murmur.core.settings import Settings


def _env(monkeypatch: pytest.MonkeyPatch, **values: str) -> None:
    for name in ("MURMUR_SERVICE_URL", "MURMUR_ANON_KEY", "SECRET_KEY"):
        monkeypatch.delenv(name, raising=False)
    for name, value in values.items():
        monkeypatch.setenv(name, value)


def test_settings_load_required_values(monkeypatch: pytest.MonkeyPatch) -> None:
    _env(
        monkeypatch,
        MURMUR_SERVICE_URL="https://murmur.example.com/",
        MURMUR_ANON_KEY="anon",
        SECRET_KEY="s3cret",
    )
    loaded = Settings(_env_file=None)
    assert loaded.service_base_url == "https://murmur.example.com"
    assert loaded.anon_key == "anon"
    assert loaded.feed_page_size == 5


@pytest.mark.parametrize("missing", ["MURMUR_SERVICE_URL", "MURMUR_ANON_KEY", "SECRET_KEY"])
def test_settings_fail_fast_without_required_value(
    monkeypatch: pytest.MonkeyPatch, missing: str
) -> None:
    values = {
        "MURMUR_SERVICE_URL": "https://murmur.example.com",
        "MURMUR_ANON_KEY": "anon",
        "SECRET_KEY": "s3cret",
    }
    values.pop(missing)
    _env(monkeypatch, **values)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_settings_reject_blank_anon_key(monkeypatch: pytest.MonkeyPatch) -> None:
    _env(
        monkeypatch,
        MURMUR_SERVICE_URL="https://murmur.example.com",
        MURMUR_ANON_KEY="   ",
        SECRET_KEY="s3cret",
    )
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_database_url_sync_swaps_async_driver(monkeypatch: pytest.MonkeyPatch) -> None:
    _env(
        monkeypatch,
        MURMUR_SERVICE_URL="https://murmur.example.com",
        MURMUR_ANON_KEY="anon",
        SECRET_KEY="s3cret",
        DATABASE_URL="postgresql+asyncpg://u:p@db/murmur",
    )
    loaded = Settings(_env_file=None)
    assert loaded.database_url_sync == "postgresql+psycopg://u:p@db/murmur"
