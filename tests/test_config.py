from pathlib import Path

import pytest

from socialsync.config import Settings, get_settings


def test_defaults_point_at_local_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SOCIALSYNC_API_BASE_URL", raising=False)
    monkeypatch.delenv("SOCIALSYNC_SOCKET_URL", raising=False)
    monkeypatch.delenv("SOCIALSYNC_SOCKET_TRANSPORTS", raising=False)

    settings = Settings(_env_file=None)

    assert settings.api_base_url == "http://localhost:3000"
    assert settings.resolved_socket_url == "http://localhost:3000"
    assert settings.transports == ["websocket", "polling"]
    assert settings.http_timeout is None


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SOCIALSYNC_API_BASE_URL", "https://api.example.com/")
    monkeypatch.setenv("SOCIALSYNC_SOCKET_URL", "wss://rt.example.com/")
    monkeypatch.setenv("SOCIALSYNC_SOCKET_TRANSPORTS", "websocket")
    monkeypatch.setenv("SOCIALSYNC_LOG_LEVEL", "debug")
    monkeypatch.setenv("SOCIALSYNC_POLL_INTERVAL", "5")
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.resolved_socket_url == "wss://rt.example.com"
    assert settings.transports == ["websocket"]
    assert settings.log_level == "DEBUG"
    assert settings.poll_interval == 5.0


def test_settings_are_cached() -> None:
    assert get_settings() is get_settings()


def test_token_path_follows_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SOCIALSYNC_TOKEN_PATH", str(tmp_path / "other.json"))
    get_settings.cache_clear()

    assert get_settings().token_path == tmp_path / "other.json"


def test_invalid_poll_interval_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SOCIALSYNC_POLL_INTERVAL", "0")

    with pytest.raises(ValueError):
        Settings(_env_file=None)
