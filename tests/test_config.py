from __future__ import annotations

from pathlib import Path

import pytest

from app.config import DEFAULT_PORT, Settings, load_settings


def test_defaults_without_environment() -> None:
    settings = load_settings({})

    assert settings.host == "0.0.0.0"
    assert settings.port == DEFAULT_PORT
    assert settings.api_url == f"http://localhost:{DEFAULT_PORT}"
    assert settings.database_path.name == "users.sqlite3"
    assert settings.database_path.parent.name == "data"


def test_environment_overrides(tmp_path: Path) -> None:
    db_path = tmp_path / "env.sqlite3"

    settings = load_settings(
        {
            "HOST": "127.0.0.1",
            "PORT": "8080",
            "API_URL": "https://users.example.com/",
            "USERS_DB_PATH": str(db_path),
        }
    )

    assert settings.host == "127.0.0.1"
    assert settings.port == 8080
    assert settings.api_url == "https://users.example.com"
    assert settings.database_path == db_path.resolve()


def test_api_url_follows_port_when_unset() -> None:
    settings = load_settings({"PORT": "4000"})

    assert settings.api_url == "http://localhost:4000"


def test_yaml_file_supplies_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "users.yaml"
    config_path.write_text(
        "port: 5000\n"
        "api_url: https://api.example.com\n"
        "database_path: db/users.sqlite3\n",
        encoding="utf-8",
    )

    settings = load_settings({"USERS_CONFIG_PATH": str(config_path)})

    assert settings.port == 5000
    assert settings.api_url == "https://api.example.com"
    assert settings.database_path == (tmp_path / "db" / "users.sqlite3").resolve()


def test_environment_wins_over_yaml_file(tmp_path: Path) -> None:
    config_path = tmp_path / "users.yaml"
    config_path.write_text("port: 5000\nhost: 10.0.0.1\n", encoding="utf-8")

    settings = load_settings({"USERS_CONFIG_PATH": str(config_path), "PORT": "6000"})

    assert settings.port == 6000
    assert settings.host == "10.0.0.1"


def test_empty_yaml_file_is_accepted(tmp_path: Path) -> None:
    config_path = tmp_path / "users.yaml"
    config_path.write_text("", encoding="utf-8")

    settings = load_settings({"USERS_CONFIG_PATH": str(config_path)})

    assert settings.port == DEFAULT_PORT


def test_non_mapping_yaml_file_is_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "users.yaml"
    config_path.write_text("- port\n- 3000\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_settings({"USERS_CONFIG_PATH": str(config_path)})


@pytest.mark.parametrize("raw_port", ["abc", "0", "70000"])
def test_invalid_port_is_rejected(raw_port: str) -> None:
    with pytest.raises(ValueError):
        load_settings({"PORT": raw_port})


def test_overrides_move_default_api_url_with_port(tmp_path: Path) -> None:
    base = Settings(
        host="0.0.0.0",
        port=3000,
        api_url="http://localhost:3000",
        database_path=tmp_path / "users.sqlite3",
    )

    moved = base.with_overrides(port=9000)
    assert moved.port == 9000
    assert moved.api_url == "http://localhost:9000"

    explicit = base.with_overrides(port=9000, api_url="https://public.example.com/")
    assert explicit.api_url == "https://public.example.com"

    assert base.with_overrides() == base


def test_overrides_keep_configured_api_url(tmp_path: Path) -> None:
    base = Settings(
        host="0.0.0.0",
        port=3000,
        api_url="https://public.example.com",
        database_path=tmp_path / "users.sqlite3",
    )

    assert base.with_overrides(port=9000, host="127.0.0.1").api_url == "https://public.example.com"
