"""Configuration management for the user directory service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .database import resolve_database_path

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP service."""

    host: str
    port: int
    api_url: str
    database_path: Path

    def with_overrides(
        self,
        *,
        host: Optional[str] = None,
        port: Optional[int] = None,
        api_url: Optional[str] = None,
    ) -> "Settings":
        """Return a copy with command-line overrides applied.

        When the port changes and no explicit API URL was configured, the
        advertised URL follows the new port.
        """
        updated = self
        if host:
            updated = replace(updated, host=host)
        if port is not None:
            if self.api_url == _default_api_url(self.port) and not api_url:
                updated = replace(updated, api_url=_default_api_url(port))
            updated = replace(updated, port=_validate_port(port))
        if api_url:
            updated = replace(updated, api_url=api_url.rstrip("/"))
        return updated


def _default_api_url(port: int) -> str:
    return f"http://localhost:{port}"


def _validate_port(value: object) -> int:
    try:
        port = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid port value: {value!r}") from exc
    if not 1 <= port <= 65535:
        raise ValueError(f"Port must be between 1 and 65535, got {port}")
    return port


def load_config_file(config_path: Path) -> Dict[str, object]:
    """Load settings from a YAML file.

    A relative ``database_path`` is resolved against the file's directory.
    """
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping of settings")

    data: Dict[str, object] = dict(raw)
    database_path = data.get("database_path")
    if database_path:
        candidate = Path(str(database_path)).expanduser()
        if not candidate.is_absolute():
            candidate = config_path.parent / candidate
        data["database_path"] = str(candidate.resolve(strict=False))
    return data


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from the environment and an optional YAML file."""

    env = os.environ if environ is None else environ

    file_values: Dict[str, object] = {}
    config_path = env.get("USERS_CONFIG_PATH")
    if config_path:
        file_values = load_config_file(Path(config_path).expanduser())

    host = env.get("HOST") or str(file_values.get("host") or DEFAULT_HOST)

    raw_port = env.get("PORT") or file_values.get("port") or DEFAULT_PORT
    port = _validate_port(raw_port)

    api_url = env.get("API_URL") or file_values.get("api_url") or _default_api_url(port)

    raw_db_path = env.get("USERS_DB_PATH") or file_values.get("database_path")
    database_path = resolve_database_path(str(raw_db_path) if raw_db_path else None)

    return Settings(
        host=host.strip(),
        port=port,
        api_url=str(api_url).strip().rstrip("/"),
        database_path=database_path,
    )


__all__ = ["DEFAULT_HOST", "DEFAULT_PORT", "Settings", "load_config_file", "load_settings"]
