# cuemap/config.py

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

DEFAULT_URL = "http://localhost:8080"
DEFAULT_TIMEOUT_MS = 30000

ENV_URL = "CUEMAP_URL"
ENV_API_KEY = "CUEMAP_API_KEY"
ENV_PROJECT_ID = "CUEMAP_PROJECT_ID"
ENV_TIMEOUT_MS = "CUEMAP_TIMEOUT_MS"


@dataclass(frozen=True)
class ClientContext:
    """Resolved, read-only connection settings held by one client instance."""

    url: str = DEFAULT_URL
    api_key: Optional[str] = None
    project_id: Optional[str] = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


@dataclass
class ClientConfig:
    """User-facing configuration; every field is optional.

    Pass this to `resolve_context` (or a client constructor) to obtain a
    `ClientContext` with defaults applied.
    """

    url: Optional[str] = None
    api_key: Optional[str] = None
    project_id: Optional[str] = None
    timeout_ms: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ClientConfig":
        timeout = data.get("timeout_ms")
        return cls(
            url=data.get("url") or None,
            api_key=data.get("api_key") or None,
            project_id=data.get("project_id") or None,
            timeout_ms=_parse_timeout(timeout) if timeout not in (None, "") else None,
        )

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = ".env") -> "ClientConfig":
        """Build a config from environment variables.

        - CUEMAP_URL: base URL of the engine
        - CUEMAP_API_KEY: optional API key
        - CUEMAP_PROJECT_ID: optional project (tenant) identifier
        - CUEMAP_TIMEOUT_MS: per-request timeout in milliseconds

        Values from `env_file` (a .env-style file) are used only for keys that
        are not already present in os.environ. os.environ is never modified.
        """
        values: Dict[str, str] = read_env_file(env_file) if env_file else {}
        values.update(
            {k: v for k, v in os.environ.items() if k.startswith("CUEMAP_")}
        )
        return cls.from_mapping(
            {
                "url": values.get(ENV_URL),
                "api_key": values.get(ENV_API_KEY),
                "project_id": values.get(ENV_PROJECT_ID),
                "timeout_ms": values.get(ENV_TIMEOUT_MS),
            }
        )


def resolve_context(config: Optional[ClientConfig] = None) -> ClientContext:
    """Apply defaults to `config` and freeze the result.

    No I/O and no validation happen here; a malformed URL only surfaces on the
    first request that tries to use it.
    """
    if config is None:
        config = ClientConfig()

    url = (config.url or DEFAULT_URL).rstrip("/")
    # Zero or negative would disarm the deadline, so treat it as unset.
    timeout_ms = config.timeout_ms if config.timeout_ms and config.timeout_ms > 0 else DEFAULT_TIMEOUT_MS

    return ClientContext(
        url=url,
        api_key=config.api_key or None,
        project_id=config.project_id or None,
        timeout_ms=timeout_ms,
    )


def read_env_file(path: Union[str, Path]) -> Dict[str, str]:
    """Parse key=value pairs from a .env-style file.

    - Lines starting with '#' or empty lines are ignored.
    - The first '=' splits key and value; surrounding quotes are stripped.
    - A missing or unreadable file yields an empty dict.
    """
    env_path = Path(path)
    if not env_path.is_file():
        return {}

    try:
        content = env_path.read_text(encoding="utf-8")
    except OSError:
        return {}

    values: Dict[str, str] = {}
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export "):].strip()
        if not key:
            continue
        values[key] = value.strip().strip("'\"")
    return values


def load_config_file(path: Union[str, Path]) -> ClientConfig:
    """Load a ClientConfig from a YAML file (see cuemap.example.yaml)."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"No CueMap configuration found at {config_path}. "
            "Create one based on cuemap.example.yaml."
        )

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{config_path} must contain a YAML mapping, got {type(data).__name__}")

    return ClientConfig.from_mapping(data)


def _parse_timeout(value: Any) -> int:
    try:
        timeout = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"timeout_ms must be an integer number of milliseconds, got {value!r}") from None
    if timeout <= 0:
        raise ValueError(f"timeout_ms must be positive, got {timeout}")
    return timeout
