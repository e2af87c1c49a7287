"""Configuration loading utilities."""

import json
import os
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

from taxbridge.config.schema import Config

# Plain env vars from the earlier Node deployment; they win over the file.
LEGACY_ENV_VARS: dict[str, tuple[str, str]] = {
    "MCP_MODE": ("bridge", "mode"),
    "MCP_PATH": ("bridge", "server_path"),
    "MCP_URL": ("bridge", "url"),
    "MCP_TIMEOUT": ("bridge", "timeout_seconds"),
    "PORT": ("server", "port"),
    "ALLOWED_ORIGINS": ("server", "allowed_origins"),
}


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".taxbridge" / "config.json"


def get_data_dir() -> Path:
    """Get the taxbridge data directory."""
    path = Path.home() / ".taxbridge"
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration, falling back to defaults when the file does not exist.

    Order of precedence: legacy env vars (MCP_PATH, PORT, ...), then the JSON
    file, then TAXBRIDGE_* settings, then field defaults.

    Raises:
        ValueError: the file is not valid JSON or fails validation.
    """
    path = config_path or get_config_path()
    data: dict[str, Any] = {}

    if path.is_file():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Config file {path} is not valid JSON: {e}") from e
        if isinstance(raw, dict):
            data = convert_keys(raw)

    _apply_legacy_env_vars(data)
    try:
        return Config(**data)
    except ValueError as e:
        raise ValueError(f"Invalid config in {path}: {e}") from e


def _apply_legacy_env_vars(data: dict[str, Any], environ: dict[str, str] | None = None) -> None:
    """Overlay MCP_PATH / MCP_URL / PORT style env vars onto raw config data (in place)."""
    env = os.environ if environ is None else environ
    for var, (section, key) in LEGACY_ENV_VARS.items():
        value = env.get(var)
        if value is None or not value.strip():
            continue
        value = value.strip()
        target = data.setdefault(section, {})
        if key == "allowed_origins":
            target[key] = [item.strip() for item in value.split(",") if item.strip()]
        elif key == "mode":
            target[key] = value.lower()
        else:
            target[key] = value


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Write config as camelCase JSON and drop its cache entry."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(convert_to_camel(config.model_dump()), indent=2) + "\n", encoding="utf-8")

    from taxbridge.config.access import clear_config_cache

    clear_config_cache(config_path=path)


# Mappings whose keys are environment variable names, copied verbatim.
_OPAQUE_KEYS = frozenset({"env"})

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _rename_keys(data: Any, rename: Callable[[str], str]) -> Any:
    if isinstance(data, list):
        return [_rename_keys(item, rename) for item in data]
    if not isinstance(data, dict):
        return data
    renamed: dict[str, Any] = {}
    for key, value in data.items():
        new_key = rename(key)
        if new_key in _OPAQUE_KEYS and isinstance(value, dict):
            renamed[new_key] = dict(value)
        else:
            renamed[new_key] = _rename_keys(value, rename)
    return renamed


def convert_keys(data: Any) -> Any:
    """camelCase keys (on disk) to snake_case (pydantic fields); bridge.env keys untouched."""
    return _rename_keys(data, camel_to_snake)


def convert_to_camel(data: Any) -> Any:
    return _rename_keys(data, snake_to_camel)


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)
