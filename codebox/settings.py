"""Load codebox settings from <config dir>/settings.yaml."""

import os
from pathlib import Path
from typing import Any

import yaml

CONFIG_DIR_ENV = "CODEBOX_HOME"

_DEFAULTS: dict[str, Any] = {
    "registry": {
        "file": "projects.json",
    },
    "project_config": {
        "dir": ".codespin",
        "file": "codebox.json",
    },
    "docker": {
        "binary": "docker",
        "mount_path": "/home/project",
        "max_buffer_bytes": 10 * 1024 * 1024,
        "timeout_seconds": 600,
        "network": None,
    },
    "batch": {
        # No overall deadline unless configured; each command still has docker.timeout_seconds.
        "timeout_seconds": None,
    },
    "logging": {
        "file": "logs/codebox.log",
        "level": "INFO",
        "log_to_console": False,
        "max_bytes": 10485760,  # 10 MB
        "backup_count": 3,
        # Per-library levels, applied after the root level
        "loggers": {
            "mcp": "WARNING",
        },
    },
}

_cached: dict[str, Any] | None = None


def get_config_dir() -> Path:
    """Directory holding settings.yaml, the project registry and logs.

    $CODEBOX_HOME wins; otherwise ~/.codespin (shared with the per-project config dir name).
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser().resolve()
    return Path.home() / ".codespin"


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base recursively. Mutates base."""
    for key, value in overlay.items():
        if value is None:
            continue
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def get_default_settings() -> dict[str, Any]:
    """Return a deep copy of default settings."""
    return _deep_copy_nested(_DEFAULTS)


def get_setting(settings: dict[str, Any], path: str, default: Any = None) -> Any:
    """Get a nested value by dot path (e.g. 'docker.mount_path')."""
    current: Any = settings
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def reload_settings() -> None:
    """Clear the settings cache. Call after settings.yaml or CODEBOX_HOME changes."""
    global _cached
    _cached = None


def load_settings(config_dir: Path | None = None) -> dict[str, Any]:
    """Load settings from settings.yaml. Returns merged defaults + file values."""
    global _cached
    if _cached is not None:
        return _cached

    if config_dir is None:
        config_dir = get_config_dir()
    path = config_dir / "settings.yaml"

    result = get_default_settings()

    if path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                _deep_merge(result, data)
        except (yaml.YAMLError, OSError):
            pass

    _cached = result
    return result


def _deep_copy_nested(obj: Any) -> Any:
    """Return a deep copy of nested dicts/lists for defaults."""
    if isinstance(obj, dict):
        return {k: _deep_copy_nested(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_deep_copy_nested(x) for x in obj]
    return obj
