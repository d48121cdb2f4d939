import shutil
from functools import lru_cache
from pathlib import Path

import yaml

from .lib import paths

DEFAULTS = {
    "default_project": "default",
    "db_file": "todust.db",
    "log_level": "warning",
}

LOG_LEVELS = ("debug", "info", "warning", "error")


def get_default_config_path() -> Path:
    return paths.package_root() / "config.yaml"


def config_file(root: Path | None = None) -> Path:
    """Return config file path in the data directory."""
    return paths.config_file(root)


def _validate_config(cfg: dict) -> None:
    """Validate config structure. Fail fast on invalid types."""
    if not isinstance(cfg, dict):
        raise ValueError(f"Config must be a dict, got {type(cfg).__name__}")

    for key in DEFAULTS:
        if key in cfg and not isinstance(cfg[key], str):
            raise ValueError(f"Config '{key}' must be a string")

    if "default_project" in cfg and not cfg["default_project"].strip():
        raise ValueError("Config 'default_project' cannot be empty")

    level = cfg.get("log_level")
    if level is not None and level.lower() not in LOG_LEVELS:
        raise ValueError(f"Config 'log_level' must be one of {', '.join(LOG_LEVELS)}")


def clear_cache():
    load_config.cache_clear()


@lru_cache(maxsize=4)
def load_config(root: Path | None = None) -> dict:
    """Load config.yaml, returning its content or an empty dict if not found."""
    path = config_file(root)
    if not path.exists():
        return {}
    with open(path) as f:
        cfg = yaml.safe_load(f) or {}
    _validate_config(cfg)
    return cfg


def settings(root: Path | None = None) -> dict:
    """Config values layered over DEFAULTS."""
    return {**DEFAULTS, **load_config(root)}


def init_config(root: Path | None = None) -> None:
    """Initialize config.yaml in the data directory from defaults if missing."""
    target = config_file(root)
    if target.exists():
        return

    target.parent.mkdir(parents=True, exist_ok=True)

    default_config_path = get_default_config_path()
    if not default_config_path.exists():
        raise FileNotFoundError(f"Default config not found at {default_config_path}")

    shutil.copy(default_config_path, target)
    clear_cache()
