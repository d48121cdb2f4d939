import os
from pathlib import Path


def data_dir() -> Path:
    override = os.environ.get("TODUST_DATADIR")
    if override:
        return Path(override).expanduser()
    xdg_data = os.environ.get("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data).expanduser() / "todust"
    return Path.home() / ".local" / "share" / "todust"


def package_root() -> Path:
    return Path(__file__).resolve().parent.parent


def migrations_dir() -> Path:
    return package_root() / "migrations"


def config_file(root: Path | None = None) -> Path:
    """Return config file path inside the data directory."""
    return (root or data_dir()) / "config.yaml"
