"""Editor configuration.

Settings come from ``DEFAULT_CONFIG`` overlaid with an optional
``gridsheet.yaml`` found in the directory of the open document (or the
working directory for a new one)::

    saved_notice_delay: 2.5
    log_dir: .gridsheet/logs
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "gridsheet.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "saved_notice_delay": 5.0,  # seconds the "saved" notice stays up
    "file_extension": ".sprd",
    "default_filename": "Untitled",
    "spreadsheet_version": "ps6",
    "log_dir": ".gridsheet/logs",  # relative to the config directory; null disables
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}

_TYPES: dict[str, tuple[type, ...]] = {
    "saved_notice_delay": (int, float),
    "file_extension": (str,),
    "default_filename": (str,),
    "spreadsheet_version": (str,),
    "log_dir": (str, type(None)),
    "logging_fsync": (bool,),
    "logging_tail_bytes": (int,),
}


def config_dir_for(document: Path | None) -> Path:
    """Directory whose ``gridsheet.yaml`` applies to *document*."""
    if document is None:
        return Path.cwd()
    return Path(document).resolve().parent


def load_config(directory: Path) -> dict[str, Any]:
    """Load configuration for *directory*, merged over the defaults.

    Unknown keys are kept as-is.

    Raises:
        ValueError: If the file is not a mapping or a known key has the
            wrong type.
    """
    config = dict(DEFAULT_CONFIG)
    path = Path(directory) / CONFIG_FILENAME
    if not path.exists():
        return config

    user_config = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(user_config, dict):
        raise ValueError(f"{path}: expected a mapping of settings")

    for key, value in user_config.items():
        expected = _TYPES.get(key)
        # bool is an int subclass; only accept it where bool is expected
        bad_bool = isinstance(value, bool) and bool not in (expected or ())
        if expected is not None and (bad_bool or not isinstance(value, expected)):
            names = "/".join(t.__name__ for t in expected)
            raise ValueError(f"{path}: {key!r} must be {names}, got {value!r}")
        config[key] = value

    if config["saved_notice_delay"] < 0:
        raise ValueError(f"{path}: 'saved_notice_delay' must not be negative")
    return config


def resolve_log_dir(config: dict[str, Any], directory: Path) -> Path | None:
    """Absolute event-log directory, or None when logging is disabled."""
    log_dir = config.get("log_dir")
    if not log_dir:
        return None
    path = Path(log_dir).expanduser()
    return path if path.is_absolute() else Path(directory) / path
