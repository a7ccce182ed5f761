"""Syncwatch configuration file (TOML) loading and validation."""
from __future__ import annotations
import logging
import os
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger("syncwatch.config")

CONFIG_NAME = "syncwatch.toml"
REQUIRED_KEYS = ("enable_on_start", "server_url", "name", "room_name")


class ConfigError(Exception):
    """The configuration file is missing, unreadable or invalid."""


@dataclass
class SyncwatchConfig:
    enable_on_start: bool = False
    server_url: str = ""
    name: str = ""
    room_name: str = ""
    toggle_key: str = "alt+y"  # "" disables the binding
    settle_delay_ms: int = 500

    def validate(self) -> list[str]:
        errors = []
        if not isinstance(self.enable_on_start, bool):
            errors.append("enable_on_start must be true or false")
        for key in ("server_url", "name", "room_name"):
            value = getattr(self, key)
            if not isinstance(value, str) or not value:
                errors.append(f"{key} must be a non-empty string")
        if not isinstance(self.toggle_key, str):
            errors.append("toggle_key must be a string")
        if isinstance(self.settle_delay_ms, bool) or not isinstance(self.settle_delay_ms, int) \
                or self.settle_delay_ms < 0:
            errors.append("settle_delay_ms must be a non-negative integer")
        return errors


def default_config_path() -> Path:
    """mpv's config directory for the current platform."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    return base / "mpv" / CONFIG_NAME


def load_config(path: Optional[Path] = None) -> SyncwatchConfig:
    """Load and validate a syncwatch.toml file."""
    path = path or default_config_path()
    logger.debug("Looking for config file at: %s", path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e

    missing = [key for key in REQUIRED_KEYS if key not in data]
    if missing:
        raise ConfigError(f"Config file {path} is missing: {', '.join(missing)}")

    config = SyncwatchConfig(
        enable_on_start=data["enable_on_start"],
        server_url=data["server_url"],
        name=data["name"],
        room_name=data["room_name"],
        toggle_key=data.get("toggle_key", "alt+y"),
        settle_delay_ms=data.get("settle_delay_ms", 500),
    )
    errors = config.validate()
    if errors:
        raise ConfigError(f"Invalid config file {path}: " + "; ".join(errors))

    logger.debug("Loaded config: %s", config)
    return config
