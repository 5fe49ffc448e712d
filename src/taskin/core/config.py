"""Configuration management for Taskin.

This module handles loading and saving server configuration to/from a JSON
file. The config directory can be customized via CLI argument.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .validation import ValidationError

logger = logging.getLogger(__name__)

__all__ = ["Config", "DEFAULT_CONFIG_DIR"]

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "taskin"

LOG_LEVELS = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


def _default_config(config_dir: Path) -> Dict[str, Any]:
    return {
        "database_file": str(config_dir / "taskin.db"),
        "log_level": "INFO",
        "server": {
            "host": "127.0.0.1",
            "port": 8080,
        },
        "sync": {
            "default_lookback_days": 7,
            "far_past_years": 10,
        },
    }


class Config:
    """Manages server configuration stored in JSON format.

    Attributes:
        config_dir: Path to the configuration directory
        config_file: Path to config.json inside config_dir
    """

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        """Initialize configuration manager.

        Args:
            config_dir: Custom config directory path. If None, uses ~/.config/taskin/
        """
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file = self.config_dir / "config.json"
        self.config_data = self.load_config()

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from file, creating it with defaults if missing.

        Keys missing from the file are filled from the defaults; sections
        ("server", "sync") are merged key by key.
        """
        defaults = _default_config(self.config_dir)

        if not self.config_file.exists():
            self.save_config(defaults)
            return defaults

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {self.config_file}: {e}. Using defaults.")
            return defaults

        if not isinstance(loaded, dict):
            logger.warning(f"Ignoring {self.config_file}: top level must be an object")
            return defaults

        merged = copy.deepcopy(defaults)
        for key, value in loaded.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key].update(value)
            else:
                merged[key] = value
        return merged

    def save_config(self, config: Optional[Dict[str, Any]] = None) -> None:
        """Write configuration to file."""
        data = config if config is not None else self.config_data
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a top-level configuration value."""
        return self.config_data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a top-level configuration value and save to file."""
        self.config_data[key] = value
        self.save_config()

    def get_database_file(self) -> Path:
        """Get the SQLite database path."""
        return Path(self.config_data["database_file"])

    def get_log_level(self) -> str:
        """Get the logging level name."""
        level = str(self.config_data.get("log_level", "INFO")).upper()
        return level if level in LOG_LEVELS else "INFO"

    # ===== Server Configuration Methods =====

    def get_server_host(self) -> str:
        """Get the HTTP server bind address."""
        return self.config_data["server"].get("host", "127.0.0.1")

    def get_server_port(self) -> int:
        """Get the HTTP server port."""
        return int(self.config_data["server"].get("port", 8080))

    def set_server_port(self, port: int) -> None:
        """Set the HTTP server port."""
        if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
            raise ValidationError("port", f"must be an integer between 1 and 65535, got {port!r}")
        self.config_data["server"]["port"] = port
        self.save_config()

    # ===== Sync Configuration Methods =====

    def get_default_lookback_days(self) -> int:
        """Days covered by a changes-since query without a timestamp."""
        return int(self.config_data["sync"].get("default_lookback_days", 7))

    def get_far_past_years(self) -> int:
        """Years covered by a delta sync without lastSyncAt."""
        return int(self.config_data["sync"].get("far_past_years", 10))
