"""
Configuration management for Callboard.

Loads settings from ~/.callboard/settings.json and provides
typed access to all configurable values.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any

log = logging.getLogger("callboard.config")


class Config:
    """Manages Callboard configuration and directory structure."""

    def __init__(self, base_dir: Path | str | None = None) -> None:
        if base_dir is not None:
            self.base_dir = Path(base_dir).expanduser()
        else:
            env_dir = os.getenv("CALLBOARD_DIR")
            self.base_dir = Path(env_dir).expanduser() if env_dir else Path.home() / ".callboard"

        # Sub-directories
        self.log_dir = self.base_dir / "log"
        self.events_dir = self.base_dir / "events"
        self.agents_dir = self.base_dir / "agents"

        self.settings_file = self.base_dir / "settings.json"

        self._ensure_dirs()
        self._settings: dict[str, Any] = self._load_settings()

    def _ensure_dirs(self) -> None:
        for d in [self.base_dir, self.log_dir, self.events_dir, self.agents_dir]:
            d.mkdir(parents=True, exist_ok=True)

    def _default_settings(self) -> dict[str, Any]:
        return {
            "version": "1.0.0",
            "created_at": datetime.now().isoformat(),
            "server": {"host": "0.0.0.0", "port": 8000},
            "logging": {"level": "INFO", "keep": 30, "levels": {}},
            "events": {
                "seed_tail_lines": 500,
                "max_seen_keys": 5000,
                "source_cap": 10000,
            },
            "watcher": {"poll_interval_ms": 3000, "max_backoff_ms": 60000},
        }

    def _load_settings(self) -> dict[str, Any]:
        if self.settings_file.exists():
            try:
                data = json.loads(self.settings_file.read_text())
                # Merge with defaults (adds any missing keys)
                defaults = self._default_settings()
                return self._deep_merge(defaults, data)
            except (OSError, ValueError) as e:
                log.warning("Failed to read %s, using defaults: %s", self.settings_file, e)
        return self._default_settings()

    def _deep_merge(self, base: dict, override: dict) -> dict:
        result = base.copy()
        for k, v in override.items():
            if k in result and isinstance(result[k], dict) and isinstance(v, dict):
                result[k] = self._deep_merge(result[k], v)
            else:
                result[k] = v
        return result

    def save(self) -> None:
        self.settings_file.write_text(json.dumps(self._settings, indent=2))

    def get(self, key_path: str, default: Any = None) -> Any:
        """Dot-notation access. e.g. config.get('events.max_seen_keys')"""
        parts = key_path.split(".")
        val: Any = self._settings
        for part in parts:
            if not isinstance(val, dict) or part not in val:
                return default
            val = val[part]
        return val

    def set(self, key_path: str, value: Any, save: bool = True) -> None:
        parts = key_path.split(".")
        d = self._settings
        for part in parts[:-1]:
            d = d.setdefault(part, {})
        d[parts[-1]] = value
        if save:
            self.save()

    @property
    def log_level(self) -> str:
        return str(self.get("logging.level", "INFO")).upper()

    @property
    def log_keep(self) -> int:
        return int(self.get("logging.keep", 30))

    @property
    def log_levels(self) -> dict[str, str]:
        """Per-area overrides, e.g. {"dispatch": "DEBUG"} for callboard.dispatch."""
        levels = self.get("logging.levels", {})
        return {str(k): str(v) for k, v in levels.items()} if isinstance(levels, dict) else {}

    @property
    def dev_mode(self) -> bool:
        return os.getenv("DEV_MODE", "").lower() in ("1", "true", "yes")

    @property
    def seed_tail_lines(self) -> int:
        return int(self.get("events.seed_tail_lines", 500))

    @property
    def max_seen_keys(self) -> int:
        return int(self.get("events.max_seen_keys", 5000))

    @property
    def source_cap(self) -> int:
        return int(self.get("events.source_cap", 10000))

    @property
    def poll_interval(self) -> float:
        """Watcher poll interval in seconds. EVENT_WATCHER_POLL_INTERVAL (ms) wins."""
        env_ms = os.getenv("EVENT_WATCHER_POLL_INTERVAL")
        if env_ms and env_ms.isdigit():
            return int(env_ms) / 1000
        return int(self.get("watcher.poll_interval_ms", 3000)) / 1000

    @property
    def max_backoff(self) -> float:
        return int(self.get("watcher.max_backoff_ms", 60000)) / 1000

    @property
    def host(self) -> str:
        return str(self.get("server.host", "0.0.0.0"))

    @property
    def port(self) -> int:
        return int(self.get("server.port", 8000))

    def __repr__(self) -> str:
        return f"Config(base_dir={str(self.base_dir)!r})"


# Module-level singleton
_config: Config | None = None


def get_config(base_dir: Path | str | None = None) -> Config:
    global _config
    if _config is None:
        _config = Config(base_dir)
    return _config


def reset_config() -> None:
    """Reset singleton, for testing."""
    global _config
    _config = None
