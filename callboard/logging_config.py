"""
Logging setup for Callboard.

Every process start writes to its own file under log/, and only the newest
`logging.keep` files are kept. Areas can be turned up on their own through
`logging.levels` in settings.json, e.g.

    "logging": {"level": "INFO", "levels": {"dispatch": "DEBUG", "events": "DEBUG"}}

traces trigger matching and duplicate skips without debug noise elsewhere.
Only the `callboard` logger is touched; the host's root logger is left alone.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import Config

NAMESPACE = "callboard"
LINE_FMT = "%(asctime)s %(levelname)-7s %(name)-9s %(message)s"
DATE_FMT = "%Y-%m-%dT%H:%M:%S"

log = logging.getLogger("callboard.config")


class AreaFormatter(logging.Formatter):
    """Shows `dispatch` instead of `callboard.dispatch`; optional ANSI colour."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: bool = False) -> None:
        super().__init__(fmt=LINE_FMT, datefmt=DATE_FMT)
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy: the same record goes to the file and the console
        record = logging.makeLogRecord(record.__dict__)
        if record.name.startswith(NAMESPACE + "."):
            record.name = record.name[len(NAMESPACE) + 1:]
        if self.color and record.levelname in self.COLORS:
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return super().format(record)


def _parse_level(name: str) -> int | None:
    level = getattr(logging, str(name).upper(), None)
    return level if isinstance(level, int) else None


def prune_logs(log_dir: Path, keep: int) -> list[Path]:
    """Delete the oldest log files so that `keep` remain after a new one is added."""
    existing = sorted(log_dir.glob("*.log"))
    removed = []
    for old in existing[: max(0, len(existing) - keep + 1)]:
        try:
            old.unlink()
        except OSError as e:
            log.warning("Could not remove old log  file=%s error=%s", old.name, e)
            continue
        removed.append(old)
    return removed


def configure_logging(config: "Config") -> Path:
    """Attach file (and dev console) handlers to the callboard logger. Returns the log file."""
    log_dir = config.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    removed = prune_logs(log_dir, config.log_keep)

    # pid suffix keeps two starts in the same second apart
    log_file = log_dir / f"{datetime.now():%Y-%m-%d_%H%M%S}-{os.getpid()}.log"

    # Handlers pass everything; levels live on the loggers so overrides can go lower
    handlers: list[logging.Handler] = [logging.FileHandler(log_file, encoding="utf-8")]
    handlers[0].setFormatter(AreaFormatter())
    if config.dev_mode:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(AreaFormatter(color=True))
        handlers.append(console)

    root = logging.getLogger(NAMESPACE)
    for h in root.handlers:
        h.close()
    root.handlers[:] = handlers
    root.propagate = False

    bad = []
    level = _parse_level(config.log_level)
    if level is None:
        bad.append(("level", config.log_level))
        level = logging.INFO
    root.setLevel(level)

    for area, name in config.log_levels.items():
        area_level = _parse_level(name)
        if area_level is None:
            bad.append((area, name))
            continue
        logging.getLogger(f"{NAMESPACE}.{area}").setLevel(area_level)

    for key, name in bad:
        log.warning("Unknown log level ignored  key=%s level=%s", key, name)
    if removed:
        log.debug("Pruned old logs  count=%d", len(removed))
    return log_file
