from __future__ import annotations

import logging
import os
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import NamedTuple

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
PACKAGE_LOGGER = "multi_llm_judge"


class RotationLimits(NamedTuple):
    max_bytes: int
    max_age_hours: int
    backups: int


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def rotation_limits() -> RotationLimits:
    """Read log rotation limits from ``MULTI_LLM_JUDGE_LOG_*``; zero disables a limit."""
    return RotationLimits(
        max_bytes=_env_int("MULTI_LLM_JUDGE_LOG_MAX_BYTES", 5 * 1024 * 1024),
        max_age_hours=_env_int("MULTI_LLM_JUDGE_LOG_MAX_AGE_HOURS", 24),
        backups=_env_int("MULTI_LLM_JUDGE_LOG_MAX_FILES", 5),
    )


def _is_stale(path: Path, max_age_hours: int) -> bool:
    if max_age_hours <= 0 or not path.is_file() or path.stat().st_size == 0:
        return False
    return time.time() - path.stat().st_mtime >= max_age_hours * 3600


def file_handler(log_file: Path, limits: RotationLimits | None = None) -> RotatingFileHandler:
    """Size-rotated handler for ``log_file``; a file older than the age limit is rolled over first."""
    limits = limits or rotation_limits()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    stale = _is_stale(log_file, limits.max_age_hours)
    handler = RotatingFileHandler(
        log_file,
        maxBytes=max(limits.max_bytes, 0),
        backupCount=max(limits.backups, 0),
        encoding="utf-8",
    )
    if stale:
        handler.doRollover()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def configure_logging(level: str = "WARNING", log_file: Path | None = None) -> None:
    """Set up the package logger: stderr always, plus a rotated file when asked."""
    root = logging.getLogger(PACKAGE_LOGGER)
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    stream = logging.StreamHandler()
    stream.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(stream)

    if log_file is not None:
        root.addHandler(file_handler(log_file))
