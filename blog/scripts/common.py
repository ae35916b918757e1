"""Shared plumbing for the command line entry points."""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import date, datetime, timezone
import logging
import os
from pathlib import Path


def configure_logging() -> None:
    """Configure root logging based on ``DEVBLOG_LOG_LEVEL``."""

    level_name = os.getenv("DEVBLOG_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def default_config_path() -> Path:
    return Path(os.getenv("DEVBLOG_CONFIG", "site.yaml"))


def json_default(o):
    if isinstance(o, (datetime, date)):
        if isinstance(o, datetime) and o.tzinfo is None:
            o = o.replace(tzinfo=timezone.utc)
        return o.isoformat()
    if is_dataclass(o):
        return asdict(o)
    if isinstance(o, Path):
        return o.as_posix()
    if isinstance(o, set):
        return sorted(o)
    return str(o)
