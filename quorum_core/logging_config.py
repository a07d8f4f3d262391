"""
Logging setup for Quorum.

Two output formats:
  - **human** – coloured single line; records about a schedule carry a
    ``[schedule_id]`` tag so interleaved signer threads stay readable
  - **json**  – newline-delimited JSON with ``schedule_id`` / ``member``
    as top-level keys for log aggregators

Registry and gateway code attach context with
``logger.info(..., extra={"schedule_id": sid})``.

Usage:
    from quorum_core.logging_config import configure_logging
    configure_logging(cfg.logging)
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from quorum_core.config import LoggingConfig

CONTEXT_FIELDS = ("schedule_id", "member")

# third-party loggers that flood INFO with per-request lines
_NOISY_LOGGERS = ("aiohttp.access",)


def _context(record: logging.LogRecord) -> dict[str, str]:
    return {
        name: str(getattr(record, name))
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class _JSONFormatter(logging.Formatter):
    """One JSON object per record, schedule context flattened in."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        log_obj.update(_context(record))
        if record.exc_info and record.exc_info[1]:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)


class _HumanFormatter(logging.Formatter):
    """Coloured single-line format with an optional schedule tag."""

    COLOURS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(self, colour: bool = True):
        super().__init__()
        self.colour = colour

    def format(self, record: logging.LogRecord) -> str:
        colour = self.COLOURS.get(record.levelname, "") if self.colour else ""
        reset = self.RESET if self.colour else ""
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        sid = getattr(record, "schedule_id", None)
        tag = f" [{sid}]" if sid else ""
        line = (
            f"{colour}{ts} [{record.levelname:<7}]{reset} "
            f"{record.name}{tag}: {record.getMessage()}"
        )
        if record.exc_info and record.exc_info[1]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    fmt: str = "human",
    log_file: Optional[str] = None,
) -> None:
    """
    Configure the root logger.

    Parameters
    ----------
    level : str
        One of DEBUG, INFO, WARNING, ERROR, CRITICAL.
    fmt : str
        ``"human"`` or ``"json"``; anything else raises ``ValueError``.
    log_file : str, optional
        Also write records here, always as JSON.
    """
    if fmt not in ("human", "json"):
        raise ValueError(f"Unknown log format: {fmt!r}")
    numeric = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        console.setFormatter(_JSONFormatter())
    else:
        console.setFormatter(_HumanFormatter(colour=sys.stderr.isatty()))
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path))
        fh.setFormatter(_JSONFormatter())
        root.addHandler(fh)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.DEBUG if numeric <= logging.DEBUG else logging.WARNING
        )


def configure_logging(cfg: LoggingConfig) -> None:
    """Apply a ``[logging]`` config section."""
    setup_logging(cfg.level, cfg.format, cfg.file)
