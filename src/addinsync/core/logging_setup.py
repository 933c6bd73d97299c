"""Logging configuration for sync runs.

Console output keeps the short ``LEVEL: message`` format used by the CLI
scripts. On top of that, every run appends to three daily files so info,
warning and error events can be audited separately::

    logs/2026-10-16_info.log
    logs/2026-10-16_warning.log
    logs/2026-10-16_error.log
"""

import logging
from datetime import date
from pathlib import Path

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# (stream name, lowest level, highest level)
SEVERITY_STREAMS = [
    ("info", logging.DEBUG, logging.INFO),
    ("warning", logging.WARNING, logging.WARNING),
    ("error", logging.ERROR, logging.CRITICAL),
]

NOISY_LOGGERS = [
    "httpx",
    "azure.identity",
    "azure.core.pipeline.policies.http_logging_policy",
]

_installed: list[logging.Handler] = []


class LevelRangeFilter(logging.Filter):
    """Pass only records whose level falls within [min_level, max_level]."""

    def __init__(self, min_level: int, max_level: int) -> None:
        super().__init__()
        self.min_level = min_level
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return self.min_level <= record.levelno <= self.max_level


def daily_log_path(log_dir: Path, stream: str, day: date | None = None) -> Path:
    """Return the log file path for a severity stream on a given day."""
    day = day or date.today()
    return log_dir / f"{day.isoformat()}_{stream}.log"


def configure_logging(
    log_dir: Path | str | None = None,
    verbose: bool = False,
    day: date | None = None,
) -> list[Path]:
    """Configure the root logger for a sync run.

    Args:
        log_dir: Directory for the daily severity files. If None, console only.
        verbose: Include DEBUG records (no-op targets, skipped groups)
        day: Override the calendar day used in file names

    Returns:
        Paths of the log files being written
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Replace handlers from any earlier call in this process
    while _installed:
        handler = _installed.pop()
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)
    _installed.append(console)

    # Silence verbose HTTP request logging
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if log_dir is None:
        return []

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for stream, min_level, max_level in SEVERITY_STREAMS:
        path = daily_log_path(log_dir, stream, day)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handler.addFilter(LevelRangeFilter(min_level, max_level))
        root.addHandler(handler)
        _installed.append(handler)
        paths.append(path)

    return paths
