"""Logging configuration for the harvester.

Console output for humans, plus a daily JSONL file that keeps structured
run events (brand progress, item failures, key/proxy rotation) for later
inspection.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

__all__ = [
    "setup_logging",
    "get_logger",
    "log_scrape_event",
    "new_run_id",
    "JSONLFileHandler",
    "LOG_DIR",
]

ROOT_LOGGER = "gsmscrape"

LOG_DIR = Path(__file__).parent.parent / "logs"


class JSONLFileHandler(logging.Handler):
    """Writes one JSON object per record into a per-day file.

    Entries carry the run_id they were logged under, so one day's file
    can hold several runs and still be split per run.
    """

    def __init__(self, log_dir: Path, prefix: str = ROOT_LOGGER, run_id: Optional[str] = None):
        super().__init__()
        self.log_dir = log_dir
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.prefix = prefix
        self.run_id = run_id

    def log_file(self) -> Path:
        return self.log_dir / f"{self.prefix}_{datetime.now().strftime('%Y%m%d')}.jsonl"

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry: Dict[str, Any] = {
                "timestamp": datetime.now().isoformat(),
                "run_id": self.run_id,
                "level": record.levelname,
                "logger": record.name,
                "thread": record.threadName,
                "message": record.getMessage(),
            }
            if hasattr(record, "event_type"):
                entry["event_type"] = record.event_type
            if hasattr(record, "extra_data"):
                entry.update(record.extra_data)

            with open(self.log_file(), "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        except Exception:
            self.handleError(record)


def new_run_id() -> str:
    """Identifier for one harvest run, e.g. '20240101-120000'."""
    return datetime.now().strftime("%Y%m%d-%H%M%S")


class ColoredConsoleHandler(logging.StreamHandler):
    """Console handler that colors the level name on terminals."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if hasattr(self.stream, "isatty") and self.stream.isatty():
            color = self.COLORS.get(record.levelname, "")
            if color:
                message = message.replace(
                    f"[{record.levelname}]", f"[{color}{record.levelname}{self.RESET}]", 1
                )
        return message


def setup_logging(
    level: int = logging.INFO,
    log_to_file: bool = True,
    log_to_console: bool = True,
    log_dir: Optional[Path] = None,
    run_id: Optional[str] = None,
) -> logging.Logger:
    """Set up logging for the harvester.

    Args:
        level: Console logging level (default: INFO)
        log_to_file: Whether to write the JSONL event file
        log_to_console: Whether to log to stdout
        log_dir: Custom log directory (default: project logs/)
        run_id: Stamped on every JSONL entry (see new_run_id)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if log_to_file else level)
    logger.handlers.clear()
    logger.propagate = False

    if log_to_console:
        console_handler = ColoredConsoleHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S")
        )
        logger.addHandler(console_handler)

    if log_to_file:
        file_handler = JSONLFileHandler(log_dir or LOG_DIR, run_id=run_id)
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Get a logger under the package namespace ('listing' -> 'gsmscrape.listing')."""
    if name == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def log_scrape_event(
    event_type: str,
    data: Dict[str, Any],
    level: int = logging.INFO,
    logger_name: str = ROOT_LOGGER,
) -> None:
    """Log a structured event.

    Args:
        event_type: Type of event (e.g. 'brand_start', 'item_failed')
        data: Event fields; an optional 'message' key becomes the log message
        level: Log level
        logger_name: Logger to use
    """
    logger = get_logger(logger_name)
    if not logger.isEnabledFor(level):
        return

    record = logger.makeRecord(
        logger.name,
        level,
        "(gsmscrape)",
        0,
        data.get("message", event_type),
        (),
        None,
    )
    record.event_type = event_type
    record.extra_data = {k: v for k, v in data.items() if k != "message"}
    logger.handle(record)
