import json
import logging
import os
from datetime import UTC, datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# Attributes present on every LogRecord; anything else came in through `extra=`.
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def level_from_string(value: Optional[str], default: str = "INFO") -> int:
    """Map a level name to a logging level, falling back to default."""
    name = (value or default).strip().upper()
    if name == "WARN":
        name = "WARNING"
    if name not in VALID_LEVELS:
        name = default
    return getattr(logging, name)


def record_attrs(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}


class SQLiteLogHandler(logging.Handler):
    """Writes log records to the store's log table."""

    def __init__(self, store, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self.store = store

    def emit(self, record: logging.LogRecord) -> None:
        # Store records are written while the store may hold a write lock
        if record.name.startswith("solarplant.store"):
            return
        try:
            attrs = record_attrs(record)
            self.store.save_log_entry(
                timestamp=datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                level=record.levelname,
                logger_name=record.name,
                message=record.getMessage(),
                attrs=json.dumps(attrs, default=str) if attrs else None,
            )
        except Exception:
            self.handleError(record)


def setup_logging(config: Optional[Dict[str, Any]] = None, store=None) -> None:
    """Configure console, JSON file rotation and optional SQLite logging."""
    log_cfg = (config or {}).get("logging", {}) or {}
    log_level = level_from_string(os.environ.get("LOG_LEVEL") or log_cfg.get("console_level"))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # 1. Console Handler (Simple format)
    console_handler = logging.StreamHandler()
    console_formatter = logging.Formatter("%(levelname)s:\t%(name)s - %(message)s")
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    # 2. File Handler (JSON, Timed Rotation)
    log_file = log_cfg.get("file")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            log_path, when="midnight", interval=1, backupCount=7, encoding="utf-8"
        )
        json_formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s %(module)s %(lineno)d"
        )
        file_handler.setFormatter(json_formatter)
        root_logger.addHandler(file_handler)

    # 3. SQLite Handler
    if store is not None:
        db_level = level_from_string(log_cfg.get("db_level"))
        root_logger.addHandler(SQLiteLogHandler(store, level=db_level))

    logging.getLogger("solarplant").setLevel(log_level)
