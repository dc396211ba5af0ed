from __future__ import annotations
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
import contextvars

"""
Shared logging setup for the backend and chatbot services.

- init_logging(): configure the root logger once per process
- get_logger(name): named logger, initializing on first use
- request id contextvar, attached to every record by ContextFilter
- console handler for humans, rotating JSON file handler for machines
"""


request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)

# LogRecord attributes that are never copied into the JSON payload as extras
_RESERVED = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "message", "taskName", "request_id",
    "request_id_part",
))


def set_request_id(rid: Optional[str]) -> None:
    request_id.set(rid)


def clear_request_id() -> None:
    request_id.set(None)


class ContextFilter(logging.Filter):
    """Copy the current request id onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id.get()
        return True


class ConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        rid = getattr(record, "request_id", None)
        record.request_id_part = f" [request_id={rid}]" if rid else ""
        return super().format(record)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, extras included."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "funcName": record.funcName,
            "line": record.lineno,
            "request_id": getattr(record, "request_id", None),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key in _RESERVED or key in payload:
                continue
            try:
                json.dumps(value)
                payload[key] = value
            except (TypeError, ValueError):
                payload[key] = str(value)
        return json.dumps(payload, ensure_ascii=False)


def _default_log_dir() -> Path:
    # backend/utils/logger.py -> repository root is two parents up
    return Path(os.getenv("LOG_DIR", Path(__file__).resolve().parents[2] / "logs"))


def init_logging(
    *,
    level: Optional[int] = None,
    log_dir: Optional[Path] = None,
    filename: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Configure the root logger. Calling it again replaces the handlers.

    - level: defaults to the LOG_LEVEL env var, then INFO
    - log_dir / filename: where the rotating JSON log goes (LOG_DIR, LOG_FILE)
    - LOG_TO_FILE=0 disables the file handler entirely
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    env_level = os.getenv("LOG_LEVEL", "INFO").upper()
    chosen_level = level if level is not None else getattr(logging, env_level, logging.INFO)
    root.setLevel(chosen_level)

    context_filter = ContextFilter()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(chosen_level)
    console.setFormatter(ConsoleFormatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s%(request_id_part)s",
        "%Y-%m-%d %H:%M:%S",
    ))
    console.addFilter(context_filter)
    root.addHandler(console)

    if os.getenv("LOG_TO_FILE", "1") == "0":
        return

    log_dir = Path(log_dir) if log_dir is not None else _default_log_dir()
    filename = filename or os.getenv("LOG_FILE", "mindmate.log")
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            str(log_dir / filename),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(chosen_level)
        file_handler.setFormatter(JsonFormatter())
        file_handler.addFilter(context_filter)
        root.addHandler(file_handler)
    except OSError:
        # Console logging keeps working when the log directory is not writable
        root.warning("Failed to initialize file handler for logging; continuing with console only", exc_info=True)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if not logging.getLogger().handlers:
        init_logging()
    return logging.getLogger(name)
