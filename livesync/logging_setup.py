"""Centralized logging configuration with daily rotation and JSONL output."""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
from pathlib import Path
from typing import Any, Optional

from flask import g, has_request_context, request


_LOG_CONFIGURED = False
_RUN_LOGGER_NAME = "livesync.runs"
_REQUEST_LOGGER_NAME = "livesync.api"
_ROOT_DIR = Path(__file__).resolve().parents[1]
_DEFAULT_LOG_DIR = _ROOT_DIR / "logs"
_DEFAULT_COMPONENT = os.getenv("LOG_COMPONENT", "livesync")
_MAX_MESSAGE_LENGTH = int(os.getenv("LOG_MAX_MESSAGE_LENGTH", "2000"))
_MAX_STACK_LENGTH = int(os.getenv("LOG_MAX_STACK_LENGTH", "8000"))


def _log_dir() -> Path:
    resolved = Path(os.getenv("LOG_DIR", _DEFAULT_LOG_DIR))
    resolved.mkdir(parents=True, exist_ok=True)
    return resolved


def _resolve_level() -> int:
    level_name = (os.getenv("LOG_LEVEL") or "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _truncate(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    if limit <= 0 or len(value) <= limit:
        return value
    return f"{value[:limit]}…[truncated {len(value) - limit} chars]"


def _safe_meta(record: logging.LogRecord) -> Optional[dict[str, Any]]:
    meta = getattr(record, "meta", None)
    if meta is None:
        return None
    if isinstance(meta, dict):
        try:
            json.dumps(meta)
            return meta
        except TypeError:
            return {"repr": repr(meta)}
    return {"value": repr(meta)}


class CorrelationIdFilter(logging.Filter):
    """Ensures every log record carries a correlation_id attribute.

    Records emitted from inside a sync run carry the run id; records emitted
    while serving a request fall back to the request trace id.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - standard signature
        if getattr(record, "correlation_id", None):
            return True
        correlation_id: Optional[str] = getattr(record, "run_id", None)
        if correlation_id is None and has_request_context():
            correlation_id = (
                request.headers.get("X-Correlation-Id")
                or getattr(g, "correlation_id", None)
                or getattr(g, "trace_id", None)
            )
        record.correlation_id = correlation_id
        return True


class JsonlFormatter(logging.Formatter):
    """Formatter that renders each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - override signature
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%d %H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "component": getattr(record, "component", _DEFAULT_COMPONENT),
            "correlation_id": getattr(record, "correlation_id", None),
            "message": _truncate(record.getMessage(), _MAX_MESSAGE_LENGTH),
        }
        if record.exc_info:
            payload["stack"] = _truncate(self.formatException(record.exc_info), _MAX_STACK_LENGTH)
        meta = _safe_meta(record)
        if meta:
            payload["meta"] = meta
        return json.dumps(payload, ensure_ascii=False)


class PlainFormatter(logging.Formatter):
    """Formatter used for the human-readable rotating log and the console."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - override signature
        timestamp = self.formatTime(record, datefmt="%Y-%m-%d %H:%M:%S")
        correlation_id = getattr(record, "correlation_id", None)
        message = _truncate(record.getMessage(), _MAX_MESSAGE_LENGTH) or ""
        parts = [timestamp, f"[{record.levelname}]", f"({record.name})"]
        if correlation_id:
            parts.append(f"cid={correlation_id}")
        rendered = f"{' '.join(parts)} {message}"
        if record.exc_info:
            rendered = f"{rendered}\n{_truncate(self.formatException(record.exc_info), _MAX_STACK_LENGTH)}"
        return rendered


def _build_namer(extension: str):
    def _rename(default_name: str) -> str:
        path = Path(default_name)
        parts = path.name.split(".")
        if len(parts) >= 3:
            return str(path.with_name(f"{parts[0]}-{parts[-1]}.{extension}"))
        return str(path)

    return _rename


def _build_rotating_handler(filename: str, extension: str, formatter: logging.Formatter, level: int) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=_log_dir() / filename,
        when="midnight",
        interval=1,
        backupCount=14,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"
    handler.namer = _build_namer(extension)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())
    return handler


def _build_console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(PlainFormatter())
    handler.addFilter(CorrelationIdFilter())
    return handler


def setup_logging(*, console: bool = False) -> None:
    """Initialize the logging stack exactly once."""

    global _LOG_CONFIGURED
    if _LOG_CONFIGURED:
        return

    level = _resolve_level()
    handlers = [
        _build_rotating_handler("livesync.log", "log", PlainFormatter(), level),
        _build_rotating_handler("livesync.jsonl", "jsonl", JsonlFormatter(), level),
    ]
    if console:
        handlers.append(_build_console_handler(level))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = handlers

    logging.captureWarnings(True)
    # urllib3 retries and connection churn are noise at INFO.
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))

    _LOG_CONFIGURED = True


def get_run_logger() -> logging.Logger:
    """Return the logger that mirrors per-run log entries."""

    return logging.getLogger(_RUN_LOGGER_NAME)


def get_request_logger() -> logging.Logger:
    """Return the logger used for per-request summaries."""

    return logging.getLogger(_REQUEST_LOGGER_NAME)


__all__ = ["setup_logging", "get_request_logger", "get_run_logger"]
