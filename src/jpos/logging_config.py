from __future__ import annotations

import json
import logging
import logging.config
import shlex
from pathlib import Path

from flask import g, has_request_context, request


def split_event(message: str) -> tuple[str, dict[str, str]]:
    """Split ``"sale_committed sale_id=s1 total=10.00"`` into the event name and its fields.

    Messages that do not start with a bare event token come back as the event
    with no fields.
    """
    try:
        parts = shlex.split(message)
    except ValueError:
        return message, {}
    if not parts or "=" in parts[0]:
        return message, {}
    fields: dict[str, str] = {}
    for part in parts[1:]:
        key, sep, value = part.partition("=")
        if not sep or not key:
            return message, {}
        fields[key] = value
    return parts[0], fields


class RequestContextFilter(logging.Filter):
    """Tags records emitted while serving an HTTP request with method, path and user."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.http_method = request.method
            record.http_path = request.path
            user = g.get("current_user")
            record.user_id = user.id if user is not None else None
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        event, fields = split_event(message)
        payload = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "event": event,
            "message": message,
        }
        if fields:
            payload["fields"] = fields
        for attr, key in (("http_method", "method"), ("http_path", "path"), ("user_id", "userId")):
            value = getattr(record, attr, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _file(path: Path, level: str) -> dict:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "filename": str(path),
        "maxBytes": 2_000_000,
        "backupCount": 5,
        "encoding": "utf-8",
        "level": level,
        "formatter": "json",
        "filters": ["request"],
    }


def build_logging_config(logs_dir: Path, level: str = "INFO") -> dict:
    """dictConfig for the POS server.

    ``jpos.sales`` and ``jpos.fx`` write their own files and still reach
    ``app.log`` and ``errors.log`` through the root logger.
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request": {"()": RequestContextFilter}},
        "formatters": {
            "json": {"()": JsonFormatter, "datefmt": "%Y-%m-%d %H:%M:%S"},
            "console": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": "WARNING", "formatter": "console"},
            "app_file": _file(logs_dir / "app.log", "INFO"),
            "error_file": _file(logs_dir / "errors.log", "ERROR"),
            "sales_file": _file(logs_dir / "sales.log", "INFO"),
            "fx_file": _file(logs_dir / "fx.log", "INFO"),
        },
        "root": {"handlers": ["console", "app_file", "error_file"], "level": level},
        "loggers": {
            "jpos.sales": {"handlers": ["sales_file"], "level": "INFO"},
            "jpos.fx": {"handlers": ["fx_file"], "level": "INFO"},
            "werkzeug": {"level": "WARNING"},
        },
    }


def setup_logging(logs_dir: Path, level: str = "INFO") -> None:
    logs_dir.mkdir(parents=True, exist_ok=True)
    if logging.getLogger().handlers:
        return
    logging.config.dictConfig(build_logging_config(logs_dir, level))
