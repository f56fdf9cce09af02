from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping

from loguru import logger
from opentelemetry import trace


# Attributes every stdlib LogRecord carries; anything else arrived via `extra=`.
_STDLIB_RECORD_FIELDS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}

# Device-addressable values never leave the process in clear text.
_REDACTED_FIELDS = frozenset({"push_token", "recipient", "device_id"})


class InterceptHandler(logging.Handler):
    """Forward uvicorn, SQLAlchemy and alembic records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - bridging glue
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        try:
            message = record.getMessage()
        except (TypeError, ValueError):  # pragma: no cover - malformed format strings
            message = str(record.msg)

        extra = {key: value for key, value in record.__dict__.items() if key not in _STDLIB_RECORD_FIELDS}
        bound = logger.bind(**extra) if extra else logger
        bound.opt(depth=6, exception=record.exc_info).log(level, message.replace("{", "{{").replace("}", "}}"))


def _mask(value: Any) -> Any:
    if not isinstance(value, str) or not value:
        return value
    return f"...{value[-4:]}" if len(value) > 8 else "***"


class JsonLogSink:
    """One JSON object per line, enriched with service metadata and the active span."""

    def __init__(self, metadata: Mapping[str, str]) -> None:
        self._metadata = dict(metadata)

    def __call__(self, message: "logger.Message") -> None:
        print(json.dumps(self.build(message.record), default=str))

    def build(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "timestamp": record["time"].isoformat(),
            "level": record["level"].name.lower(),
            "message": record["message"],
            "logger": record["name"],
            **self._metadata,
        }

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            payload["trace_id"] = f"{span_context.trace_id:032x}"
            payload["span_id"] = f"{span_context.span_id:016x}"

        for key, value in record["extra"].items():
            payload[key] = _mask(value) if key in _REDACTED_FIELDS else value

        if record["exception"] is not None:
            payload["exception"] = repr(record["exception"].value)
        return payload


def configure_logging(*, service_name: str, environment: str, version: str, level: str = "INFO") -> None:
    """Route Loguru and stdlib logging into the structured JSON sink."""

    logger.remove()
    sink = JsonLogSink({"service": service_name, "environment": environment, "version": version})
    logger.add(sink, level=level.upper(), backtrace=False, diagnose=False)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


__all__ = ["InterceptHandler", "JsonLogSink", "configure_logging"]
