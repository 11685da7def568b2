"""Structured logging utilities for the Sequential Thinking server.

Provides a consistent logging interface with:
- Structured JSON logging for production
- Human-readable format for development
- Context injection for session and tool tracking
- Log level configuration from environment/config
"""

from __future__ import annotations

import json
import sys
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from loguru import Record

# Context variables for request tracking
_session_id: ContextVar[str | None] = ContextVar("session_id", default=None)
_tool_name: ContextVar[str | None] = ContextVar("tool_name", default=None)


class LogFormat(str, Enum):
    """Supported log output formats."""

    JSON = "json"
    TEXT = "text"


class LogLevel(str, Enum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def json_serializer(record: Record) -> str:
    """Serialize log record to JSON format.

    Args:
        record: Loguru record dictionary.

    Returns:
        JSON string representation of the log entry.

    """
    log_entry: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    if session_id := _session_id.get():
        log_entry["session_id"] = session_id
    if tool_name := _tool_name.get():
        log_entry["tool"] = tool_name

    extra = {k: v for k, v in record["extra"].items() if k != "serialized"}
    if extra:
        log_entry["extra"] = extra

    if record["exception"]:
        exc_info = record["exception"]
        log_entry["exception"] = {
            "type": exc_info.type.__name__ if exc_info.type else None,
            "value": str(exc_info.value) if exc_info.value else None,
            "traceback": exc_info.traceback is not None,
        }

    return json.dumps(log_entry, default=str, ensure_ascii=False)


def _escape(value: str) -> str:
    return value.replace("{", "{{").replace("}", "}}").replace("<", r"\<")


def text_format(record: Record) -> str:
    """Build the loguru format template for human-readable output.

    Args:
        record: Loguru record dictionary.

    Returns:
        Format template; loguru fills in the record fields.

    """
    context_parts = []
    if session_id := _session_id.get():
        context_parts.append(f"sess={session_id[:8]}")
    if tool_name := _tool_name.get():
        context_parts.append(f"tool={tool_name}")

    context = f"[{_escape(' '.join(context_parts))}] " if context_parts else ""

    template = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        f"{context}"
        "<level>{message}</level>\n"
    )
    if record["exception"]:
        template += "{exception}"
    return template


def _serialize_patcher(record: Record) -> None:
    record["extra"]["serialized"] = json_serializer(record)


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.TEXT,
    log_file: str | Path | None = None,
) -> None:
    """Configure loguru sinks for the server process.

    Logs always go to stderr so the stdio transport keeps stdout clean.

    Args:
        level: Minimum log level.
        log_format: Output format (json or text).
        log_file: Optional file path for JSON log output.

    """
    level = LogLevel(level.upper()) if isinstance(level, str) else level
    log_format = LogFormat(log_format.lower()) if isinstance(log_format, str) else log_format

    logger.remove()
    logger.configure(patcher=_serialize_patcher)

    if log_format == LogFormat.JSON:
        logger.add(sys.stderr, format="{extra[serialized]}", level=level.value)
    else:
        logger.add(sys.stderr, format=text_format, level=level.value, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format="{extra[serialized]}",
            level=level.value,
            rotation="100 MB",
            retention="7 days",
            compression="gz",
        )


@contextmanager
def log_context(
    session_id: str | None = None,
    tool_name: str | None = None,
) -> Generator[None, None, None]:
    """Scope session and tool identifiers onto every log line.

    Example:
        with log_context(session_id="abc123", tool_name="sequentialthinking"):
            logger.info("Processing")  # Includes sess=abc123 tool=...

    """
    tokens = []
    if session_id:
        tokens.append(_session_id.set(session_id))
    if tool_name:
        tokens.append(_tool_name.set(tool_name))
    try:
        yield
    finally:
        for token in reversed(tokens):
            token.var.reset(token)
