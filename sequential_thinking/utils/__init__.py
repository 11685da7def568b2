"""Utility modules for the Sequential Thinking server."""

from .errors import (
    SequentialThinkingException,
    SessionNotFoundError,
    UnknownToolError,
    ValidationError,
)
from .logging import LogFormat, LogLevel, configure_logging, log_context
from .session import AsyncSessionManager

__all__ = [
    "SequentialThinkingException",
    "SessionNotFoundError",
    "UnknownToolError",
    "ValidationError",
    "LogFormat",
    "LogLevel",
    "configure_logging",
    "log_context",
    "AsyncSessionManager",
]
