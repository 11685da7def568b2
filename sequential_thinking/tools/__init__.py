"""Sequential thinking tools - ledger, session registry and reaper."""

from .descriptor import INPUT_SCHEMA, TOOL_DESCRIPTION, TOOL_NAME, tool_descriptor
from .reaper import SessionReaper
from .service import ThinkingService, ToolCallResult
from .sessions import SessionRegistry, ThinkingSession
from .thinking import (
    ThoughtLedger,
    ThoughtRecord,
    ThoughtSummary,
    format_thought,
    validate_thought_data,
)

__all__ = [
    # Descriptor
    "INPUT_SCHEMA",
    "TOOL_DESCRIPTION",
    "TOOL_NAME",
    "tool_descriptor",
    # Ledger
    "ThoughtLedger",
    "ThoughtRecord",
    "ThoughtSummary",
    "format_thought",
    "validate_thought_data",
    # Sessions
    "SessionReaper",
    "SessionRegistry",
    "ThinkingSession",
    # Service boundary
    "ThinkingService",
    "ToolCallResult",
]
