"""Thought ledger: validated records accumulated per session.

The calling agent does all the reasoning. This module only validates the
records it submits, keeps them in call order, indexes branches, and echoes
a summary of the accumulated state back.

Optional fields (revision and branch annotations, the ``moreNeeded`` hint)
are caller-trusted: they pass through with whatever type the caller sent
and are never cross-checked against earlier records.
"""

from __future__ import annotations

import dataclasses
import math
import unicodedata
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sequential_thinking.utils.errors import ValidationError

# Wire name -> attribute name for the optional pass-through fields
OPTIONAL_FIELDS: dict[str, str] = {
    "isRevision": "is_revision",
    "revisesSequenceNumber": "revises_sequence_number",
    "branchOriginSequenceNumber": "branch_origin_sequence_number",
    "branchId": "branch_id",
    "moreNeeded": "more_needed",
}

_INT_MIN = -(2**63)
_INT_MAX = 2**64 - 1


@dataclass(frozen=True)
class ThoughtRecord:
    """One accepted step in a reasoning sequence."""

    text: str
    sequence_number: int | float
    estimated_total: int | float
    continuation_needed: bool
    is_revision: Any = None
    revises_sequence_number: Any = None
    branch_origin_sequence_number: Any = None
    branch_id: Any = None
    more_needed: Any = None

    @property
    def is_branch(self) -> bool:
        """Whether the record belongs in the branch index."""
        return bool(self.branch_origin_sequence_number) and bool(self.branch_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire representation, omitting unset fields."""
        result: dict[str, Any] = {
            "text": self.text,
            "sequenceNumber": self.sequence_number,
            "estimatedTotal": self.estimated_total,
            "continuationNeeded": self.continuation_needed,
        }
        for wire_name, attr in OPTIONAL_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                result[wire_name] = value
        return result


@dataclass(frozen=True)
class ThoughtSummary:
    """State echoed back after a successful append."""

    sequence_number: int | float
    estimated_total: int | float
    continuation_needed: bool
    branch_ids: list[str]
    history_length: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to the outbound success body."""
        return {
            "sequenceNumber": self.sequence_number,
            "totalThoughts": self.estimated_total,
            "nextThoughtNeeded": self.continuation_needed,
            "branches": list(self.branch_ids),
            "thoughtHistoryLength": self.history_length,
        }


def _is_number(value: Any) -> bool:
    # Zero and NaN count as missing, matching a falsy check on the wire value.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, int):
        # Response bodies only carry 64-bit integers.
        return value != 0 and _INT_MIN <= value <= _INT_MAX
    return value != 0 and not math.isnan(value)


def validate_thought_data(payload: Any) -> ThoughtRecord:
    """Normalize an untyped call payload into a ThoughtRecord.

    Checks run in a fixed order and the first failure wins. Pure function:
    nothing is recorded when validation fails.

    Args:
        payload: Raw tool arguments as delivered by the transport.

    Returns:
        Validated record.

    Raises:
        ValidationError: If a required field is missing or mistyped.

    """
    data: Mapping[str, Any] = payload if isinstance(payload, Mapping) else {}

    text = data.get("text")
    if not isinstance(text, str) or not text:
        raise ValidationError("text must be a string")
    if not _is_number(data.get("sequenceNumber")):
        raise ValidationError("sequenceNumber must be a number")
    if not _is_number(data.get("estimatedTotal")):
        raise ValidationError("estimatedTotal must be a number")
    if not isinstance(data.get("continuationNeeded"), bool):
        raise ValidationError("continuationNeeded must be a boolean")

    return ThoughtRecord(
        text=text,
        sequence_number=data["sequenceNumber"],
        estimated_total=data["estimatedTotal"],
        continuation_needed=data["continuationNeeded"],
        **{attr: data.get(wire_name) for wire_name, attr in OPTIONAL_FIELDS.items()},
    )


@dataclass
class ThoughtLedger:
    """Append-only record of one session's thoughts plus its branch index."""

    history: list[ThoughtRecord] = field(default_factory=list)
    branches: dict[str, list[ThoughtRecord]] = field(default_factory=dict)

    @staticmethod
    def _normalize(record: ThoughtRecord) -> ThoughtRecord:
        # An estimate below the record's own sequence number is raised to match it.
        if record.sequence_number > record.estimated_total:
            return dataclasses.replace(record, estimated_total=record.sequence_number)
        return record

    def preview(self, record: ThoughtRecord) -> ThoughtSummary:
        """Summarize the ledger as it would be after appending record.

        Does not modify the ledger.

        Raises:
            TypeError: If the record's branch id is unhashable.

        """
        record = self._normalize(record)
        branch_ids = list(self.branches)
        if record.is_branch and record.branch_id not in self.branches:
            branch_ids.append(record.branch_id)

        return ThoughtSummary(
            sequence_number=record.sequence_number,
            estimated_total=record.estimated_total,
            continuation_needed=record.continuation_needed,
            branch_ids=branch_ids,
            history_length=len(self.history) + 1,
        )

    def append(self, record: ThoughtRecord) -> ThoughtSummary:
        """Append a validated record and summarize the ledger.

        An estimate below the record's own sequence number is raised to
        match it before the record is stored.

        Args:
            record: Validated record.

        Returns:
            Summary of the ledger after the append.

        """
        summary = self.preview(record)
        record = self._normalize(record)

        self.history.append(record)
        if record.is_branch:
            self.branches.setdefault(record.branch_id, []).append(record)

        return summary

    def __len__(self) -> int:
        return len(self.history)


def _display_width(value: str) -> int:
    """Terminal columns taken by value; wide characters such as emoji take two."""
    return sum(2 if unicodedata.east_asian_width(ch) in ("W", "F") else 1 for ch in value)


def _pad(value: str, width: int) -> str:
    return value + " " * (width - _display_width(value))


def format_thought(record: ThoughtRecord) -> str:
    """Render a record as a boxed block for the server log.

    Example:
        ┌──────────────────┐
        │ 💭 Thought 1/3   │
        ├──────────────────┤
        │ Identify inputs  │
        └──────────────────┘

    """
    if record.is_revision:
        header = (
            f"🔄 Revision {record.sequence_number}/{record.estimated_total}"
            f" (revising thought {record.revises_sequence_number})"
        )
    elif record.branch_origin_sequence_number:
        header = (
            f"🌿 Branch {record.sequence_number}/{record.estimated_total}"
            f" (from thought {record.branch_origin_sequence_number}, ID: {record.branch_id})"
        )
    else:
        header = f"💭 Thought {record.sequence_number}/{record.estimated_total}"

    width = max(_display_width(header), _display_width(record.text)) + 2
    border = "─" * width
    return "\n".join(
        [
            f"┌{border}┐",
            f"│ {_pad(header, width - 2)} │",
            f"├{border}┤",
            f"│ {_pad(record.text, width - 2)} │",
            f"└{border}┘",
        ]
    )
