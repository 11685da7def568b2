"""Property-based tests for the thought ledger invariants."""

from __future__ import annotations

from typing import Any

from hypothesis import given, settings
from hypothesis import strategies as st

from sequential_thinking.tools.thinking import ThoughtLedger, validate_thought_data

positive = st.integers(min_value=1, max_value=10_000)

payloads = st.fixed_dictionaries(
    {
        "text": st.text(min_size=1, max_size=40),
        "sequenceNumber": positive,
        "estimatedTotal": positive,
        "continuationNeeded": st.booleans(),
    },
    optional={
        "isRevision": st.booleans(),
        "revisesSequenceNumber": positive,
        "branchOriginSequenceNumber": positive,
        "branchId": st.sampled_from(["a", "b", "c"]),
        "moreNeeded": st.booleans(),
    },
)


class TestLedgerProperties:
    """Invariants that hold for any sequence of valid appends."""

    @given(st.lists(payloads, min_size=1, max_size=30))
    @settings(max_examples=50)
    def test_history_grows_by_one(self, batch: list[dict[str, Any]]) -> None:
        """Each append adds exactly one history entry."""
        ledger = ThoughtLedger()
        for expected, payload in enumerate(batch, start=1):
            summary = ledger.append(validate_thought_data(payload))
            assert summary.history_length == expected

    @given(payloads)
    def test_total_is_max_of_estimate_and_sequence(self, payload: dict[str, Any]) -> None:
        """Reported total is the estimate, raised to the sequence number if needed."""
        summary = ThoughtLedger().append(validate_thought_data(payload))
        assert summary.estimated_total == max(payload["estimatedTotal"], payload["sequenceNumber"])

    @given(st.lists(payloads, min_size=1, max_size=30))
    @settings(max_examples=50)
    def test_branch_members_appear_once_in_history_and_bucket(
        self, batch: list[dict[str, Any]]
    ) -> None:
        """Every branch record is in history once and in its bucket once."""
        ledger = ThoughtLedger()
        seen: list[str] = []
        for payload in batch:
            summary = ledger.append(validate_thought_data(payload))
            if "branchOriginSequenceNumber" in payload and "branchId" in payload:
                if payload["branchId"] not in seen:
                    seen.append(payload["branchId"])
            assert summary.branch_ids == seen

        for branch_id, members in ledger.branches.items():
            for member in members:
                assert sum(1 for r in ledger.history if r is member) == 1
                assert sum(1 for r in members if r is member) == 1
                assert member.branch_id == branch_id

    @given(st.lists(payloads, max_size=20))
    @settings(max_examples=30)
    def test_branch_buckets_preserve_history_order(self, batch: list[dict[str, Any]]) -> None:
        """Bucket order matches the order the records entered history."""
        ledger = ThoughtLedger()
        for payload in batch:
            ledger.append(validate_thought_data(payload))
        for branch_id, members in ledger.branches.items():
            in_history = [r for r in ledger.history if r.is_branch and r.branch_id == branch_id]
            assert [id(r) for r in members] == [id(r) for r in in_history]
