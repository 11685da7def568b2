"""pytest configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import pytest

from sequential_thinking.tools.service import ThinkingService
from sequential_thinking.tools.sessions import SessionRegistry


class FakeClock:
    """Manually advanced clock for activity timestamps."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2025, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> SessionRegistry:
    """Provide an empty registry driven by the fake clock."""
    return SessionRegistry(clock=clock)


@pytest.fixture
def service(registry: SessionRegistry) -> ThinkingService:
    """Provide a thinking service with thought logging disabled."""
    return ThinkingService(registry, thought_logging=False)


@pytest.fixture
def valid_payload() -> dict[str, Any]:
    """Provide a minimal valid payload."""
    return {
        "text": "Break the problem into parts",
        "sequenceNumber": 1,
        "estimatedTotal": 3,
        "continuationNeeded": True,
    }
