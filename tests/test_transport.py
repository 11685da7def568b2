"""Tests for closing transport sessions when ledgers are evicted."""

from __future__ import annotations

from datetime import timedelta

import pytest
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette

from sequential_thinking.tools.reaper import SessionReaper
from sequential_thinking.tools.service import ThinkingService
from sequential_thinking.transport import TransportCloser


class FakeTransport:
    """Stands in for a StreamableHTTPServerTransport."""

    def __init__(self) -> None:
        self.is_terminated = False
        self.terminate_calls = 0

    async def terminate(self) -> None:
        self.terminate_calls += 1
        self.is_terminated = True


class FakeSessionManager:
    """Stands in for a StreamableHTTPSessionManager."""

    def __init__(self, **transports: FakeTransport) -> None:
        self._server_instances = dict(transports)


class TestTransportCloser:
    """Tests for TransportCloser.close."""

    @pytest.mark.asyncio
    async def test_terminates_and_forgets(self) -> None:
        """The transport is terminated and the manager forgets the id."""
        transport = FakeTransport()
        manager = FakeSessionManager(s1=transport, s2=FakeTransport())
        await TransportCloser(manager).close("s1")
        assert transport.terminate_calls == 1
        assert set(manager._server_instances) == {"s2"}

    @pytest.mark.asyncio
    async def test_already_terminated_not_terminated_again(self) -> None:
        """A transport the client already closed is only forgotten."""
        transport = FakeTransport()
        transport.is_terminated = True
        manager = FakeSessionManager(s1=transport)
        await TransportCloser(manager).close("s1")
        assert transport.terminate_calls == 0
        assert manager._server_instances == {}

    @pytest.mark.asyncio
    async def test_unknown_id_is_noop(self) -> None:
        """Ids without a transport are ignored."""
        manager = FakeSessionManager(s1=FakeTransport())
        await TransportCloser(manager).close("ghost")
        assert set(manager._server_instances) == {"s1"}

    @pytest.mark.asyncio
    async def test_unbound_is_noop(self) -> None:
        """Without a session manager nothing happens."""
        await TransportCloser().close("s1")


class TestBind:
    """Tests for locating the session manager in an HTTP app."""

    def test_binds_to_streamable_http_app(self) -> None:
        """The FastMCP HTTP app exposes its session manager."""
        from sequential_thinking.server import mcp

        closer = TransportCloser()
        assert closer.bind(mcp.http_app(path="/mcp")) is True
        assert isinstance(closer.session_manager, StreamableHTTPSessionManager)

    def test_plain_app_not_bound(self) -> None:
        """Apps without a streamable HTTP route leave the closer unbound."""
        closer = TransportCloser()
        assert closer.bind(Starlette()) is False
        assert closer.session_manager is None


class TestEvictionClosesTransport:
    """Tests for the reaper closing transports of evicted sessions."""

    @pytest.mark.asyncio
    async def test_idle_session_transport_closed(
        self, service: ThinkingService, clock  # type: ignore[no-untyped-def]
    ) -> None:
        """Evicting an idle ledger terminates its transport session."""
        idle, busy = FakeTransport(), FakeTransport()
        manager = FakeSessionManager(idle=idle, busy=busy)
        closer = TransportCloser(manager)
        await service.admit("idle", on_close=closer.close)
        clock.advance(minutes=30)
        await service.admit("busy", on_close=closer.close)
        clock.advance(minutes=31)

        reaper = SessionReaper(service.registry, max_idle=timedelta(minutes=60))
        assert await reaper.sweep() == ["idle"]

        assert idle.is_terminated
        assert not busy.is_terminated
        assert set(manager._server_instances) == {"busy"}
