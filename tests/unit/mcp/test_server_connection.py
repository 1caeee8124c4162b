"""Unit tests for ServerConnection."""

import pytest

from tests.mocks import FakeTransport
from toolmesh.mcp import ServerConnection, ToolCapability
from toolmesh.types import ConnectionStatus


async def _noop(args):
    return None


def _tools(*names):
    return {n: ToolCapability(name=n, description="", input_schema={}, invoke=_noop) for n in names}


class TestServerConnection:
    """Tests for the connection record lifecycle."""

    def test_initial_state(self, descriptor_factory):
        connection = ServerConnection(descriptor_factory("web"))

        assert connection.name == "web"
        assert connection.status == ConnectionStatus.DISCONNECTED
        assert connection.connected is False
        assert connection.transport is None
        assert connection.tool_count == 0

    @pytest.mark.asyncio
    async def test_attach(self, descriptor_factory):
        connection = ServerConnection(descriptor_factory("web"))
        transport = FakeTransport("web")

        await connection.attach(transport, _tools("search"))

        assert connection.connected
        assert connection.transport is transport
        assert list(connection.tools) == ["search"]
        assert connection.connected_at is not None

    @pytest.mark.asyncio
    async def test_attach_closes_prior_transport(self, descriptor_factory):
        """Test that at most one transport is live per server."""
        connection = ServerConnection(descriptor_factory("web"))
        first, second = FakeTransport("web"), FakeTransport("web")

        await connection.attach(first, _tools("a"))
        await connection.attach(second, _tools("b"))

        assert first.closed is True
        assert second.closed is False
        assert list(connection.tools) == ["b"]

    @pytest.mark.asyncio
    async def test_attach_swaps_tool_map(self, descriptor_factory):
        """Test that readers holding the old map keep a complete set."""
        connection = ServerConnection(descriptor_factory("web"))
        await connection.attach(FakeTransport("web"), _tools("a", "b"))
        snapshot = connection.tools

        await connection.attach(FakeTransport("web"), _tools("c"))

        assert set(snapshot) == {"a", "b"}
        assert set(connection.tools) == {"c"}

    @pytest.mark.asyncio
    async def test_mark_failed_closes_half_open_only(self, descriptor_factory):
        connection = ServerConnection(descriptor_factory("web"))
        live, half_open = FakeTransport("web"), FakeTransport("web")
        await connection.attach(live, _tools("a"))

        await connection.mark_failed("refused", half_open=half_open)

        assert half_open.closed is True
        assert live.closed is False
        assert connection.status == ConnectionStatus.FAILED
        assert connection.last_error == "refused"
        assert connection.transport is live

    @pytest.mark.asyncio
    async def test_close(self, descriptor_factory):
        connection = ServerConnection(descriptor_factory("web"))
        transport = FakeTransport("web")
        await connection.attach(transport, _tools("a"))

        await connection.close()

        assert transport.closed is True
        assert connection.transport is None
        assert connection.tools == {}
        assert connection.status == ConnectionStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_close_without_transport(self, descriptor_factory):
        connection = ServerConnection(descriptor_factory("web"))
        await connection.close()
        assert connection.transport is None

    @pytest.mark.asyncio
    async def test_close_failure_is_logged(self, descriptor_factory, logger, log_output):
        """Test that a failing close is logged and swallowed."""
        connection = ServerConnection(descriptor_factory("web"), logger)
        await connection.attach(FakeTransport("web", fail_close=RuntimeError("pipe broken")), {})

        await connection.close()

        assert "Error closing transport for 'web': pipe broken" in log_output.getvalue()

    @pytest.mark.asyncio
    async def test_to_status(self, descriptor_factory):
        connection = ServerConnection(descriptor_factory("web"))
        await connection.attach(FakeTransport("web"), _tools("search"))

        status = connection.to_status(retry_count=2)

        assert status.name == "web"
        assert status.connected is True
        assert status.transport_kind == "process"
        assert status.tools == ["search"]
        assert status.retry_count == 2
        assert status.to_dict()["status"] == "connected"
