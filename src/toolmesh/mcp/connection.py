"""Server connection - runtime record for one tool server."""

from datetime import UTC, datetime

from toolmesh.config.models import ServerDescriptor
from toolmesh.errors import create_error
from toolmesh.logging import MeshLogger
from toolmesh.types import ConnectionStatus

from .transport import Transport
from .types import ServerStatus, ToolCapability


class ServerConnection:
    """Binds a ServerDescriptor to at most one live Transport and its tools.

    The tool map is never mutated in place: a new dict is swapped in on
    attach and on close, so readers always see a complete set.
    """

    def __init__(self, descriptor: ServerDescriptor, logger: MeshLogger | None = None):
        """Initialize server connection.

        Args:
            descriptor: Server configuration
            logger: Optional logger
        """
        self.descriptor = descriptor
        self._logger = logger
        self._transport: Transport | None = None
        self._tools: dict[str, ToolCapability] = {}
        self._status = ConnectionStatus.DISCONNECTED
        self.last_error: str | None = None
        self.connected_at: datetime | None = None

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def status(self) -> ConnectionStatus:
        """Current connection status."""
        return self._status

    @property
    def connected(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED

    @property
    def transport(self) -> Transport | None:
        return self._transport

    @property
    def tools(self) -> dict[str, ToolCapability]:
        """Unprefixed tool map (treat as read-only)."""
        return self._tools

    @property
    def tool_count(self) -> int:
        return len(self._tools)

    def mark_connecting(self) -> None:
        self._status = ConnectionStatus.CONNECTING

    async def attach(self, transport: Transport, tools: dict[str, ToolCapability]) -> None:
        """Attach a freshly opened transport, closing any prior handle first."""
        prior = self._transport
        if prior is not None and prior is not transport:
            self._transport = None
            await self._close_transport(prior)

        self._transport = transport
        self._tools = dict(tools)
        self._status = ConnectionStatus.CONNECTED
        self.last_error = None
        self.connected_at = datetime.now(UTC)

    async def mark_failed(self, error: str, half_open: Transport | None = None) -> None:
        """Record a failed attempt and release its half-open transport.

        A previously attached transport is kept; it shows up as stale
        until the server reconnects or is closed.
        """
        if half_open is not None and half_open is not self._transport:
            await self._close_transport(half_open)
        self._status = ConnectionStatus.FAILED
        self.last_error = error

    async def close(self) -> None:
        """Close the transport and drop the tools. Close failures are logged."""
        transport, self._transport = self._transport, None
        self._tools = {}
        self._status = ConnectionStatus.DISCONNECTED
        if transport is not None:
            await self._close_transport(transport)

    async def _close_transport(self, transport: Transport) -> None:
        try:
            await transport.close()
        except Exception as e:
            error = create_error(
                "TRANSPORT_CLOSE_FAILED",
                server_name=self.name,
                detail=str(e) or type(e).__name__,
            )
            if self._logger:
                self._logger.server(self.name).close_failed(error.detail or error.message)

    def to_status(self, retry_count: int = 0) -> ServerStatus:
        """Get detailed status.

        Returns:
            ServerStatus with current state
        """
        return ServerStatus(
            name=self.name,
            status=self._status,
            connected=self.connected,
            enabled=self.descriptor.enabled,
            transport_kind=self.descriptor.transport.kind.value,
            tool_count=self.tool_count,
            tools=list(self._tools.keys()),
            last_error=self.last_error,
            connected_at=self.connected_at.isoformat() if self.connected_at else None,
            retry_count=retry_count,
        )
