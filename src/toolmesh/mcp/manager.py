"""Connection manager - supervises all tool server connections."""

import asyncio
import time
from datetime import UTC, datetime
from functools import partial
from typing import Any

from toolmesh.config.loader import ensure_valid_global_config
from toolmesh.config.models import GlobalConfig, ServerDescriptor
from toolmesh.errors import create_error, describe_exception
from toolmesh.logging import MeshLogger
from toolmesh.telemetry import MeshMetrics, MetricLabels
from toolmesh.types import LogLevel

from .catalog import ToolCatalog
from .connection import ServerConnection
from .events import (
    EventBus,
    Initialized,
    ServerConnected,
    ServerDisconnected,
    ServerError,
    Shutdown,
)
from .scheduler import AsyncioScheduler, RetryScheduler, ScheduledCall
from .transport import TransportFactory, create_transport
from .types import ManagerStatus, ToolCapability

# Backoff: 1s, 2s, 4s, ... capped at 30s
BASE_RETRY_DELAY_MS = 1000
MAX_RETRY_DELAY_MS = 30000

# Pause between disconnecting a changed server and reconnecting it
SETTLE_DELAY_SECONDS = 1.0


def retry_delay_ms(retries_scheduled: int) -> int:
    """Backoff delay before the next retry."""
    return min(BASE_RETRY_DELAY_MS * 2**retries_scheduled, MAX_RETRY_DELAY_MS)


class ConnectionManager:
    """Manages all tool server connections.

    Connects every enabled server, retries failures with exponential
    backoff, reconciles live config changes and owns the connection table.
    """

    def __init__(
        self,
        config: GlobalConfig | None = None,
        transport_factory: TransportFactory = create_transport,
        scheduler: RetryScheduler | None = None,
        logger: MeshLogger | None = None,
        metrics: MeshMetrics | None = None,
        events: EventBus | None = None,
        settle_delay_seconds: float = SETTLE_DELAY_SECONDS,
    ):
        """Initialize connection manager.

        Args:
            config: Tool server configuration
            transport_factory: Builds a Transport for a descriptor
            scheduler: Timer used for retries and settle delays
            logger: Optional logger
            metrics: Optional metrics
            events: Event bus (a private one is created if omitted)
            settle_delay_seconds: Delay before reconnecting a changed server
        """
        self._config = config or GlobalConfig()
        self._transport_factory = transport_factory
        self._scheduler = scheduler or AsyncioScheduler()
        self._logger = logger
        self._metrics = metrics
        self._events = events or EventBus(logger)
        self._settle_delay_seconds = settle_delay_seconds

        self._connections: dict[str, ServerConnection] = {}
        self._retry_counts: dict[str, int] = {}
        self._pending: dict[str, ScheduledCall] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._semaphore = asyncio.Semaphore(self._config.max_concurrent_connections)

        self._initialized = False
        self._shutting_down = False
        self._last_update = datetime.now(UTC)

    def _log(self, level: LogLevel, message: str, context: dict[str, Any] | None = None) -> None:
        """Log message if logger available."""
        if self._logger:
            self._logger._log(level, "manager", message, context)

    @property
    def config(self) -> GlobalConfig:
        return self._config

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    async def initialize(self, config: GlobalConfig | None = None) -> ManagerStatus:
        """Connect to every enabled server.

        Attempts run concurrently; one failure never aborts startup.

        Args:
            config: Optional configuration replacing the constructor's

        Returns:
            ManagerStatus after every first attempt has settled

        Raises:
            MeshError(CONFIG_INVALID): If the configuration is invalid
        """
        if self._initialized and not self._shutting_down:
            self._log(LogLevel.WARN, "Connection manager already initialized")
            return self.get_status()

        if config is not None:
            ensure_valid_global_config(config)
            self._set_config(config)
        else:
            ensure_valid_global_config(self._config)

        self._shutting_down = False
        self._initialized = True

        if not self._config.enabled:
            self._log(LogLevel.INFO, "Tool servers are disabled in configuration")
            status = self.get_status()
            await self._events.publish(Initialized(status))
            return status

        descriptors = self._config.enabled_servers()
        self._log(LogLevel.INFO, f"Connecting to {len(descriptors)} tool servers")

        # Records are created up front so the table follows config order
        for descriptor in descriptors:
            if descriptor.name not in self._connections:
                self._connections[descriptor.name] = ServerConnection(descriptor, self._logger)

        await asyncio.gather(
            *(self.connect_to_server(descriptor) for descriptor in descriptors),
            return_exceptions=True,
        )

        status = self.get_status()
        self._log(
            LogLevel.INFO,
            f"Connected to {status.connected_servers}/{len(descriptors)} servers "
            f"({status.total_tools} tools)",
        )
        await self._events.publish(Initialized(status))
        return status

    async def connect_to_server(self, descriptor: ServerDescriptor) -> bool:
        """Make one connection attempt, scheduling a retry on failure.

        Returns:
            True if the server is connected afterwards
        """
        if self._shutting_down or not descriptor.enabled:
            return False

        lock = self._locks.setdefault(descriptor.name, asyncio.Lock())
        async with lock:
            if self._shutting_down:
                return False

            connection = self._connections.get(descriptor.name)
            if connection is None:
                connection = ServerConnection(descriptor, self._logger)
                self._connections[descriptor.name] = connection
            else:
                connection.descriptor = descriptor

            async with self._semaphore:
                connected = await self._attempt(connection)

        if not connected:
            self._schedule_retry(descriptor)
        return connected

    async def _attempt(self, connection: ServerConnection) -> bool:
        descriptor = connection.descriptor
        name = descriptor.name
        server_log = self._logger.server(name) if self._logger else None
        attempt = self._retry_counts.get(name, 0) + 1

        connection.mark_connecting()
        if server_log:
            server_log.connecting(descriptor.transport.kind.value, attempt)

        start_time = time.monotonic()
        transport = None
        try:
            transport = self._transport_factory(descriptor)
            await transport.open()
            schemas = await transport.list_tools()
        except Exception as e:
            error = describe_exception(e)
            await connection.mark_failed(error, half_open=transport)
            self._touch()
            if server_log:
                server_log.failed(error, attempt)
            if self._metrics:
                self._metrics.record_connection_attempt(name, MetricLabels.STATUS_FAILED)
            await self._events.publish(ServerError(name, error))
            return False

        # Removed or shut down while the attempt was in flight
        if self._shutting_down or self._connections.get(name) is not connection:
            await connection.mark_failed("Connection abandoned", half_open=transport)
            return False

        tools = {
            schema.name: ToolCapability.from_schema(schema, partial(transport.call_tool, schema.name))
            for schema in schemas
        }
        await connection.attach(transport, tools)
        self._retry_counts[name] = 0
        self._touch()

        duration_ms = int((time.monotonic() - start_time) * 1000)
        if server_log:
            server_log.connected(connection.tool_count, duration_ms)
        if self._metrics:
            self._metrics.record_connection_attempt(name, MetricLabels.STATUS_CONNECTED)
        await self._events.publish(ServerConnected(name, connection.tool_count))
        return True

    def _schedule_retry(self, descriptor: ServerDescriptor) -> None:
        name = descriptor.name
        if self._shutting_down:
            return

        connection = self._connections.get(name)
        if connection is None or connection.descriptor != descriptor:
            return

        retries = self._retry_counts.get(name, 0)
        max_retries = self._config.retry_attempts
        if retries >= max_retries:
            if self._logger:
                self._logger.server(name).retries_exhausted(max_retries)
            return

        delay_ms = retry_delay_ms(retries)
        self._retry_counts[name] = retries + 1
        if self._logger:
            self._logger.server(name).retrying(retries + 1, max_retries, delay_ms)

        self._cancel_pending(name)
        self._pending[name] = self._scheduler.call_later(
            delay_ms / 1000, partial(self._run_retry, descriptor)
        )

    async def _run_retry(self, descriptor: ServerDescriptor) -> None:
        name = descriptor.name
        self._pending.pop(name, None)
        if self._shutting_down:
            return

        connection = self._connections.get(name)
        if connection is None or connection.descriptor != descriptor or connection.connected:
            return

        await self.connect_to_server(descriptor)

    def _cancel_pending(self, name: str) -> None:
        handle = self._pending.pop(name, None)
        if handle is not None:
            handle.cancel()

    async def update_config(self, new_config: GlobalConfig) -> ManagerStatus:
        """Reconcile connections with a new configuration.

        - Disconnect removed and newly disabled servers
        - Connect newly enabled servers
        - Reconnect changed servers after a settle delay

        Servers whose descriptor did not change are left alone.

        Raises:
            MeshError(CONFIG_INVALID): If the configuration is invalid
        """
        ensure_valid_global_config(new_config)
        self._log(LogLevel.INFO, "Handling config change")

        self._set_config(new_config)

        if not self._initialized or self._shutting_down:
            return self.get_status()

        if not new_config.enabled:
            self._log(LogLevel.INFO, "Tool servers disabled, disconnecting all")
            for name in list(self._connections):
                await self.disconnect_server(name)
            return self.get_status()

        wanted = {s.name: s for s in new_config.enabled_servers()}

        for name in list(self._connections):
            if name not in wanted:
                self._log(LogLevel.INFO, f"Removing server '{name}'")
                await self.disconnect_server(name)

        to_add: list[ServerDescriptor] = []
        for descriptor in wanted.values():
            connection = self._connections.get(descriptor.name)
            if connection is None:
                self._log(LogLevel.INFO, f"Adding server '{descriptor.name}'")
                to_add.append(descriptor)
            elif connection.descriptor != descriptor:
                self._log(LogLevel.INFO, f"Reconnecting server '{descriptor.name}' (config changed)")
                await self.disconnect_server(descriptor.name)
                self._connections[descriptor.name] = ServerConnection(descriptor, self._logger)
                self._pending[descriptor.name] = self._scheduler.call_later(
                    self._settle_delay_seconds, partial(self._run_retry, descriptor)
                )

        for descriptor in to_add:
            self._connections[descriptor.name] = ServerConnection(descriptor, self._logger)

        # Keep the table in config order (catalog collisions depend on it)
        self._connections = {
            name: self._connections[name] for name in wanted if name in self._connections
        }

        await asyncio.gather(
            *(self.connect_to_server(descriptor) for descriptor in to_add),
            return_exceptions=True,
        )

        self._touch()
        self._log(LogLevel.INFO, "Config change complete")
        return self.get_status()

    def _set_config(self, config: GlobalConfig) -> None:
        if config.max_concurrent_connections != self._config.max_concurrent_connections:
            self._semaphore = asyncio.Semaphore(config.max_concurrent_connections)
        self._config = config

    async def disconnect_server(self, name: str) -> bool:
        """Close a server's transport and forget it.

        Returns:
            True if the server had a connection record
        """
        self._cancel_pending(name)
        self._retry_counts.pop(name, None)
        connection = self._connections.pop(name, None)
        if connection is None:
            return False

        await connection.close()
        self._touch()
        if self._logger:
            self._logger.server(name).disconnected()
        await self._events.publish(ServerDisconnected(name))
        return True

    async def reconnect_server(self, name: str) -> bool:
        """Reset a server's retry budget and connect it again.

        Returns:
            True if the server is connected afterwards

        Raises:
            MeshError(SERVER_NOT_FOUND): If the server is not configured
        """
        connection = self._connections.get(name)
        descriptor = connection.descriptor if connection else self._config.get_server(name)
        if descriptor is None:
            raise create_error("SERVER_NOT_FOUND", server_name=name)
        if not self._config.enabled or not descriptor.enabled:
            return False

        self._cancel_pending(name)
        self._retry_counts[name] = 0
        if connection is not None:
            await connection.close()
        return await self.connect_to_server(descriptor)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Close every connection and stop retrying. Safe to call twice.

        Args:
            timeout: Maximum time to wait for all transports to close in seconds
        """
        if self._shutting_down:
            return
        self._shutting_down = True
        self._log(LogLevel.INFO, "Shutting down connection manager")

        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()

        connections = list(self._connections.values())
        self._connections.clear()
        self._retry_counts.clear()

        try:
            await asyncio.wait_for(
                asyncio.gather(*(c.close() for c in connections), return_exceptions=True),
                timeout=timeout,
            )
        except TimeoutError:
            self._log(LogLevel.WARN, f"Timeout ({timeout}s) waiting for transports to close")

        self._touch()
        self._log(LogLevel.INFO, f"Disconnected from {len(connections)} servers")
        await self._events.publish(Shutdown())

    def _touch(self) -> None:
        self._last_update = datetime.now(UTC)
        if self._metrics:
            connected = [c for c in self._connections.values() if c.connected]
            self._metrics.update_connected_servers(len(connected))
            keys = {ToolCatalog.namespaced_name(c.name, t) for c in connected for t in c.tools}
            self._metrics.update_registered_tools(len(keys))

    def retry_count(self, name: str) -> int:
        """Retries scheduled for a server in its current failure streak."""
        return self._retry_counts.get(name, 0)

    def get_connection(self, name: str) -> ServerConnection | None:
        """Get connection by server name.

        Args:
            name: Server name

        Returns:
            ServerConnection if found, None otherwise
        """
        return self._connections.get(name)

    def list_connections(self) -> list[ServerConnection]:
        """List all connections in config order."""
        return list(self._connections.values())

    def get_status(self) -> ManagerStatus:
        """Get status of all connections."""
        statuses = [c.to_status(self.retry_count(c.name)) for c in self._connections.values()]
        connected = [s for s in statuses if s.connected]
        return ManagerStatus(
            enabled=self._config.enabled,
            total_servers=len(statuses),
            connected_servers=len(connected),
            total_tools=sum(s.tool_count for s in connected),
            connections=statuses,
            last_update=self._last_update.isoformat(),
        )
