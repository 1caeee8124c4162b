"""toolmesh connection management - tool server connections, catalog and calls."""

from .catalog import ToolCatalog
from .connection import ServerConnection
from .events import (
    EventBus,
    Initialized,
    MeshEvent,
    ServerConnected,
    ServerDisconnected,
    ServerError,
    Shutdown,
)
from .executor import CallExecutor
from .health import HealthMonitor
from .manager import ConnectionManager, retry_delay_ms
from .scheduler import AsyncioScheduler, RetryScheduler, ScheduledCall
from .transport import FastMCPTransport, Transport, TransportFactory, create_transport
from .types import (
    CatalogEntry,
    HealthReport,
    ManagerStatus,
    ServerStatus,
    ToolCall,
    ToolCapability,
    ToolResult,
    ToolSchema,
)

__all__ = [
    # Manager
    "ConnectionManager",
    "retry_delay_ms",
    "ServerConnection",
    # Catalog and calls
    "ToolCatalog",
    "CallExecutor",
    "HealthMonitor",
    # Transport
    "Transport",
    "TransportFactory",
    "FastMCPTransport",
    "create_transport",
    # Scheduling
    "RetryScheduler",
    "ScheduledCall",
    "AsyncioScheduler",
    # Events
    "EventBus",
    "MeshEvent",
    "Initialized",
    "ServerConnected",
    "ServerError",
    "ServerDisconnected",
    "Shutdown",
    # Types
    "ToolSchema",
    "ToolCapability",
    "CatalogEntry",
    "ToolCall",
    "ToolResult",
    "ServerStatus",
    "ManagerStatus",
    "HealthReport",
]
