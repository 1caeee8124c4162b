"""Connection manager types for toolmesh."""

from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from typing import Any

from toolmesh.types import ConnectionStatus

# Invokes one tool with its parameters; bound to a live transport
ToolInvoker = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass
class ToolSchema:
    """Tool as a server lists it.

    Represents a tool available from a tool server.
    """

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolCapability:
    """A callable tool discovered on a connected server."""

    name: str
    description: str
    input_schema: dict[str, Any]
    invoke: ToolInvoker = field(repr=False, compare=False)

    @classmethod
    def from_schema(cls, schema: ToolSchema, invoke: ToolInvoker) -> "ToolCapability":
        return cls(
            name=schema.name,
            description=schema.description,
            input_schema=schema.input_schema,
            invoke=invoke,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass(frozen=True)
class CatalogEntry:
    """One namespaced catalog entry."""

    server_name: str
    original_name: str
    tool: ToolCapability


@dataclass
class ToolCall:
    """Request to run one tool on one server."""

    server_id: str
    tool_name: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """Outcome of a tool call.

    Every call produces one of these, including calls that fail before
    reaching a server.
    """

    success: bool
    server_id: str
    tool_name: str
    execution_time_ms: int
    result: Any = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "server_id": self.server_id,
            "tool_name": self.tool_name,
            "execution_time_ms": self.execution_time_ms,
            "result": self.result,
            "error": self.error,
            "error_code": self.error_code,
        }


@dataclass
class ServerStatus:
    """Status of a tool server connection.

    Used for monitoring and diagnostics.
    """

    name: str
    status: ConnectionStatus
    connected: bool
    enabled: bool
    transport_kind: str
    tool_count: int = 0
    tools: list[str] = field(default_factory=list)
    last_error: str | None = None
    connected_at: str | None = None
    retry_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class ManagerStatus:
    """Aggregate status across all servers."""

    enabled: bool
    total_servers: int
    connected_servers: int
    total_tools: int
    connections: list[ServerStatus] = field(default_factory=list)
    last_update: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "total_servers": self.total_servers,
            "connected_servers": self.connected_servers,
            "total_tools": self.total_tools,
            "connections": [c.to_dict() for c in self.connections],
            "last_update": self.last_update,
        }


@dataclass
class HealthReport:
    """Health verdict with human-readable issues."""

    healthy: bool
    issues: list[str] = field(default_factory=list)
    checked_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
