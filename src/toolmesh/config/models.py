"""toolmesh configuration data models."""

from dataclasses import dataclass, field
from typing import ClassVar

from toolmesh.types import LogFormat, LogLevel, TransportKind


@dataclass(frozen=True)
class ProcessTransportConfig:
    """Spawn the server as a child process and talk over its stdio pipes."""

    kind: ClassVar[TransportKind] = TransportKind.PROCESS

    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None


@dataclass(frozen=True)
class StreamTransportConfig:
    """Reach the server over a network stream (streamable HTTP, or SSE for /sse URLs)."""

    kind: ClassVar[TransportKind] = TransportKind.STREAM

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    timeout_ms: int | None = None  # connect/read timeout for the stream itself


TransportConfig = ProcessTransportConfig | StreamTransportConfig


@dataclass(frozen=True)
class ServerDescriptor:
    """Static configuration for one tool server.

    Descriptors are replaced wholesale on config update, never mutated.
    """

    name: str
    transport: TransportConfig
    description: str | None = None
    enabled: bool = True
    priority: int = 50
    timeout_ms: int | None = None  # tool call timeout; falls back to GlobalConfig


@dataclass
class GlobalConfig:
    """Process-wide tool server settings."""

    enabled: bool = True
    default_timeout_ms: int = 10000
    max_concurrent_connections: int = 5
    retry_attempts: int = 3
    servers: list[ServerDescriptor] = field(default_factory=list)

    def get_server(self, name: str) -> ServerDescriptor | None:
        """Get a descriptor by server name."""
        for server in self.servers:
            if server.name == name:
                return server
        return None

    def enabled_servers(self) -> list[ServerDescriptor]:
        """Descriptors with enabled=True, in config order."""
        return [server for server in self.servers if server.enabled]

    def timeout_for(self, descriptor: ServerDescriptor) -> int:
        """Tool call timeout for a server in milliseconds."""
        return descriptor.timeout_ms or self.default_timeout_ms


@dataclass
class LoggingComponentsConfig:
    """Logging components configuration."""

    manager: bool = True
    server: bool = True
    tool: bool = True
    config: bool = True


@dataclass
class LoggingOptionsConfig:
    """Logging options configuration."""

    show_params: bool = True
    show_results: bool = True
    truncate_at: int = 200


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.COLORED
    components: LoggingComponentsConfig = field(default_factory=LoggingComponentsConfig)
    options: LoggingOptionsConfig = field(default_factory=LoggingOptionsConfig)


@dataclass
class TelemetryConfig:
    """Telemetry configuration (OpenTelemetry metrics)."""

    enabled: bool = True
    service_name: str = "toolmesh"


@dataclass
class MeshConfig:
    """Root configuration object."""

    mcp: GlobalConfig = field(default_factory=GlobalConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
