"""Shared enumerations for toolmesh."""

from enum import Enum


class LogLevel(str, Enum):
    """Log verbosity level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Log output format."""

    COLORED = "colored"
    JSON = "json"


class TransportKind(str, Enum):
    """How a tool server is reached."""

    PROCESS = "process"  # spawned child process, stdio pipes
    STREAM = "stream"  # network endpoint (streamable HTTP or SSE)


class ConnectionStatus(str, Enum):
    """Tool server connection state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"
