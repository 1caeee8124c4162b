"""toolmesh logging - Hierarchical colored logging for tool server management."""

from .colors import (
    CYAN,
    GREEN,
    LIGHT_BLUE,
    MAGENTA,
    ORANGE,
    RED,
    RESET,
    YELLOW,
)
from .logger import (
    LogConfig,
    MeshLogger,
    ServerLogger,
    ToolLogger,
)

__all__ = [
    # Logger classes
    "MeshLogger",
    "ServerLogger",
    "ToolLogger",
    "LogConfig",
    # Colors
    "RESET",
    "GREEN",
    "RED",
    "YELLOW",
    "ORANGE",
    "LIGHT_BLUE",
    "CYAN",
    "MAGENTA",
]
