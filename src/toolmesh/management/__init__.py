"""toolmesh management tools - agent-facing server inspection and configuration."""

from .tools import CONFIGURE_ACTIONS, MANAGEMENT_TOOL_SCHEMAS, ManagementToolRegistry

__all__ = [
    "ManagementToolRegistry",
    "MANAGEMENT_TOOL_SCHEMAS",
    "CONFIGURE_ACTIONS",
]
