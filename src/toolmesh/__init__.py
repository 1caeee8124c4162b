"""toolmesh - Tool-server connection manager.

Connects to any number of MCP tool servers, merges their tools into one
namespaced catalog and dispatches calls to them under timeout control.
"""

from toolmesh.application import ToolMeshApplication

__version__ = "0.1.0"
__all__ = ["__version__", "ToolMeshApplication"]
