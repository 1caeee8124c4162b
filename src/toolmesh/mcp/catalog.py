"""Tool catalog - merged, namespaced view of tools across servers."""

from collections.abc import Callable, Iterable

from .connection import ServerConnection
from .types import CatalogEntry, ToolCapability


class ToolCatalog:
    """Read-only view over the connection table.

    Keys are ``"{server}_{tool}"``. The view is rebuilt on every read, so it
    always reflects the connections as they are now.
    """

    def __init__(self, connections: Callable[[], Iterable[ServerConnection]]):
        """Initialize catalog.

        Args:
            connections: Returns the current connections in config order
        """
        self._connections = connections

    @staticmethod
    def namespaced_name(server_name: str, tool_name: str) -> str:
        """Catalog key for a server's tool.

        A tool name that already carries the server prefix is kept as-is.
        """
        prefix = f"{server_name}_"
        if tool_name.startswith(prefix):
            return tool_name
        return prefix + tool_name

    def all_tools(self) -> dict[str, CatalogEntry]:
        """Merged namespaced map over connected servers.

        On a key collision the server later in config order wins.
        """
        merged: dict[str, CatalogEntry] = {}
        for connection in self._connections():
            if not connection.connected:
                continue
            for original_name, tool in connection.tools.items():
                key = self.namespaced_name(connection.name, original_name)
                merged[key] = CatalogEntry(
                    server_name=connection.name,
                    original_name=original_name,
                    tool=tool,
                )
        return merged

    def tools_for_server(self, server_name: str) -> dict[str, ToolCapability]:
        """Unprefixed tools of one connected server, or {}."""
        for connection in self._connections():
            if connection.name == server_name:
                return dict(connection.tools) if connection.connected else {}
        return {}

    def resolve(self, namespaced_name: str) -> tuple[str, str] | None:
        """Map a catalog key back to (server_name, original_name)."""
        entry = self.all_tools().get(namespaced_name)
        if entry is None:
            return None
        return entry.server_name, entry.original_name

    def __len__(self) -> int:
        return len(self.all_tools())
