"""Management tools - let an agent inspect and configure tool servers.

Each handler returns a JSON-able dict stamped with an ISO timestamp.
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from toolmesh.config import (
    ConfigStore,
    global_config_to_dict,
    parse_global_config,
    parse_server_descriptor,
)
from toolmesh.errors import create_error, describe_exception
from toolmesh.logging import MeshLogger
from toolmesh.mcp import (
    CallExecutor,
    ConnectionManager,
    HealthMonitor,
    ServerStatus,
    ToolCall,
    ToolCatalog,
)
from toolmesh.types import ConnectionStatus, LogLevel

CONFIGURE_ACTIONS = [
    "get",
    "set",
    "add_server",
    "remove_server",
    "enable_server",
    "disable_server",
]

# Tool schemas for MCP exposure
MANAGEMENT_TOOL_SCHEMAS = [
    {
        "name": "mesh_list_servers",
        "description": "List all configured tool servers and their status",
        "inputSchema": {
            "type": "object",
            "properties": {
                "include_disabled": {
                    "type": "boolean",
                    "default": False,
                    "description": "Include disabled servers in the list",
                }
            },
        },
    },
    {
        "name": "mesh_list_tools",
        "description": "List all available tools from connected servers",
        "inputSchema": {
            "type": "object",
            "properties": {
                "server_name": {
                    "type": "string",
                    "description": "Filter tools by server name",
                }
            },
        },
    },
    {
        "name": "mesh_execute_tool",
        "description": "Execute a specific tool with given parameters",
        "inputSchema": {
            "type": "object",
            "required": ["server_name", "tool_name"],
            "properties": {
                "server_name": {
                    "type": "string",
                    "description": "Name of the server containing the tool",
                },
                "tool_name": {"type": "string", "description": "Name of the tool to execute"},
                "parameters": {
                    "type": "object",
                    "default": {},
                    "description": "Parameters to pass to the tool",
                },
            },
        },
    },
    {
        "name": "mesh_health_check",
        "description": "Check the health of tool server connections",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "mesh_configure",
        "description": "Configure tool servers and global settings",
        "inputSchema": {
            "type": "object",
            "required": ["action"],
            "properties": {
                "action": {
                    "type": "string",
                    "enum": CONFIGURE_ACTIONS,
                    "description": "Configuration action to perform",
                },
                "server_name": {
                    "type": "string",
                    "description": "Server name (required for server-specific actions)",
                },
                "server_config": {
                    "type": "object",
                    "description": "Server configuration (for add_server)",
                },
                "global_config": {
                    "type": "object",
                    "description": "Global settings, optionally with servers (for set)",
                },
            },
        },
    },
]


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


class ManagementToolRegistry:
    """Registry for management tools - routes calls to handlers."""

    def __init__(
        self,
        manager: ConnectionManager,
        catalog: ToolCatalog,
        executor: CallExecutor,
        health: HealthMonitor,
        store: ConfigStore,
        logger: MeshLogger | None = None,
    ):
        """Initialize management tool registry.

        Args:
            manager: Connection manager
            catalog: Tool catalog
            executor: Call executor
            health: Health monitor
            store: Config store applying configuration actions
            logger: Optional logger
        """
        self._manager = manager
        self._catalog = catalog
        self._executor = executor
        self._health = health
        self._store = store
        self._logger = logger
        self._handlers = self._register_handlers()

    def _register_handlers(self) -> dict[str, Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]]:
        return {
            "mesh_list_servers": self._handle_list_servers,
            "mesh_list_tools": self._handle_list_tools,
            "mesh_execute_tool": self._handle_execute_tool,
            "mesh_health_check": self._handle_health_check,
            "mesh_configure": self._handle_configure,
        }

    def get_for_mcp_exposure(self) -> list[dict[str, Any]]:
        """Return tool schemas for MCP tools/list."""
        return MANAGEMENT_TOOL_SCHEMAS

    async def call(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        """Route tool call to handler.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            Tool result; failures carry success=False and an error message

        Raises:
            MeshError(TOOL_NOT_FOUND): If no management tool has that name
        """
        handler = self._handlers.get(name)
        if not handler:
            raise create_error("TOOL_NOT_FOUND", tool_name=name, server_name="toolmesh")

        try:
            return await handler(arguments or {})
        except Exception as e:
            error = describe_exception(e)
            if self._logger:
                self._logger._log(LogLevel.ERROR, "manager", f"Management tool '{name}' failed: {error}")
            return {"success": False, "error": error, "timestamp": _timestamp()}

    async def _handle_list_servers(self, arguments: dict[str, Any]) -> dict[str, Any]:
        include_disabled = bool(arguments.get("include_disabled", False))
        config = self._manager.config

        if not config.enabled:
            return {
                "enabled": False,
                "message": "Tool servers are disabled",
                "servers": [],
                "timestamp": _timestamp(),
            }

        servers = []
        for descriptor in config.servers:
            if not descriptor.enabled and not include_disabled:
                continue
            connection = self._manager.get_connection(descriptor.name)
            if connection is not None:
                status = connection.to_status(self._manager.retry_count(descriptor.name))
            else:
                status = ServerStatus(
                    name=descriptor.name,
                    status=ConnectionStatus.DISCONNECTED,
                    connected=False,
                    enabled=descriptor.enabled,
                    transport_kind=descriptor.transport.kind.value,
                )
            entry = status.to_dict()
            entry["description"] = descriptor.description
            servers.append(entry)

        return {
            "enabled": True,
            "total_servers": len(servers),
            "connected_servers": sum(1 for s in servers if s["connected"]),
            "servers": servers,
            "timestamp": _timestamp(),
        }

    async def _handle_list_tools(self, arguments: dict[str, Any]) -> dict[str, Any]:
        server_name = arguments.get("server_name")

        if not self._manager.config.enabled:
            return {
                "enabled": False,
                "message": "Tool servers are disabled",
                "tools": [],
                "timestamp": _timestamp(),
            }

        tools = [
            {
                "name": key,
                "server_name": entry.server_name,
                "original_name": entry.original_name,
                "description": entry.tool.description or "No description available",
                "input_schema": entry.tool.input_schema,
            }
            for key, entry in self._catalog.all_tools().items()
            if server_name is None or entry.server_name == server_name
        ]

        return {
            "enabled": True,
            "total_tools": len(tools),
            "server_filter": server_name,
            "tools": tools,
            "timestamp": _timestamp(),
        }

    async def _handle_execute_tool(self, arguments: dict[str, Any]) -> dict[str, Any]:
        server_name = arguments.get("server_name")
        tool_name = arguments.get("tool_name")
        if not server_name or not tool_name:
            raise create_error(
                "CONFIG_INVALID", detail="server_name and tool_name are required"
            )
        parameters = arguments.get("parameters") or {}

        result = await self._executor.execute_tool(ToolCall(server_name, tool_name, parameters))

        response = result.to_dict()
        response.update(
            {
                "server_name": server_name,
                "parameters": parameters,
                "timestamp": _timestamp(),
            }
        )
        return response

    async def _handle_health_check(self, arguments: dict[str, Any]) -> dict[str, Any]:
        report = self._health.health_check()
        status = self._manager.get_status()
        config = self._manager.config

        return {
            "healthy": report.healthy,
            "enabled": config.enabled,
            "issues": report.issues,
            "total_servers": status.total_servers,
            "connected_servers": status.connected_servers,
            "failed_servers": sum(
                1 for c in status.connections if c.enabled and not c.connected
            ),
            "disabled_servers": sum(1 for s in config.servers if not s.enabled),
            "details": [
                {
                    "name": c.name,
                    "connected": c.connected,
                    "tool_count": c.tool_count,
                    "last_error": c.last_error,
                    "status": "healthy" if c.connected else "disconnected",
                }
                for c in status.connections
            ],
            "timestamp": _timestamp(),
        }

    async def _handle_configure(self, arguments: dict[str, Any]) -> dict[str, Any]:
        action = arguments.get("action")
        server_name = arguments.get("server_name")

        if action not in CONFIGURE_ACTIONS:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Unknown action: {action}. Expected one of {', '.join(CONFIGURE_ACTIONS)}",
            )

        response: dict[str, Any] = {"action": action, "success": True}

        if action == "get":
            response["config"] = global_config_to_dict(self._store.get())
            response["message"] = "Current configuration retrieved"

        elif action == "set":
            global_config = arguments.get("global_config")
            if not isinstance(global_config, dict):
                raise create_error(
                    "CONFIG_INVALID", detail="global_config is required for set action"
                )
            if "servers" in global_config:
                await self._store.replace(parse_global_config(global_config))
            else:
                await self._store.set_global(**global_config)
            response["message"] = "Configuration updated successfully"

        elif action == "add_server":
            server_config = arguments.get("server_config")
            if not isinstance(server_config, dict):
                raise create_error(
                    "CONFIG_INVALID", detail="server_config is required for add_server action"
                )
            entry = dict(server_config)
            if server_name:
                entry.setdefault("name", server_name)
            descriptor = parse_server_descriptor(entry)
            await self._store.add_server(descriptor)
            response["server_name"] = descriptor.name
            response["message"] = f"Server {descriptor.name} added successfully"

        else:
            if not server_name:
                raise create_error(
                    "CONFIG_INVALID", detail=f"server_name is required for {action} action"
                )
            if action == "remove_server":
                await self._store.remove_server(server_name)
                verb = "removed"
            elif action == "enable_server":
                await self._store.enable_server(server_name)
                verb = "enabled"
            else:
                await self._store.disable_server(server_name)
                verb = "disabled"
            response["server_name"] = server_name
            response["message"] = f"Server {server_name} {verb} successfully"

        response["timestamp"] = _timestamp()
        return response
