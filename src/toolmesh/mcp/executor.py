"""Call executor - runs one tool call under a deadline."""

import asyncio
import time
from typing import Any

from toolmesh.errors import ErrorFactory, MeshError, create_error
from toolmesh.logging import MeshLogger
from toolmesh.telemetry import MeshMetrics, MetricLabels

from .catalog import ToolCatalog
from .manager import ConnectionManager
from .types import ToolCall, ToolResult


class CallExecutor:
    """Dispatches tool calls to connected servers.

    Failures are returned as ToolResult(success=False), never raised.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        catalog: ToolCatalog | None = None,
        logger: MeshLogger | None = None,
        metrics: MeshMetrics | None = None,
        error_factory: ErrorFactory | None = None,
    ):
        """Initialize call executor.

        Args:
            manager: Connection manager owning the connection table
            catalog: Catalog used to resolve namespaced names
            logger: Optional logger
            metrics: Optional metrics
            error_factory: Maps tool exceptions to error codes
        """
        self._manager = manager
        self._catalog = catalog or ToolCatalog(manager.list_connections)
        self._logger = logger
        self._metrics = metrics
        self._error_factory = error_factory or ErrorFactory()

    async def execute_tool(self, call: ToolCall) -> ToolResult:
        """Execute a tool call.

        Resolution order: server exists, server connected, tool exists.

        Raises:
            MeshError(NOT_INITIALIZED): If the manager was never initialized
        """
        if not self._manager.is_initialized:
            raise create_error("NOT_INITIALIZED", operation="execute_tool")

        start_time = time.monotonic()

        connection = self._manager.get_connection(call.server_id)
        if connection is None:
            return self._failure(
                call, create_error("SERVER_NOT_FOUND", server_name=call.server_id), start_time
            )
        if not connection.connected:
            return self._failure(
                call, create_error("SERVER_NOT_CONNECTED", server_name=call.server_id), start_time
            )

        tool = connection.tools.get(call.tool_name)
        if tool is None:
            return self._failure(
                call,
                create_error(
                    "TOOL_NOT_FOUND", server_name=call.server_id, tool_name=call.tool_name
                ),
                start_time,
            )

        timeout_ms = self._manager.config.timeout_for(connection.descriptor)
        tool_log = self._logger.tool(call.server_id) if self._logger else None
        if tool_log:
            tool_log.calling(call.tool_name, call.parameters)

        try:
            # wait_for cancels the invocation when the deadline passes
            result = await asyncio.wait_for(tool.invoke(call.parameters), timeout=timeout_ms / 1000)
        except TimeoutError:
            error = create_error(
                "TOOL_TIMEOUT",
                server_name=call.server_id,
                tool_name=call.tool_name,
                timeout_ms=timeout_ms,
            )
            return self._failure(call, error, start_time, status=MetricLabels.STATUS_TIMEOUT)
        except Exception as e:
            error = self._error_factory.from_exception(
                e, server_name=call.server_id, tool_name=call.tool_name
            )
            message = error.message if isinstance(e, MeshError) else (str(e) or type(e).__name__)
            return self._failure(call, error, start_time, message=message)

        duration_ms = _elapsed_ms(start_time)
        if tool_log:
            tool_log.result(call.tool_name, result, duration_ms)
        if self._metrics:
            self._metrics.record_tool_invocation(
                call.server_id, call.tool_name, duration_ms / 1000, MetricLabels.STATUS_SUCCESS
            )

        return ToolResult(
            success=True,
            server_id=call.server_id,
            tool_name=call.tool_name,
            execution_time_ms=duration_ms,
            result=result,
        )

    async def execute_namespaced(
        self, namespaced_name: str, parameters: dict[str, Any] | None = None
    ) -> ToolResult:
        """Execute a tool by its catalog key."""
        resolved = self._catalog.resolve(namespaced_name)
        if resolved is None:
            if not self._manager.is_initialized:
                raise create_error("NOT_INITIALIZED", operation="execute_namespaced")
            return ToolResult(
                success=False,
                server_id="",
                tool_name=namespaced_name,
                execution_time_ms=0,
                error=f"Tool not found: {namespaced_name}",
                error_code="TOOL_NOT_FOUND",
            )

        server_name, tool_name = resolved
        return await self.execute_tool(ToolCall(server_name, tool_name, parameters or {}))

    def _failure(
        self,
        call: ToolCall,
        error: MeshError,
        start_time: float,
        status: str = MetricLabels.STATUS_ERROR,
        message: str | None = None,
    ) -> ToolResult:
        duration_ms = _elapsed_ms(start_time)
        message = message or error.message

        if self._logger:
            self._logger.tool(call.server_id).error(call.tool_name, message, duration_ms)
        if self._metrics:
            self._metrics.record_tool_invocation(
                call.server_id, call.tool_name, duration_ms / 1000, status, error.code
            )

        return ToolResult(
            success=False,
            server_id=call.server_id,
            tool_name=call.tool_name,
            execution_time_ms=duration_ms,
            error=message,
            error_code=error.code,
        )


def _elapsed_ms(start_time: float) -> int:
    return max(0, int((time.monotonic() - start_time) * 1000))
