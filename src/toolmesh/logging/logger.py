"""toolmesh logger - Hierarchical colored logging for tool server connections."""

import json
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TextIO

from toolmesh.logging.colors import (
    COMPONENT_COLORS,
    CYAN,
    LIGHT_BLUE,
    RED,
    RESET,
    YELLOW,
)
from toolmesh.types import LogFormat, LogLevel


@dataclass
class LogConfig:
    """Logger configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.COLORED
    show_params: bool = True
    show_results: bool = True
    truncate_at: int = 200
    components: dict[str, bool] = field(default_factory=dict)
    output: TextIO = field(default=sys.stdout)

    def __post_init__(self) -> None:
        """Initialize default components if not provided."""
        if not self.components:
            self.components = {
                "manager": True,
                "server": True,
                "tool": True,
                "config": True,
            }


class MeshLogger:
    """Main logger facade. Creates component-specific loggers."""

    def __init__(self, config: LogConfig | None = None):
        """Initialize logger with configuration.

        Args:
            config: Logger configuration (defaults to LogConfig())
        """
        self.config = config or LogConfig()
        self._level_order = {
            LogLevel.DEBUG: 0,
            LogLevel.INFO: 1,
            LogLevel.WARN: 2,
            LogLevel.ERROR: 3,
        }

    def server(self, server_name: str) -> "ServerLogger":
        """Get a logger scoped to one tool server's connection lifecycle.

        Args:
            server_name: Server name

        Returns:
            ServerLogger instance
        """
        return ServerLogger(self, server_name)

    def tool(self, server_name: str) -> "ToolLogger":
        """Get a logger for tool calls against one server.

        Args:
            server_name: Server name

        Returns:
            ToolLogger instance
        """
        return ToolLogger(self, server_name)

    def configure(self, config: LogConfig) -> None:
        """Update configuration (for hot-reload).

        Args:
            config: New logger configuration
        """
        self.config = config

    def _should_log(self, level: LogLevel) -> bool:
        return self._level_order.get(level, 0) >= self._level_order.get(self.config.level, 1)

    def _log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Internal logging method.

        Args:
            level: Log level
            component: Component name (manager, server, tool, config)
            message: Log message
            context: Additional context data
        """
        if not self._should_log(level):
            return

        if not self.config.components.get(component, True):
            return

        if self.config.format == LogFormat.JSON:
            self._log_json(level, component, message, context)
        else:
            self._log_colored(level, component, message, context)

    def _log_json(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": LogLevel(level).value,
            "component": component,
            "message": message,
        }
        if context:
            log_entry.update(context)

        print(json.dumps(log_entry, default=str), file=self.config.output)

    def _log_colored(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        level_colors = {
            LogLevel.DEBUG: LIGHT_BLUE,
            LogLevel.INFO: CYAN,
            LogLevel.WARN: YELLOW,
            LogLevel.ERROR: RED,
        }

        color = level_colors.get(level, RESET)
        component_color = COMPONENT_COLORS.get(component, RESET)

        # Format: [COMPONENT] message
        output = f"{component_color}[{component.upper()}]{RESET} {color}{message}{RESET}"

        if context and self.config.show_params:
            context_str = str(context)
            if len(context_str) > self.config.truncate_at:
                context_str = context_str[: self.config.truncate_at] + "..."
            output += f" {LIGHT_BLUE}{context_str}{RESET}"

        print(output, file=self.config.output)


class ServerLogger:
    """Logger for one server's connection lifecycle events."""

    def __init__(self, parent: MeshLogger, server_name: str):
        """Initialize server logger.

        Args:
            parent: Parent MeshLogger instance
            server_name: Server name
        """
        self.parent = parent
        self.server_name = server_name

    def _context(self, event: str, **extra: Any) -> dict[str, Any]:
        context: dict[str, Any] = {"server": self.server_name, "event": event}
        context.update(extra)
        return context

    def connecting(self, transport_kind: str, attempt: int = 1) -> None:
        """Log connection attempt start.

        Args:
            transport_kind: Transport variant (process, stream)
            attempt: 1-based attempt number within the current failure streak
        """
        message = f"Connecting to server '{self.server_name}' via {transport_kind}"
        if attempt > 1:
            message += f" (attempt {attempt})"
        self.parent._log(
            LogLevel.INFO,
            "server",
            message,
            self._context("server_connecting", transport=transport_kind, attempt=attempt),
        )

    def connected(self, tool_count: int, duration_ms: int) -> None:
        """Log successful connection.

        Args:
            tool_count: Number of tools discovered
            duration_ms: Time spent connecting in milliseconds
        """
        duration_s = duration_ms / 1000
        self.parent._log(
            LogLevel.INFO,
            "server",
            f"Connected to server '{self.server_name}' ({tool_count} tools, {duration_s:.2f}s) ✓",
            self._context("server_connected", tool_count=tool_count, duration_ms=duration_ms),
        )

    def failed(self, error: str, attempt: int) -> None:
        """Log failed connection attempt.

        Args:
            error: Error message
            attempt: 1-based attempt number
        """
        self.parent._log(
            LogLevel.ERROR,
            "server",
            f"Failed to connect to server '{self.server_name}': {error}",
            self._context("server_failed", error=error, attempt=attempt),
        )

    def retrying(self, attempt: int, max_attempts: int, delay_ms: int) -> None:
        """Log scheduled retry.

        Args:
            attempt: Retry number (1-based)
            max_attempts: Configured retry attempts
            delay_ms: Backoff delay in milliseconds
        """
        self.parent._log(
            LogLevel.WARN,
            "server",
            f"Retrying connection to '{self.server_name}' in {delay_ms}ms "
            f"(attempt {attempt}/{max_attempts})",
            self._context(
                "server_retrying", attempt=attempt, max_attempts=max_attempts, delay_ms=delay_ms
            ),
        )

    def retries_exhausted(self, max_attempts: int) -> None:
        """Log terminal failure after the retry budget is spent."""
        self.parent._log(
            LogLevel.ERROR,
            "server",
            f"Max retry attempts ({max_attempts}) reached for '{self.server_name}'",
            self._context("server_retries_exhausted", max_attempts=max_attempts),
        )

    def disconnected(self) -> None:
        """Log disconnect."""
        self.parent._log(
            LogLevel.INFO,
            "server",
            f"Disconnected from server '{self.server_name}'",
            self._context("server_disconnected"),
        )

    def close_failed(self, error: str) -> None:
        """Log a transport that failed to close; the failure is not propagated."""
        self.parent._log(
            LogLevel.WARN,
            "server",
            f"Error closing transport for '{self.server_name}': {error}",
            self._context("transport_close_failed", error=error),
        )


class ToolLogger:
    """Logger for tool call events."""

    def __init__(self, parent: MeshLogger, server_name: str):
        """Initialize tool logger.

        Args:
            parent: Parent MeshLogger instance
            server_name: Server the tools belong to
        """
        self.parent = parent
        self.server_name = server_name

    def calling(self, tool_name: str, params: dict[str, Any] | None = None) -> None:
        """Log tool call start.

        Args:
            tool_name: Name of the tool being called
            params: Optional tool parameters
        """
        context: dict[str, Any] = {
            "server": self.server_name,
            "event": "tool_calling",
            "tool_name": tool_name,
        }
        if params:
            context["params"] = params

        self.parent._log(
            LogLevel.INFO,
            "tool",
            f"Executing tool '{tool_name}' on '{self.server_name}'",
            context,
        )

    def result(self, tool_name: str, result: Any, duration_ms: int) -> None:
        """Log tool call result.

        Args:
            tool_name: Name of the tool
            result: Tool execution result
            duration_ms: Execution duration in milliseconds
        """
        context: dict[str, Any] = {
            "server": self.server_name,
            "event": "tool_result",
            "tool_name": tool_name,
            "duration_ms": duration_ms,
        }

        if self.parent.config.show_results:
            result_str = str(result)
            if len(result_str) > self.parent.config.truncate_at:
                result_str = result_str[: self.parent.config.truncate_at] + "..."
            context["result"] = result_str

        duration_s = duration_ms / 1000
        self.parent._log(
            LogLevel.INFO,
            "tool",
            f"Tool '{tool_name}' completed ({duration_s:.2f}s) ✓",
            context,
        )

    def error(self, tool_name: str, error: str, duration_ms: int) -> None:
        """Log tool call error.

        Args:
            tool_name: Name of the tool
            error: Error message
            duration_ms: Execution duration in milliseconds
        """
        context = {
            "server": self.server_name,
            "event": "tool_error",
            "tool_name": tool_name,
            "duration_ms": duration_ms,
            "error": error,
        }

        duration_s = duration_ms / 1000
        self.parent._log(
            LogLevel.ERROR,
            "tool",
            f"Tool '{tool_name}' failed ({duration_s:.2f}s): {error}",
            context,
        )
