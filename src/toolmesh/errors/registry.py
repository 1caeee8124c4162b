"""Error registry for creating errors from templates."""

from typing import Any

from .errors import ErrorCategory, ErrorTemplate, MeshError


class ErrorRegistry:
    """Registry of error templates. Creates errors from templates + context."""

    def __init__(self) -> None:
        """Initialize error registry with built-in templates."""
        self._templates: dict[str, ErrorTemplate] = {}
        self._load_builtin_templates()

    def get_template(self, code: str) -> ErrorTemplate | None:
        """Get template by error code.

        Args:
            code: Error code to look up

        Returns:
            ErrorTemplate if found, None otherwise
        """
        return self._templates.get(code)

    def list_codes(self) -> list[str]:
        """List all registered error codes."""
        return list(self._templates.keys())

    def register(self, template: ErrorTemplate) -> None:
        """Register (or replace) a template."""
        self._templates[template.code] = template

    def create(self, code: str, context: dict[str, Any] | None = None) -> MeshError:
        """Create error instance from template + context.

        Args:
            code: Error code
            context: Context variables for template interpolation

        Returns:
            MeshError instance

        Raises:
            ValueError: If error code not found
        """
        template = self.get_template(code)
        if not template:
            msg = f"Unknown error code: {code}"
            raise ValueError(msg)

        context = context or {}

        message = self._interpolate(template.message_template, context)
        detail = context.get("detail") or self._interpolate(template.detail_template, context)
        suggestion = self._interpolate(template.suggestion_template, context)

        if message is None:
            message = f"Error {code}"

        return MeshError(
            code=template.code,
            category=template.category,
            message=message,
            detail=detail,
            suggestion=suggestion,
            retryable=template.default_retryable,
            server_name=context.get("server_name"),
            tool_name=context.get("tool_name"),
        )

    def _interpolate(self, template: str | None, context: dict[str, Any]) -> str | None:
        """Safe string interpolation.

        A template referencing a missing variable is returned as-is.
        """
        if template is None:
            return None

        try:
            return template.format(**context)
        except KeyError:
            return template

    def _load_builtin_templates(self) -> None:
        """Load hardcoded built-in templates."""
        # VALIDATION Errors
        self._templates["CONFIG_INVALID"] = ErrorTemplate(
            code="CONFIG_INVALID",
            category=ErrorCategory.VALIDATION,
            message_template="Invalid configuration",
            detail_template="The tool server configuration is invalid",
            suggestion_template="Check the configuration file and fix errors",
        )

        # CONNECTION Errors
        self._templates["CONNECTION_FAILED"] = ErrorTemplate(
            code="CONNECTION_FAILED",
            category=ErrorCategory.CONNECTION,
            message_template="Failed to connect to server '{server_name}'",
            detail_template="Could not establish a transport to the tool server",
            suggestion_template="Check that the server command or URL is correct and reachable",
            default_retryable=True,
        )

        self._templates["TRANSPORT_CLOSE_FAILED"] = ErrorTemplate(
            code="TRANSPORT_CLOSE_FAILED",
            category=ErrorCategory.CONNECTION,
            message_template="Error closing transport for server '{server_name}'",
            detail_template="The transport did not close cleanly",
        )

        # TOOL Errors
        self._templates["SERVER_NOT_FOUND"] = ErrorTemplate(
            code="SERVER_NOT_FOUND",
            category=ErrorCategory.TOOL,
            message_template="Server not found: {server_name}",
            detail_template="No connection exists for the requested server",
            suggestion_template="Check the server name against the configured servers",
        )

        self._templates["SERVER_NOT_CONNECTED"] = ErrorTemplate(
            code="SERVER_NOT_CONNECTED",
            category=ErrorCategory.TOOL,
            message_template="Server not connected: {server_name}",
            detail_template="The server is configured but its connection is down",
            suggestion_template="Check the server health or reconnect it",
            default_retryable=True,
        )

        self._templates["TOOL_NOT_FOUND"] = ErrorTemplate(
            code="TOOL_NOT_FOUND",
            category=ErrorCategory.TOOL,
            message_template="Tool not found: {tool_name} on server {server_name}",
            detail_template="The server does not expose the requested tool",
            suggestion_template="List the server's tools and check the tool name",
        )

        self._templates["TOOL_TIMEOUT"] = ErrorTemplate(
            code="TOOL_TIMEOUT",
            category=ErrorCategory.TOOL,
            message_template="Tool execution timeout",
            detail_template="The tool did not respond within {timeout_ms}ms",
            suggestion_template="Increase the server timeout or check if the tool is stuck",
            default_retryable=True,
        )

        self._templates["TOOL_FAILED"] = ErrorTemplate(
            code="TOOL_FAILED",
            category=ErrorCategory.TOOL,
            message_template="{message}",
            detail_template="The tool raised an error during execution",
            suggestion_template="Check the tool server logs for more details",
        )

        # SYSTEM Errors
        self._templates["NOT_INITIALIZED"] = ErrorTemplate(
            code="NOT_INITIALIZED",
            category=ErrorCategory.SYSTEM,
            message_template="Connection manager not initialized",
            detail_template="{operation} was called before initialize()",
            suggestion_template="Call initialize() once at application startup",
        )

        self._templates["INTERNAL_ERROR"] = ErrorTemplate(
            code="INTERNAL_ERROR",
            category=ErrorCategory.SYSTEM,
            message_template="Internal toolmesh error",
            detail_template="An unexpected error occurred",
            suggestion_template="Check the logs and report this issue",
        )
