"""Transports - open a channel to one tool server.

The default implementation uses the FastMCP client library for MCP
protocol support over stdio pipes, streamable HTTP or SSE.
"""

import shlex
from abc import ABC, abstractmethod
from collections.abc import Callable
from contextlib import AsyncExitStack
from typing import Any

from fastmcp.client import Client
from fastmcp.client.transports import (
    ClientTransport,
    SSETransport,
    StdioTransport,
    StreamableHttpTransport,
)

from toolmesh.config.models import (
    ProcessTransportConfig,
    ServerDescriptor,
    StreamTransportConfig,
)
from toolmesh.errors import create_error

from .types import ToolSchema


class Transport(ABC):
    """Bidirectional channel to one tool server."""

    @abstractmethod
    async def open(self) -> None:
        """Establish the channel and complete the protocol handshake."""

    @abstractmethod
    async def list_tools(self) -> list[ToolSchema]:
        """List the tools the server exposes."""

    @abstractmethod
    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Invoke a tool and return its result."""

    @abstractmethod
    async def close(self) -> None:
        """Release the channel. Safe to call on a transport that never opened."""


# Builds a transport for a descriptor; injected into ConnectionManager
TransportFactory = Callable[[ServerDescriptor], Transport]


class FastMCPTransport(Transport):
    """Transport backed by a FastMCP Client."""

    def __init__(self, descriptor: ServerDescriptor):
        """Initialize transport.

        Args:
            descriptor: Server configuration
        """
        self.descriptor = descriptor
        self._client: Client | None = None
        self._exit_stack: AsyncExitStack | None = None

    @property
    def name(self) -> str:
        return self.descriptor.name

    async def open(self) -> None:
        transport_source = self._get_transport_source()

        timeout = None
        config = self.descriptor.transport
        if isinstance(config, StreamTransportConfig) and config.timeout_ms:
            timeout = config.timeout_ms / 1000

        self._client = Client(
            transport=transport_source,
            timeout=timeout,
            name=f"toolmesh-{self.name}",
        )

        # Enter the client context (establishes connection)
        self._exit_stack = AsyncExitStack()
        try:
            await self._exit_stack.enter_async_context(self._client)
        except BaseException:
            self._exit_stack = None
            self._client = None
            raise

    def _get_transport_source(self) -> ClientTransport:
        """Build the FastMCP client transport for the descriptor's variant.

        Raises:
            MeshError(CONNECTION_FAILED): If the transport config is unusable
        """
        config = self.descriptor.transport

        if isinstance(config, ProcessTransportConfig):
            command = config.command
            args = list(config.args)

            # A command given as one string with its arguments
            if not args:
                try:
                    cmd_parts = shlex.split(command)
                except ValueError as e:
                    raise create_error(
                        "CONNECTION_FAILED",
                        server_name=self.name,
                        detail=f"Invalid command for server '{self.name}': {e}",
                    ) from e
                if not cmd_parts:
                    raise create_error(
                        "CONNECTION_FAILED",
                        server_name=self.name,
                        detail=f"Empty command for server '{self.name}'",
                    )
                command, args = cmd_parts[0], cmd_parts[1:]

            return StdioTransport(
                command=command,
                args=args,
                env=config.env or None,
                cwd=config.cwd,
            )

        if isinstance(config, StreamTransportConfig):
            url = config.url.rstrip("/")
            headers = config.headers or None
            if url.endswith("/sse"):
                return SSETransport(url=url, headers=headers)
            return StreamableHttpTransport(url=url, headers=headers)

        raise create_error(
            "CONNECTION_FAILED",
            server_name=self.name,
            detail=f"Transport {type(config).__name__} not supported",
        )

    async def list_tools(self) -> list[ToolSchema]:
        client = self._require_client()
        tools_result = await client.list_tools()
        return [
            ToolSchema(
                name=tool.name,
                description=tool.description or "",
                input_schema=(
                    getattr(tool, "input_schema", None) or getattr(tool, "inputSchema", None) or {}
                ),
            )
            for tool in tools_result
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Call a tool through the FastMCP client.

        Structured content is returned when the server provides it,
        otherwise the concatenated text content.

        Raises:
            MeshError(TOOL_FAILED): If the server flags the result as an error
        """
        client = self._require_client()
        result = await client.call_tool(name, arguments, raise_on_error=False)

        text_content = self._extract_content(result)

        is_error = bool(getattr(result, "is_error", False) or getattr(result, "isError", False))
        if is_error:
            raise create_error(
                "TOOL_FAILED",
                server_name=self.name,
                tool_name=name,
                message=text_content or f"Tool '{name}' returned an error",
            )

        structured = getattr(result, "structured_content", None)
        if structured is None:
            structured = getattr(result, "structuredContent", None)
        if structured is not None:
            return structured
        return text_content

    async def close(self) -> None:
        exit_stack, self._exit_stack = self._exit_stack, None
        self._client = None
        if exit_stack is not None:
            await exit_stack.aclose()

    def _require_client(self) -> Client:
        if self._client is None:
            raise create_error(
                "CONNECTION_FAILED",
                server_name=self.name,
                detail=f"Client not open for server '{self.name}'",
            )
        return self._client

    @staticmethod
    def _extract_content(result: Any) -> str:
        """Extract text content from a FastMCP call_tool result.

        Args:
            result: CallToolResult object

        Returns:
            Concatenated text content
        """
        if not result:
            return ""

        content_list = getattr(result, "content", None)
        if isinstance(content_list, list):
            text_parts = []
            for item in content_list:
                if hasattr(item, "text"):
                    text_parts.append(item.text)
                elif isinstance(item, str):
                    text_parts.append(item)
            return "\n".join(text_parts)

        if hasattr(result, "text"):
            return result.text

        return str(result)


def create_transport(descriptor: ServerDescriptor) -> Transport:
    """Default transport factory."""
    return FastMCPTransport(descriptor)
