"""Mutable holder for the active tool server configuration.

Every mutation builds a new GlobalConfig, validates it, persists it to the
YAML file the config was loaded from (if any) and notifies change callbacks.
"""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

from toolmesh.errors import create_error
from toolmesh.types import LogLevel

from .loader import ConfigLoader, ensure_valid_global_config, normalize_mcp_section
from .models import GlobalConfig, MeshConfig, ServerDescriptor

ConfigChangeCallback = Callable[[GlobalConfig], Awaitable[None] | None]

# Fields of GlobalConfig that set_global may change
_SETTABLE_FIELDS = (
    "enabled",
    "default_timeout_ms",
    "max_concurrent_connections",
    "retry_attempts",
)


class ConfigStore:
    """Holds the current MeshConfig and applies configuration actions."""

    def __init__(
        self,
        config: MeshConfig | None = None,
        path: str | Path | None = None,
        loader: ConfigLoader | None = None,
        logger: Any = None,
    ):
        """Initialize config store.

        Args:
            config: Initial configuration (defaults to MeshConfig())
            path: YAML file to persist changes to; None keeps changes in memory
            loader: ConfigLoader used for writing
            logger: Optional MeshLogger instance
        """
        self._config = config or MeshConfig()
        self._path = Path(path) if path is not None else None
        self._loader = loader or ConfigLoader(logger)
        self._logger = logger
        self._callbacks: list[ConfigChangeCallback] = []

    @property
    def path(self) -> Path | None:
        return self._path

    def _log(self, level: LogLevel, message: str, context: dict[str, Any] | None = None) -> None:
        if self._logger:
            self._logger._log(level, "config", message, context)

    def on_change(self, callback: ConfigChangeCallback) -> None:
        """Register a callback invoked with the new GlobalConfig after each change."""
        self._callbacks.append(callback)

    def get(self) -> GlobalConfig:
        """Current tool server configuration."""
        return self._config.mcp

    def get_full(self) -> MeshConfig:
        """Current root configuration."""
        return self._config

    async def reload(self) -> GlobalConfig:
        """Re-read the config file and apply it without writing it back.

        Raises:
            MeshError(CONFIG_INVALID): If no path is set, or the file is missing or invalid
        """
        if self._path is None:
            raise create_error("CONFIG_INVALID", detail="No config path set, cannot reload")

        config = self._loader.load(self._path, use_defaults=False)
        ensure_valid_global_config(config.mcp)

        self._config = config
        self._log(LogLevel.INFO, "Configuration reloaded", {"servers": len(config.mcp.servers)})
        await self._notify(config.mcp)
        return config.mcp

    async def set_global(self, **fields: Any) -> GlobalConfig:
        """Update global settings (camelCase aliases accepted).

        Raises:
            MeshError(CONFIG_INVALID): On unknown fields or invalid values
        """
        normalized = normalize_mcp_section(fields)
        normalized.pop("servers", None)
        unknown = sorted(set(normalized) - set(_SETTABLE_FIELDS))
        if unknown:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Unknown global settings: {', '.join(unknown)}",
            )
        return await self._apply(replace(self.get(), **normalized), "Global settings updated")

    async def replace(self, config: GlobalConfig) -> GlobalConfig:
        """Replace the whole tool server configuration."""
        return await self._apply(config, "Configuration replaced")

    async def add_server(self, descriptor: ServerDescriptor) -> GlobalConfig:
        """Add a server, replacing any existing server of the same name."""
        current = self.get()
        servers = list(current.servers)
        for index, server in enumerate(servers):
            if server.name == descriptor.name:
                servers[index] = descriptor
                break
        else:
            servers.append(descriptor)
        return await self._apply(
            replace(current, servers=servers), f"Server '{descriptor.name}' added"
        )

    async def remove_server(self, name: str) -> GlobalConfig:
        """Remove a server.

        Raises:
            MeshError(SERVER_NOT_FOUND): If no server has that name
        """
        current = self._require_server(name)
        servers = [s for s in current.servers if s.name != name]
        return await self._apply(replace(current, servers=servers), f"Server '{name}' removed")

    async def enable_server(self, name: str) -> GlobalConfig:
        """Set enabled=True on a server."""
        return await self._set_enabled(name, True)

    async def disable_server(self, name: str) -> GlobalConfig:
        """Set enabled=False on a server."""
        return await self._set_enabled(name, False)

    async def _set_enabled(self, name: str, enabled: bool) -> GlobalConfig:
        current = self._require_server(name)
        servers = [replace(s, enabled=enabled) if s.name == name else s for s in current.servers]
        state = "enabled" if enabled else "disabled"
        return await self._apply(replace(current, servers=servers), f"Server '{name}' {state}")

    def _require_server(self, name: str) -> GlobalConfig:
        current = self.get()
        if current.get_server(name) is None:
            raise create_error("SERVER_NOT_FOUND", server_name=name)
        return current

    async def _apply(self, new_mcp: GlobalConfig, message: str) -> GlobalConfig:
        ensure_valid_global_config(new_mcp)

        self._config = replace(self._config, mcp=new_mcp)
        if self._path is not None:
            self._loader.save(self._config, self._path)

        self._log(LogLevel.INFO, message, {"servers": len(new_mcp.servers)})

        await self._notify(new_mcp)
        return new_mcp

    async def _notify(self, new_mcp: GlobalConfig) -> None:
        for callback in self._callbacks:
            result = callback(new_mcp)
            if inspect.isawaitable(result):
                await result
