"""toolmesh application - wires all components together.

Initialization sequence:

1. Config loading
2. Logger setup
3. Metrics setup
4. Error factory
5. Connection manager (connects to tool servers)
6. Catalog, call executor and health monitor
7. Config store and management tools
"""

import os
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TextIO, TypeVar

from toolmesh.config import ConfigLoader, ConfigStore, GlobalConfig, MeshConfig
from toolmesh.errors import ErrorFactory, ErrorRegistry, create_error
from toolmesh.logging import LogConfig, MeshLogger
from toolmesh.management import ManagementToolRegistry
from toolmesh.mcp import (
    CallExecutor,
    CatalogEntry,
    ConnectionManager,
    EventBus,
    HealthMonitor,
    HealthReport,
    ManagerStatus,
    RetryScheduler,
    ToolCall,
    ToolCatalog,
    ToolResult,
    TransportFactory,
    create_transport,
)
from toolmesh.telemetry import MeshMetrics, setup_metrics

E = TypeVar("E")


class ToolMeshApplication:
    """Owns one connection manager and everything around it.

    An explicit instance replaces any process-wide singleton; tests build
    as many as they need.
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        config: MeshConfig | None = None,
        log_output: TextIO | None = None,
        transport_factory: TransportFactory = create_transport,
        scheduler: RetryScheduler | None = None,
    ):
        """Initialize application.

        Args:
            config_path: Path to config file (optional)
            config: Configuration to use instead of loading a file
            log_output: Output stream for logs (default: sys.stdout)
            transport_factory: Builds transports for descriptors
            scheduler: Retry scheduler (default: asyncio tasks)
        """
        self._config_path = config_path
        self._log_output = log_output or sys.stdout
        self._transport_factory = transport_factory
        self._scheduler = scheduler
        self._initialized = False

        # Subscriptions are accepted before initialize()
        self.events = EventBus()

        # Components (initialized in initialize())
        self.config_loader: ConfigLoader | None = None
        self.config: MeshConfig | None = config
        self.logger: MeshLogger | None = None
        self.metrics: MeshMetrics | None = None
        self.error_registry: ErrorRegistry | None = None
        self.error_factory: ErrorFactory | None = None
        self.manager: ConnectionManager | None = None
        self.catalog: ToolCatalog | None = None
        self.executor: CallExecutor | None = None
        self.health: HealthMonitor | None = None
        self.config_store: ConfigStore | None = None
        self.management_tools: ManagementToolRegistry | None = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> ManagerStatus:
        """Initialize all components and connect to enabled servers.

        Raises:
            MeshError(CONFIG_INVALID): If the configuration is invalid
        """
        if self._initialized:
            return self._require(self.manager).get_status()

        # 1. Config
        loader = ConfigLoader()
        store_path: Path | None = Path(self._config_path) if self._config_path else None
        if self.config is None:
            self.config = loader.load(self._config_path)
            store_path = loader.config_path
        config = self.config

        # 2. Logger
        log_config = LogConfig(
            level=config.logging.level,
            format=config.logging.format,
            show_params=config.logging.options.show_params,
            show_results=config.logging.options.show_results,
            truncate_at=config.logging.options.truncate_at,
            components={
                "manager": config.logging.components.manager,
                "server": config.logging.components.server,
                "tool": config.logging.components.tool,
                "config": config.logging.components.config,
            },
            output=self._log_output,
        )
        self.logger = MeshLogger(log_config)
        self.config_loader = ConfigLoader(self.logger)
        self.events.logger = self.logger

        # 3. Metrics
        telemetry_enabled = (
            os.environ.get("TOOLMESH_TELEMETRY_ENABLED", "").lower() == "true"
            or config.telemetry.enabled
        )
        if telemetry_enabled:
            self.metrics = setup_metrics(
                os.environ.get("OTEL_SERVICE_NAME", config.telemetry.service_name)
            )

        # 4. Error Registry & Factory
        self.error_registry = ErrorRegistry()
        self.error_factory = ErrorFactory(self.error_registry)

        # 5. Connection manager
        self.manager = ConnectionManager(
            config.mcp,
            transport_factory=self._transport_factory,
            scheduler=self._scheduler,
            logger=self.logger,
            metrics=self.metrics,
            events=self.events,
        )

        # 6. Catalog, executor, health
        self.catalog = ToolCatalog(self.manager.list_connections)
        self.executor = CallExecutor(
            self.manager,
            catalog=self.catalog,
            logger=self.logger,
            metrics=self.metrics,
            error_factory=self.error_factory,
        )
        self.health = HealthMonitor(self.manager)

        # 7. Config store & management tools
        self.config_store = ConfigStore(
            config, path=store_path, loader=self.config_loader, logger=self.logger
        )
        self.config_store.on_change(self.update_config)
        self.management_tools = ManagementToolRegistry(
            self.manager,
            self.catalog,
            self.executor,
            self.health,
            self.config_store,
            logger=self.logger,
        )

        self._initialized = True
        return await self.manager.initialize()

    async def update_config(self, new_config: GlobalConfig) -> ManagerStatus:
        """Apply a new tool server configuration to the running manager."""
        manager = self._require(self.manager)
        if self.config is not None:
            self.config.mcp = new_config
        return await manager.update_config(new_config)

    async def execute_tool(self, call: ToolCall) -> ToolResult:
        return await self._require(self.executor).execute_tool(call)

    async def execute_namespaced(
        self, namespaced_name: str, parameters: dict[str, Any] | None = None
    ) -> ToolResult:
        return await self._require(self.executor).execute_namespaced(namespaced_name, parameters)

    def all_tools(self) -> dict[str, CatalogEntry]:
        return self._require(self.catalog).all_tools()

    def get_status(self) -> ManagerStatus:
        return self._require(self.manager).get_status()

    def health_check(self) -> HealthReport:
        return self._require(self.health).health_check()

    def subscribe(
        self, event_type: type[E], callback: Callable[[E], Awaitable[None] | None]
    ) -> Callable[[], None]:
        """Subscribe to a lifecycle event type; returns an unsubscribe function."""
        return self.events.subscribe(event_type, callback)

    async def shutdown(self) -> None:
        """Disconnect from every server. Safe to call more than once."""
        if self.manager is not None:
            await self.manager.shutdown()

    def _require(self, component: Any) -> Any:
        if component is None:
            raise create_error("NOT_INITIALIZED", operation="ToolMeshApplication")
        return component
