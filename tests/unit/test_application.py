"""Unit tests for ToolMeshApplication wiring."""

import io

import pytest

from tests.mocks import FakeTransportFactory, ManualScheduler
from toolmesh import ToolMeshApplication
from toolmesh.config import GlobalConfig, MeshConfig
from toolmesh.errors import MeshError
from toolmesh.mcp import Initialized, ServerDisconnected, Shutdown, ToolCall

CONFIG_YAML = """
mcp:
  retry_attempts: 1
  servers:
    - name: web
      transport:
        kind: process
        command: fake-server web
    - name: files
      transport:
        kind: process
        command: fake-server files
logging:
  format: json
"""


def _factory():
    return FakeTransportFactory(
        tools={"web": {"search": lambda a: "hits"}, "files": {"read": lambda a: "data"}}
    )


def _app(global_config, factory=None, scheduler=None):
    return ToolMeshApplication(
        config=MeshConfig(mcp=global_config),
        log_output=io.StringIO(),
        transport_factory=factory or _factory(),
        scheduler=scheduler or ManualScheduler(),
    )


class TestLifecycle:
    """Tests for initialize and shutdown."""

    @pytest.mark.asyncio
    async def test_initialize_connects(self, global_config):
        app = _app(global_config)

        status = await app.initialize()

        assert app.is_initialized
        assert status.connected_servers == 2
        assert set(app.all_tools()) == {"web_search", "files_read"}
        assert app.health_check().healthy is True

    @pytest.mark.asyncio
    async def test_subscribe_before_initialize(self, global_config):
        """Test that early subscribers see the Initialized event."""
        app = _app(global_config)
        seen = []
        app.subscribe(Initialized, seen.append)

        await app.initialize()

        assert len(seen) == 1
        assert seen[0].status.connected_servers == 2

    @pytest.mark.asyncio
    async def test_initialize_twice_returns_status(self, global_config):
        factory = _factory()
        app = _app(global_config, factory)

        await app.initialize()
        status = await app.initialize()

        assert status.connected_servers == 2
        assert len(factory.created) == 2

    @pytest.mark.asyncio
    async def test_shutdown_twice(self, global_config):
        app = _app(global_config)
        seen = []
        app.subscribe(Shutdown, seen.append)
        await app.initialize()

        await app.shutdown()
        await app.shutdown()

        assert app.get_status().total_servers == 0
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_shutdown_before_initialize_is_safe(self, global_config):
        await _app(global_config).shutdown()

    def test_accessors_require_initialize(self, global_config):
        app = _app(global_config)

        with pytest.raises(MeshError) as exc_info:
            app.get_status()

        assert exc_info.value.code == "NOT_INITIALIZED"


class TestCalls:
    """Tests for tool calls through the application."""

    @pytest.mark.asyncio
    async def test_execute_tool(self, global_config):
        app = _app(global_config)
        await app.initialize()

        result = await app.execute_tool(ToolCall("files", "read", {"path": "/tmp"}))

        assert result.success is True
        assert result.result == "data"

    @pytest.mark.asyncio
    async def test_execute_namespaced(self, global_config):
        app = _app(global_config)
        await app.initialize()

        result = await app.execute_namespaced("web_search", {"q": "x"})

        assert result.result == "hits"

    @pytest.mark.asyncio
    async def test_management_tools_wired(self, global_config):
        app = _app(global_config)
        await app.initialize()

        result = await app.management_tools.call("mesh_list_tools")

        assert result["total_tools"] == 2


class TestConfigChanges:
    """Tests for live reconfiguration."""

    @pytest.mark.asyncio
    async def test_config_store_change_reaches_manager(self, global_config):
        app = _app(global_config)
        seen = []
        app.subscribe(ServerDisconnected, seen.append)
        await app.initialize()

        await app.config_store.remove_server("web")

        assert seen == [ServerDisconnected("web")]
        assert app.get_status().total_servers == 1
        assert app.config.mcp.get_server("web") is None

    @pytest.mark.asyncio
    async def test_update_config(self, global_config, descriptor_factory):
        app = _app(global_config)
        await app.initialize()
        new_config = GlobalConfig(
            retry_attempts=global_config.retry_attempts,
            servers=[*global_config.servers, descriptor_factory("extra")],
        )

        status = await app.update_config(new_config)

        assert status.total_servers == 3


class TestConfigFile:
    """Tests for loading configuration from a file."""

    @pytest.mark.asyncio
    async def test_loads_file_and_persists_changes(self, tmp_path):
        path = tmp_path / "toolmesh.yaml"
        path.write_text(CONFIG_YAML)
        output = io.StringIO()
        app = ToolMeshApplication(
            config_path=path,
            log_output=output,
            transport_factory=_factory(),
            scheduler=ManualScheduler(),
        )

        status = await app.initialize()
        assert status.connected_servers == 2
        assert app.config.mcp.retry_attempts == 1
        assert '"component": "server"' in output.getvalue()

        await app.management_tools.call(
            "mesh_configure", {"action": "disable_server", "server_name": "files"}
        )

        assert "enabled: false" in path.read_text()
        assert app.get_status().total_servers == 1
