"""Unit tests for configuration loading."""

from pathlib import Path

import pytest
import yaml

from toolmesh.config import (
    ConfigLoader,
    GlobalConfig,
    ProcessTransportConfig,
    ServerDescriptor,
    StreamTransportConfig,
    parse_global_config,
    parse_server_descriptor,
    resolve_env_vars,
    validate_global_config,
)
from toolmesh.errors import MeshError
from toolmesh.types import LogFormat, LogLevel

SAMPLE_CONFIG = """
mcp:
  enabled: true
  default_timeout_ms: 5000
  retry_attempts: 2
  servers:
    - name: files
      description: Local filesystem
      transport:
        kind: process
        command: npx
        args: ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"]
        env:
          DEBUG: "1"
    - name: web
      enabled: false
      timeout_ms: 2000
      transport:
        kind: stream
        url: https://search.example.com/mcp
        headers:
          Authorization: Bearer abc
logging:
  level: DEBUG
  format: json
telemetry:
  enabled: false
"""


def _write(tmp_path: Path, text: str, name: str = "toolmesh.yaml") -> Path:
    path = tmp_path / name
    path.write_text(text)
    return path


class TestLoadFile:
    """Tests for loading YAML files."""

    def test_load_full_config(self, tmp_path):
        """Test that every section is parsed into typed models."""
        config = ConfigLoader().load(_write(tmp_path, SAMPLE_CONFIG))

        assert config.mcp.enabled is True
        assert config.mcp.default_timeout_ms == 5000
        assert config.mcp.retry_attempts == 2
        assert config.mcp.max_concurrent_connections == 5

        files, web = config.mcp.servers
        assert files.name == "files"
        assert files.description == "Local filesystem"
        assert isinstance(files.transport, ProcessTransportConfig)
        assert files.transport.command == "npx"
        assert files.transport.args[0] == "-y"
        assert files.transport.env == {"DEBUG": "1"}

        assert web.enabled is False
        assert web.timeout_ms == 2000
        assert isinstance(web.transport, StreamTransportConfig)
        assert web.transport.headers == {"Authorization": "Bearer abc"}

        assert config.logging.level == LogLevel.DEBUG
        assert config.logging.format == LogFormat.JSON
        assert config.telemetry.enabled is False

    def test_records_config_path(self, tmp_path):
        path = _write(tmp_path, SAMPLE_CONFIG)
        loader = ConfigLoader()

        loader.load(path)

        assert loader.config_path == path

    def test_missing_file_uses_disabled_defaults(self, tmp_path):
        """Test that no config file means tool servers are disabled."""
        config = ConfigLoader().load(tmp_path / "missing.yaml")

        assert config.mcp.enabled is False
        assert config.mcp.servers == []

    def test_missing_file_without_defaults_raises(self, tmp_path):
        with pytest.raises(MeshError) as exc_info:
            ConfigLoader().load(tmp_path / "missing.yaml", use_defaults=False)

        assert exc_info.value.code == "CONFIG_INVALID"
        assert "not found" in exc_info.value.detail

    def test_invalid_yaml_raises(self, tmp_path):
        with pytest.raises(MeshError) as exc_info:
            ConfigLoader().load(_write(tmp_path, "mcp: [unclosed"))

        assert "Invalid YAML" in exc_info.value.detail

    def test_non_mapping_root_raises(self, tmp_path):
        with pytest.raises(MeshError):
            ConfigLoader().load(_write(tmp_path, "- just\n- a list\n"))

    def test_path_from_environment(self, tmp_path, monkeypatch):
        """Test TOOLMESH_CONFIG_PATH resolution."""
        path = _write(tmp_path, SAMPLE_CONFIG, "custom.yaml")
        monkeypatch.setenv("TOOLMESH_CONFIG_PATH", str(path))

        loader = ConfigLoader()
        config = loader.load()

        assert loader.config_path == path
        assert len(config.mcp.servers) == 2


class TestAliases:
    """Tests for alternative key spellings."""

    def test_bare_mcp_section(self):
        """Test that a dict with servers but no mcp key is accepted."""
        config = ConfigLoader().load_from_dict(
            {"servers": [{"name": "a", "transport": {"kind": "process", "command": "a-server"}}]}
        )

        assert [s.name for s in config.mcp.servers] == ["a"]

    def test_camel_case_keys(self):
        """Test camelCase keys from JSON configs."""
        config = ConfigLoader().load_from_dict(
            {
                "mcp": {
                    "defaultTimeoutMs": 1500,
                    "maxConcurrentConnections": 2,
                    "retryAttempts": 0,
                    "servers": [
                        {
                            "name": "web",
                            "timeout": 900,
                            "transport": {"type": "sse", "url": "http://localhost:9000/sse"},
                        }
                    ],
                }
            }
        )

        assert config.mcp.default_timeout_ms == 1500
        assert config.mcp.max_concurrent_connections == 2
        assert config.mcp.retry_attempts == 0
        assert config.mcp.servers[0].timeout_ms == 900
        assert isinstance(config.mcp.servers[0].transport, StreamTransportConfig)

    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            ("process", ProcessTransportConfig),
            ("stdio", ProcessTransportConfig),
            ("stream", StreamTransportConfig),
            ("http", StreamTransportConfig),
            ("streamable-http", StreamTransportConfig),
            ("SSE", StreamTransportConfig),
        ],
    )
    def test_transport_kinds(self, kind, expected):
        transport = {"kind": kind, "command": "srv", "url": "http://localhost/mcp"}
        descriptor = parse_server_descriptor({"name": "s", "transport": transport})

        assert isinstance(descriptor.transport, expected)

    def test_canonical_key_wins_over_alias(self):
        config = parse_global_config({"default_timeout_ms": 100, "defaultTimeoutMs": 200})

        assert config.default_timeout_ms == 100


class TestValidation:
    """Tests for rejecting invalid configuration."""

    def test_duplicate_names(self):
        data = {
            "mcp": {
                "servers": [
                    {"name": "web", "transport": {"kind": "process", "command": "a"}},
                    {"name": "web", "transport": {"kind": "process", "command": "b"}},
                ]
            }
        }

        with pytest.raises(MeshError) as exc_info:
            ConfigLoader().load_from_dict(data)

        assert "Duplicate server name: web" in exc_info.value.detail

    def test_missing_command(self):
        data = {"mcp": {"servers": [{"name": "a", "transport": {"kind": "process"}}]}}

        result = ConfigLoader().validate(data)

        assert result.valid is False
        assert result.errors[0].path == "mcp.servers[0].transport.command"

    def test_unknown_transport_kind(self):
        data = {"mcp": {"servers": [{"name": "a", "transport": {"kind": "carrier-pigeon"}}]}}

        result = ConfigLoader().validate(data)

        assert result.valid is False
        assert "Unsupported transport kind" in result.errors[0].message

    def test_non_http_url(self):
        data = {"mcp": {"servers": [{"name": "a", "transport": {"kind": "stream", "url": "ftp://x"}}]}}

        assert ConfigLoader().validate(data).valid is False

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("default_timeout_ms", 0),
            ("max_concurrent_connections", -1),
            ("retry_attempts", -1),
            ("default_timeout_ms", "fast"),
            ("enabled", "yes"),
        ],
    )
    def test_bad_global_values(self, key, value):
        assert ConfigLoader().validate({"mcp": {key: value}}).valid is False

    def test_zero_retry_attempts_allowed(self):
        assert ConfigLoader().validate({"mcp": {"retry_attempts": 0}}).valid is True

    def test_unknown_top_level_key_is_a_warning(self):
        result = ConfigLoader().validate({"mcp": {}, "plugins": {}})

        assert result.valid is True
        assert result.warnings[0].message == "Unknown configuration key: plugins"

    def test_bad_log_level(self):
        assert ConfigLoader().validate({"logging": {"level": "LOUD"}}).valid is False

    @pytest.mark.parametrize(
        ("data", "path"),
        [
            ({"logging": {"components": {"bogus": True}}}, "logging.components.bogus"),
            ({"logging": {"options": {"colour": "red"}}}, "logging.options.colour"),
            ({"logging": {"components": "all"}}, "logging.components"),
            ({"telemetry": {"endpoint": "http://collector:4317"}}, "telemetry.endpoint"),
        ],
    )
    def test_bad_nested_sections(self, data, path):
        result = ConfigLoader().validate({"mcp": {"servers": []}, **data})

        assert result.valid is False
        assert [issue.path for issue in result.errors] == [path]

    def test_unknown_nested_key_raises_config_invalid(self):
        """Test that a stray section key fails loading with CONFIG_INVALID."""
        with pytest.raises(MeshError) as exc_info:
            ConfigLoader().load_from_dict(
                {"mcp": {"servers": []}, "telemetry": {"endpoint": "x"}}
            )

        assert exc_info.value.code == "CONFIG_INVALID"
        assert "telemetry.endpoint" in exc_info.value.detail

    def test_known_nested_keys_load(self):
        config = ConfigLoader().load_from_dict(
            {
                "logging": {"components": {"tool": False}, "options": {"truncate_at": 50}},
                "telemetry": {"service_name": "mesh"},
            }
        )

        assert config.logging.components.tool is False
        assert config.logging.options.truncate_at == 50
        assert config.telemetry.service_name == "mesh"

    def test_validate_global_config_object(self):
        """Test validation of an already-built GlobalConfig."""
        config = GlobalConfig(
            retry_attempts=-1,
            servers=[
                ServerDescriptor(name="a", transport=ProcessTransportConfig(command="")),
                ServerDescriptor(name="b", transport=StreamTransportConfig(url="")),
            ],
        )

        result = validate_global_config(config)

        assert result.valid is False
        assert [issue.path for issue in result.errors] == [
            "mcp.retry_attempts",
            "mcp.servers[0].transport.command",
            "mcp.servers[1].transport.url",
        ]

    def test_parse_server_descriptor_rejects_invalid(self):
        with pytest.raises(MeshError) as exc_info:
            parse_server_descriptor({"name": "", "transport": {"kind": "process", "command": "x"}})

        assert exc_info.value.code == "CONFIG_INVALID"


class TestEnvironmentVariables:
    """Tests for ${VAR} resolution."""

    def test_resolves_set_variable(self, monkeypatch):
        monkeypatch.setenv("SEARCH_TOKEN", "s3cret")
        assert resolve_env_vars("Bearer ${SEARCH_TOKEN}") == "Bearer s3cret"

    def test_default_value(self, monkeypatch):
        monkeypatch.delenv("TOOLMESH_TEST_UNSET", raising=False)
        assert resolve_env_vars("${TOOLMESH_TEST_UNSET:-fallback}") == "fallback"

    def test_missing_required_raises(self, monkeypatch):
        monkeypatch.delenv("TOOLMESH_TEST_UNSET", raising=False)

        with pytest.raises(MeshError) as exc_info:
            resolve_env_vars("${TOOLMESH_TEST_UNSET}")

        assert "TOOLMESH_TEST_UNSET" in exc_info.value.detail

    def test_custom_error_message(self, monkeypatch):
        monkeypatch.delenv("TOOLMESH_TEST_UNSET", raising=False)

        with pytest.raises(MeshError) as exc_info:
            resolve_env_vars("${TOOLMESH_TEST_UNSET:?set the search token}")

        assert exc_info.value.detail == "set the search token"

    def test_resolved_in_loaded_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SEARCH_URL", "https://search.example.com/mcp")
        text = """
mcp:
  servers:
    - name: web
      transport:
        kind: stream
        url: ${SEARCH_URL}
"""
        config = ConfigLoader().load(_write(tmp_path, text))

        assert config.mcp.servers[0].transport.url == "https://search.example.com/mcp"


class TestSave:
    """Tests for writing configuration."""

    def test_save_writes_loadable_yaml(self, tmp_path):
        loader = ConfigLoader()
        config = loader.load(_write(tmp_path, SAMPLE_CONFIG))
        target = tmp_path / "out" / "saved.yaml"

        loader.save(config, target)

        data = yaml.safe_load(target.read_text())
        assert data["mcp"]["servers"][0]["transport"]["kind"] == "process"
        assert ConfigLoader().load(target).mcp == config.mcp

