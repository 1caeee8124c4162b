"""toolmesh configuration loader."""

import os
import re
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from toolmesh.errors import create_error
from toolmesh.types import LogFormat, LogLevel, TransportKind, ValidationIssue, ValidationResult

from .models import (
    GlobalConfig,
    LoggingComponentsConfig,
    LoggingConfig,
    LoggingOptionsConfig,
    MeshConfig,
    ProcessTransportConfig,
    ServerDescriptor,
    StreamTransportConfig,
    TelemetryConfig,
    TransportConfig,
)

DEFAULT_CONFIG_FILENAME = "toolmesh.yaml"

# camelCase keys used by JSON configs of the chat backend
_GLOBAL_ALIASES = {
    "defaultTimeoutMs": "default_timeout_ms",
    "defaultTimeout": "default_timeout_ms",
    "maxConcurrentConnections": "max_concurrent_connections",
    "retryAttempts": "retry_attempts",
}
_SERVER_ALIASES = {
    "timeout": "timeout_ms",
    "timeoutMs": "timeout_ms",
}
_TRANSPORT_ALIASES = {
    "type": "kind",
    "timeout": "timeout_ms",
    "timeoutMs": "timeout_ms",
}

_TRANSPORT_KINDS = {
    "process": TransportKind.PROCESS,
    "stdio": TransportKind.PROCESS,
    "stream": TransportKind.STREAM,
    "sse": TransportKind.STREAM,
    "http": TransportKind.STREAM,
    "streamable-http": TransportKind.STREAM,
}

_TOP_LEVEL_KEYS = {"mcp", "logging", "telemetry"}


def resolve_env_vars(value: str) -> str:
    """Resolve environment variable references in string.

    Supports:
    - ${VAR} - Required, error if not set
    - ${VAR:-default} - With default value
    - ${VAR:?error message} - Required with custom error

    Raises:
        MeshError(CONFIG_INVALID): If a required var is not set
    """
    pattern = r"\$\{([^}:]+)(?::([?-])([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        operator = match.group(2)  # '-' or '?' or None
        operand = match.group(3)  # default value or error message

        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value

        if operator == "-":
            return operand or ""
        if operator == "?":
            error_msg = operand or f"Required environment variable {var_name} not set"
            raise create_error("CONFIG_INVALID", detail=error_msg)
        raise create_error(
            "CONFIG_INVALID",
            detail=f"Required environment variable {var_name} not set",
        )

    return re.sub(pattern, replacer, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    else:
        return data


def _apply_aliases(data: dict[str, Any], aliases: dict[str, str]) -> dict[str, Any]:
    """Rename alias keys; an explicit canonical key wins over its alias."""
    result = {}
    for key, value in data.items():
        canonical = aliases.get(key, key)
        if canonical != key and canonical in data:
            continue
        result[canonical] = value
    return result


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def normalize_mcp_section(data: dict[str, Any]) -> dict[str, Any]:
    """Normalize alias keys of an ``mcp`` section, its servers and transports."""
    section = _apply_aliases(data, _GLOBAL_ALIASES)
    servers = section.get("servers")
    if isinstance(servers, list):
        section["servers"] = [normalize_server_entry(s) for s in servers]
    return section


def normalize_server_entry(data: Any) -> Any:
    """Normalize alias keys of one server entry."""
    if not isinstance(data, dict):
        return data
    entry = _apply_aliases(data, _SERVER_ALIASES)
    transport = entry.get("transport")
    if isinstance(transport, dict):
        entry["transport"] = _apply_aliases(transport, _TRANSPORT_ALIASES)
    return entry


def _validate_positive_int(
    section: dict[str, Any],
    key: str,
    path: str,
    errors: list[ValidationIssue],
    allow_zero: bool = False,
) -> None:
    if key not in section or section[key] is None:
        return
    value = section[key]
    minimum = 0 if allow_zero else 1
    if not _is_int(value) or value < minimum:
        qualifier = "non-negative" if allow_zero else "positive"
        errors.append(ValidationIssue(path=f"{path}.{key}", message=f"{key} must be a {qualifier} integer"))


def _validate_section_keys(
    data: dict[str, Any], key: str, model: type, path: str, errors: list[ValidationIssue]
) -> None:
    """Check a nested section maps onto the fields of its dataclass."""
    section = data.get(key)
    if section is None:
        return
    if not isinstance(section, dict):
        errors.append(ValidationIssue(path=path, message=f"{key} must be a dictionary"))
        return
    known = {f.name for f in fields(model)}
    for name in section:
        if name not in known:
            errors.append(ValidationIssue(path=f"{path}.{name}", message=f"Unknown {key} key: {name}"))


def validate_server_entry(entry: Any, path: str) -> list[ValidationIssue]:
    """Validate one (normalized) server entry dict.

    Returns:
        List of error issues, empty when valid
    """
    errors: list[ValidationIssue] = []
    if not isinstance(entry, dict):
        return [ValidationIssue(path=path, message="server entry must be a dictionary")]

    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(ValidationIssue(path=f"{path}.name", message="name is required"))

    if "enabled" in entry and not isinstance(entry["enabled"], bool):
        errors.append(ValidationIssue(path=f"{path}.enabled", message="enabled must be a boolean"))

    if "priority" in entry and not _is_int(entry["priority"]):
        errors.append(ValidationIssue(path=f"{path}.priority", message="priority must be an integer"))

    _validate_positive_int(entry, "timeout_ms", path, errors)

    transport = entry.get("transport")
    if not isinstance(transport, dict):
        errors.append(ValidationIssue(path=f"{path}.transport", message="transport is required"))
        return errors

    kind = _TRANSPORT_KINDS.get(str(transport.get("kind", "")).lower())
    if kind is None:
        errors.append(
            ValidationIssue(
                path=f"{path}.transport.kind",
                message=f"Unsupported transport kind: {transport.get('kind')!r}",
            )
        )
        return errors

    transport_path = f"{path}.transport"
    if kind == TransportKind.PROCESS:
        command = transport.get("command")
        if not isinstance(command, str) or not command.strip():
            errors.append(
                ValidationIssue(path=f"{transport_path}.command", message="command is required")
            )
        args = transport.get("args", [])
        if args is not None and (
            not isinstance(args, list) or not all(isinstance(a, str) for a in args)
        ):
            errors.append(
                ValidationIssue(path=f"{transport_path}.args", message="args must be a list of strings")
            )
        env = transport.get("env", {})
        if env is not None and not isinstance(env, dict):
            errors.append(ValidationIssue(path=f"{transport_path}.env", message="env must be a dictionary"))
    else:
        url = transport.get("url")
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            errors.append(
                ValidationIssue(
                    path=f"{transport_path}.url",
                    message="url must be an http(s) URL",
                )
            )
        headers = transport.get("headers", {})
        if headers is not None and not isinstance(headers, dict):
            errors.append(
                ValidationIssue(path=f"{transport_path}.headers", message="headers must be a dictionary")
            )
        _validate_positive_int(transport, "timeout_ms", transport_path, errors)

    return errors


def parse_transport(data: dict[str, Any]) -> TransportConfig:
    """Build the transport variant selected by ``kind``."""
    kind = _TRANSPORT_KINDS[str(data.get("kind", "")).lower()]
    if kind == TransportKind.PROCESS:
        return ProcessTransportConfig(
            command=data["command"],
            args=list(data.get("args") or []),
            env={str(k): str(v) for k, v in (data.get("env") or {}).items()},
            cwd=data.get("cwd"),
        )
    return StreamTransportConfig(
        url=data["url"],
        headers={str(k): str(v) for k, v in (data.get("headers") or {}).items()},
        timeout_ms=data.get("timeout_ms"),
    )


def parse_server_descriptor(data: dict[str, Any]) -> ServerDescriptor:
    """Build a ServerDescriptor from a server entry dict.

    Raises:
        MeshError(CONFIG_INVALID): If the entry is invalid
    """
    entry = normalize_server_entry(data)
    errors = validate_server_entry(entry, "server")
    if errors:
        raise create_error("CONFIG_INVALID", detail=_format_issues(errors))

    return ServerDescriptor(
        name=entry["name"],
        transport=parse_transport(entry["transport"]),
        description=entry.get("description"),
        enabled=entry.get("enabled", True),
        priority=entry.get("priority", 50),
        timeout_ms=entry.get("timeout_ms"),
    )


def parse_global_config(data: dict[str, Any]) -> GlobalConfig:
    """Build a GlobalConfig from an ``mcp`` section dict (validated separately)."""
    section = normalize_mcp_section(data)
    defaults = GlobalConfig()
    return GlobalConfig(
        enabled=section.get("enabled", defaults.enabled),
        default_timeout_ms=section.get("default_timeout_ms", defaults.default_timeout_ms),
        max_concurrent_connections=section.get(
            "max_concurrent_connections", defaults.max_concurrent_connections
        ),
        retry_attempts=section.get("retry_attempts", defaults.retry_attempts),
        servers=[parse_server_descriptor(s) for s in section.get("servers") or []],
    )


def validate_global_config(config: GlobalConfig) -> ValidationResult:
    """Validate an already-built GlobalConfig.

    Catches what dataclass construction cannot: duplicate names,
    non-positive limits, empty commands or URLs.
    """
    errors: list[ValidationIssue] = []

    if not _is_int(config.default_timeout_ms) or config.default_timeout_ms <= 0:
        errors.append(
            ValidationIssue(path="mcp.default_timeout_ms", message="default_timeout_ms must be positive")
        )
    if not _is_int(config.max_concurrent_connections) or config.max_concurrent_connections <= 0:
        errors.append(
            ValidationIssue(
                path="mcp.max_concurrent_connections",
                message="max_concurrent_connections must be positive",
            )
        )
    if not _is_int(config.retry_attempts) or config.retry_attempts < 0:
        errors.append(
            ValidationIssue(path="mcp.retry_attempts", message="retry_attempts must be non-negative")
        )

    seen: set[str] = set()
    for index, server in enumerate(config.servers):
        path = f"mcp.servers[{index}]"
        if not server.name:
            errors.append(ValidationIssue(path=f"{path}.name", message="name is required"))
        elif server.name in seen:
            errors.append(
                ValidationIssue(path=f"{path}.name", message=f"Duplicate server name: {server.name}")
            )
        seen.add(server.name)

        if server.timeout_ms is not None and server.timeout_ms <= 0:
            errors.append(ValidationIssue(path=f"{path}.timeout_ms", message="timeout_ms must be positive"))

        transport = server.transport
        if isinstance(transport, ProcessTransportConfig):
            if not transport.command:
                errors.append(
                    ValidationIssue(path=f"{path}.transport.command", message="command is required")
                )
        elif isinstance(transport, StreamTransportConfig):
            if not transport.url:
                errors.append(ValidationIssue(path=f"{path}.transport.url", message="url is required"))
        else:
            errors.append(
                ValidationIssue(path=f"{path}.transport", message="Unsupported transport config")
            )

    return ValidationResult(valid=not errors, errors=errors)


def ensure_valid_global_config(config: GlobalConfig) -> None:
    """Raise CONFIG_INVALID if the config does not validate."""
    result = validate_global_config(config)
    if not result.valid:
        raise create_error("CONFIG_INVALID", detail=_format_issues(result.errors))


def transport_to_dict(transport: TransportConfig) -> dict[str, Any]:
    """Serialize a transport variant, tagged with its kind."""
    if isinstance(transport, ProcessTransportConfig):
        data: dict[str, Any] = {
            "kind": transport.kind.value,
            "command": transport.command,
            "args": list(transport.args),
            "env": dict(transport.env),
        }
        if transport.cwd:
            data["cwd"] = transport.cwd
        return data
    data = {
        "kind": transport.kind.value,
        "url": transport.url,
        "headers": dict(transport.headers),
    }
    if transport.timeout_ms is not None:
        data["timeout_ms"] = transport.timeout_ms
    return data


def descriptor_to_dict(descriptor: ServerDescriptor) -> dict[str, Any]:
    """Serialize a ServerDescriptor to a config entry dict."""
    data: dict[str, Any] = {
        "name": descriptor.name,
        "enabled": descriptor.enabled,
        "priority": descriptor.priority,
        "transport": transport_to_dict(descriptor.transport),
    }
    if descriptor.description is not None:
        data["description"] = descriptor.description
    if descriptor.timeout_ms is not None:
        data["timeout_ms"] = descriptor.timeout_ms
    return data


def global_config_to_dict(config: GlobalConfig) -> dict[str, Any]:
    """Serialize a GlobalConfig to an ``mcp`` section dict."""
    return {
        "enabled": config.enabled,
        "default_timeout_ms": config.default_timeout_ms,
        "max_concurrent_connections": config.max_concurrent_connections,
        "retry_attempts": config.retry_attempts,
        "servers": [descriptor_to_dict(s) for s in config.servers],
    }


def _format_issues(issues: list[ValidationIssue]) -> str:
    return "Configuration validation failed:\n" + "\n".join(
        f"- {issue.path}: {issue.message}" for issue in issues
    )


class ConfigLoader:
    """Load and validate toolmesh configuration."""

    def __init__(self, logger: Any = None):
        """Initialize config loader.

        Args:
            logger: Optional MeshLogger instance
        """
        self._config_path: Path | None = None
        self._logger = logger

    @property
    def config_path(self) -> Path | None:
        """Path the current config was loaded from, if any."""
        return self._config_path

    def _log(self, level: LogLevel, message: str) -> None:
        if self._logger:
            self._logger._log(level, "config", message)

    def load(self, path: str | Path | None = None, use_defaults: bool = True) -> MeshConfig:
        """Load configuration from file.

        Resolution order if path not specified:
        1. TOOLMESH_CONFIG_PATH environment variable
        2. ./toolmesh.yaml
        3. ~/.toolmesh/config.yaml
        4. If use_defaults=True and no file found, use default configuration

        Args:
            path: Optional path to config file
            use_defaults: If True, use default config when no file found

        Returns:
            Loaded MeshConfig instance

        Raises:
            MeshError(CONFIG_INVALID): If file not found (when use_defaults=False) or invalid
        """
        if path is None:
            path = self._resolve_config_path()

        config_path = Path(path)

        if not config_path.exists():
            if use_defaults:
                self._log(LogLevel.INFO, "No config file found, using default configuration")
                config = self.load_defaults()
                self._config_path = config_path
                return config
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Configuration file not found: {config_path}",
            )

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Invalid YAML in config file: {e}",
            ) from e

        if not isinstance(data, dict):
            raise create_error("CONFIG_INVALID", detail="Configuration root must be a mapping")

        data = _resolve_env_vars_recursive(data)

        return self.load_from_dict(data, config_path)

    def load_defaults(self) -> MeshConfig:
        """Default configuration without a file.

        Tool servers are globally disabled until a config file enables them.
        """
        return MeshConfig(mcp=GlobalConfig(enabled=False))

    def load_from_dict(self, data: dict[str, Any], config_path: Path | None = None) -> MeshConfig:
        """Load configuration from dictionary.

        A dict without an ``mcp`` key but with ``servers`` (or other
        global keys) is treated as a bare ``mcp`` section.

        Raises:
            MeshError(CONFIG_INVALID): If configuration is invalid
        """
        data = self._wrap_bare_section(data)

        validation = self.validate(data)
        if not validation.valid:
            raise create_error("CONFIG_INVALID", detail=_format_issues(validation.errors))

        for warning in validation.warnings:
            self._log(LogLevel.WARN, warning.message)

        config = self._dict_to_config(data)

        self._config_path = config_path
        self._log(
            LogLevel.INFO,
            f"Configuration loaded successfully ({len(config.mcp.servers)} servers)",
        )
        return config

    def validate(self, data: dict[str, Any]) -> ValidationResult:
        """Validate config data without loading.

        Args:
            data: Configuration dictionary

        Returns:
            ValidationResult with errors and warnings
        """
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        data = self._wrap_bare_section(data)

        for key in data:
            if key not in _TOP_LEVEL_KEYS:
                warnings.append(
                    ValidationIssue(
                        path=key,
                        message=f"Unknown configuration key: {key}",
                        severity="warning",
                    )
                )

        if "mcp" in data:
            mcp = data["mcp"]
            if not isinstance(mcp, dict):
                errors.append(ValidationIssue(path="mcp", message="mcp must be a dictionary"))
            else:
                errors.extend(self._validate_mcp(normalize_mcp_section(mcp)))

        if "logging" in data:
            logging_section = data["logging"]
            if not isinstance(logging_section, dict):
                errors.append(ValidationIssue(path="logging", message="logging must be a dictionary"))
            else:
                level = logging_section.get("level")
                if level is not None and level not in {lvl.value for lvl in LogLevel}:
                    errors.append(
                        ValidationIssue(path="logging.level", message=f"Unknown log level: {level}")
                    )
                fmt = logging_section.get("format")
                if fmt is not None and fmt not in {f.value for f in LogFormat}:
                    errors.append(
                        ValidationIssue(path="logging.format", message=f"Unknown log format: {fmt}")
                    )
                _validate_section_keys(
                    logging_section, "components", LoggingComponentsConfig, "logging.components", errors
                )
                _validate_section_keys(
                    logging_section, "options", LoggingOptionsConfig, "logging.options", errors
                )

        _validate_section_keys(data, "telemetry", TelemetryConfig, "telemetry", errors)

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    def _validate_mcp(self, mcp: dict[str, Any]) -> list[ValidationIssue]:
        errors: list[ValidationIssue] = []

        if "enabled" in mcp and not isinstance(mcp["enabled"], bool):
            errors.append(ValidationIssue(path="mcp.enabled", message="enabled must be a boolean"))

        _validate_positive_int(mcp, "default_timeout_ms", "mcp", errors)
        _validate_positive_int(mcp, "max_concurrent_connections", "mcp", errors)
        _validate_positive_int(mcp, "retry_attempts", "mcp", errors, allow_zero=True)

        servers = mcp.get("servers", [])
        if servers is None:
            return errors
        if not isinstance(servers, list):
            errors.append(ValidationIssue(path="mcp.servers", message="servers must be a list"))
            return errors

        seen: set[str] = set()
        for index, entry in enumerate(servers):
            path = f"mcp.servers[{index}]"
            errors.extend(validate_server_entry(entry, path))
            name = entry.get("name") if isinstance(entry, dict) else None
            if isinstance(name, str):
                if name in seen:
                    errors.append(
                        ValidationIssue(path=f"{path}.name", message=f"Duplicate server name: {name}")
                    )
                seen.add(name)

        return errors

    def save(self, config: MeshConfig, path: str | Path | None = None) -> Path:
        """Write configuration to YAML.

        Args:
            config: Configuration to write
            path: Target path (defaults to the path the config was loaded from)

        Returns:
            Path written
        """
        target = Path(path) if path is not None else self._config_path
        if target is None:
            target = Path(DEFAULT_CONFIG_FILENAME)

        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w") as f:
            yaml.safe_dump(self.config_to_dict(config), f, sort_keys=False)

        self._config_path = target
        self._log(LogLevel.INFO, f"Configuration written to {target}")
        return target

    @staticmethod
    def config_to_dict(config: MeshConfig) -> dict[str, Any]:
        """Serialize a MeshConfig to a plain dict."""
        return {
            "mcp": global_config_to_dict(config.mcp),
            "logging": {
                "level": config.logging.level.value,
                "format": config.logging.format.value,
                "components": {
                    "manager": config.logging.components.manager,
                    "server": config.logging.components.server,
                    "tool": config.logging.components.tool,
                    "config": config.logging.components.config,
                },
                "options": {
                    "show_params": config.logging.options.show_params,
                    "show_results": config.logging.options.show_results,
                    "truncate_at": config.logging.options.truncate_at,
                },
            },
            "telemetry": {
                "enabled": config.telemetry.enabled,
                "service_name": config.telemetry.service_name,
            },
        }

    def _resolve_config_path(self) -> Path:
        env_path = os.environ.get("TOOLMESH_CONFIG_PATH")
        if env_path:
            return Path(env_path)

        local_path = Path(DEFAULT_CONFIG_FILENAME)
        if local_path.exists():
            return local_path

        home_path = Path.home() / ".toolmesh" / "config.yaml"
        if home_path.exists():
            return home_path

        return local_path

    @staticmethod
    def _wrap_bare_section(data: dict[str, Any]) -> dict[str, Any]:
        if "mcp" in data:
            return data
        bare_keys = {"servers", "enabled"} | set(_GLOBAL_ALIASES) | set(_GLOBAL_ALIASES.values())
        if bare_keys & set(data):
            return {"mcp": data}
        return data

    def _dict_to_config(self, data: dict[str, Any]) -> MeshConfig:
        mcp = parse_global_config(data.get("mcp") or {})

        logging_data = data.get("logging") or {}
        components = logging_data.get("components") or {}
        options = logging_data.get("options") or {}
        logging_config = LoggingConfig(
            level=LogLevel(logging_data.get("level", LogLevel.INFO.value)),
            format=LogFormat(logging_data.get("format", LogFormat.COLORED.value)),
            components=LoggingComponentsConfig(**components),
            options=LoggingOptionsConfig(**options),
        )

        telemetry_data = data.get("telemetry") or {}
        telemetry = TelemetryConfig(**telemetry_data)

        return MeshConfig(mcp=mcp, logging=logging_config, telemetry=telemetry)

