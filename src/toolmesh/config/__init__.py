"""toolmesh configuration - Config loading and management."""

from .loader import (
    ConfigLoader,
    descriptor_to_dict,
    global_config_to_dict,
    parse_global_config,
    parse_server_descriptor,
    resolve_env_vars,
    validate_global_config,
)
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
from .store import ConfigStore

__all__ = [
    # Config models
    "MeshConfig",
    "GlobalConfig",
    "ServerDescriptor",
    "TransportConfig",
    "ProcessTransportConfig",
    "StreamTransportConfig",
    "LoggingConfig",
    "LoggingComponentsConfig",
    "LoggingOptionsConfig",
    "TelemetryConfig",
    # Loader
    "ConfigLoader",
    "resolve_env_vars",
    "parse_global_config",
    "parse_server_descriptor",
    "validate_global_config",
    "descriptor_to_dict",
    "global_config_to_dict",
    # Store
    "ConfigStore",
]
