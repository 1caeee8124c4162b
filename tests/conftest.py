"""
Pytest configuration and shared fixtures for toolmesh tests.
"""

import io
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from toolmesh.config.models import (  # noqa: E402
    GlobalConfig,
    ProcessTransportConfig,
    ServerDescriptor,
    StreamTransportConfig,
)
from toolmesh.logging import LogConfig, MeshLogger  # noqa: E402


# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


# =============================================================================
# Configuration Fixtures
# =============================================================================


def make_descriptor(
    name: str,
    enabled: bool = True,
    timeout_ms: int | None = None,
    url: str | None = None,
    **kwargs,
) -> ServerDescriptor:
    """Build a descriptor; process transport unless a URL is given."""
    transport = (
        StreamTransportConfig(url=url)
        if url
        else ProcessTransportConfig(command="fake-server", args=[name])
    )
    return ServerDescriptor(
        name=name, transport=transport, enabled=enabled, timeout_ms=timeout_ms, **kwargs
    )


@pytest.fixture
def descriptor_factory() -> Callable[..., ServerDescriptor]:
    """Return the descriptor builder."""
    return make_descriptor


@pytest.fixture
def global_config() -> GlobalConfig:
    """Two enabled servers and one disabled, three retries."""
    return GlobalConfig(
        retry_attempts=3,
        servers=[
            make_descriptor("web"),
            make_descriptor("files"),
            make_descriptor("browser", enabled=False),
        ],
    )


# =============================================================================
# Logging Fixtures
# =============================================================================


@pytest.fixture
def log_output() -> io.StringIO:
    """Capture log lines."""
    return io.StringIO()


@pytest.fixture
def logger(log_output: io.StringIO) -> MeshLogger:
    """Logger writing to an in-memory stream."""
    return MeshLogger(LogConfig(output=log_output))


# =============================================================================
# Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "property: Property-based tests")
    config.addinivalue_line("markers", "slow: Slow tests")
