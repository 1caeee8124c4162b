"""toolmesh metrics schema - OpenTelemetry conventions.

Metrics:
- Counters: tool invocations, connection attempts
- Histograms: tool invocation duration
- Gauges: connected servers, registered tools (UpDownCounters fed by deltas)

Labels/Attributes:
- server: Tool server name
- tool_name: Tool name as the server reports it
- status: Outcome (success, error, timeout / connected, failed)
- error_code: Error code when status=error

All metrics use the 'toolmesh_' prefix.
"""

from dataclasses import dataclass
from typing import Any

from opentelemetry import metrics
from opentelemetry.metrics import Counter, Histogram, UpDownCounter

# Metric prefix for all toolmesh metrics
METRIC_PREFIX = "toolmesh"


@dataclass
class MetricLabels:
    """Standard metric labels/attributes."""

    SERVER = "server"
    TOOL_NAME = "tool_name"
    STATUS = "status"
    ERROR_CODE = "error_code"

    # Status values
    STATUS_SUCCESS = "success"
    STATUS_ERROR = "error"
    STATUS_TIMEOUT = "timeout"
    STATUS_CONNECTED = "connected"
    STATUS_FAILED = "failed"


class MeshMetrics:
    """toolmesh metrics collection.

    Provides instrumentation for:
    - Tool invocations (count and duration)
    - Connection attempts
    - System state (connected servers, registered tools)
    """

    def __init__(self, meter: metrics.Meter):
        """Initialize metrics.

        Args:
            meter: OpenTelemetry Meter instance
        """
        self._meter = meter
        self._setup_counters()
        self._setup_histograms()
        self._setup_gauges()

        # Track current values for UpDownCounters (to calculate deltas)
        self._current_connected_servers = 0
        self._current_registered_tools = 0

    def _setup_counters(self) -> None:
        self.tool_invocations_total: Counter = self._meter.create_counter(
            name=f"{METRIC_PREFIX}_tool_invocations_total",
            description="Total number of tool invocations",
            unit="1",
        )

        self.connection_attempts_total: Counter = self._meter.create_counter(
            name=f"{METRIC_PREFIX}_connection_attempts_total",
            description="Total number of tool server connection attempts",
            unit="1",
        )

    def _setup_histograms(self) -> None:
        self.tool_invocation_duration_seconds: Histogram = self._meter.create_histogram(
            name=f"{METRIC_PREFIX}_tool_invocation_duration_seconds",
            description="Tool invocation duration in seconds",
            unit="s",
        )

    def _setup_gauges(self) -> None:
        """Set up gauge metrics (using UpDownCounter for gauges)."""
        self.connected_servers: UpDownCounter = self._meter.create_up_down_counter(
            name=f"{METRIC_PREFIX}_connected_servers",
            description="Number of connected tool servers",
            unit="1",
        )

        self.registered_tools: UpDownCounter = self._meter.create_up_down_counter(
            name=f"{METRIC_PREFIX}_registered_tools",
            description="Number of tools visible in the catalog",
            unit="1",
        )

    def record_tool_invocation(
        self,
        server_name: str,
        tool_name: str,
        duration_seconds: float,
        status: str,
        error_code: str | None = None,
    ) -> None:
        """Record tool invocation.

        Args:
            server_name: Server the tool belongs to
            tool_name: Tool name
            duration_seconds: Invocation duration
            status: Execution status
            error_code: Error code if status is error
        """
        labels: dict[str, Any] = {
            MetricLabels.SERVER: server_name,
            MetricLabels.TOOL_NAME: tool_name,
            MetricLabels.STATUS: status,
        }
        if error_code:
            labels[MetricLabels.ERROR_CODE] = error_code

        self.tool_invocations_total.add(1, labels)
        self.tool_invocation_duration_seconds.record(duration_seconds, labels)

    def record_connection_attempt(self, server_name: str, status: str) -> None:
        """Record the outcome of one connection attempt."""
        self.connection_attempts_total.add(
            1,
            {MetricLabels.SERVER: server_name, MetricLabels.STATUS: status},
        )

    def update_connected_servers(self, count: int) -> None:
        """Update the number of connected servers (calculates delta).

        Args:
            count: New count of connected servers
        """
        delta = count - self._current_connected_servers
        if delta != 0:
            self.connected_servers.add(delta)
        self._current_connected_servers = count

    def update_registered_tools(self, count: int) -> None:
        """Update the number of catalog tools (calculates delta).

        Args:
            count: New count of tools
        """
        delta = count - self._current_registered_tools
        if delta != 0:
            self.registered_tools.add(delta)
        self._current_registered_tools = count


def setup_metrics(service_name: str = "toolmesh", version: str | None = None) -> MeshMetrics:
    """Create MeshMetrics on a meter from the global MeterProvider.

    Without a configured provider the OpenTelemetry API hands out a no-op
    meter, so recording is always safe.
    """
    meter = metrics.get_meter(name=service_name, version=version)
    return MeshMetrics(meter)
