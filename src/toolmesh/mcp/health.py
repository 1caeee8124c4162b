"""Health monitor - aggregates connection state into a verdict."""

from datetime import UTC, datetime

from .manager import ConnectionManager
from .types import HealthReport


class HealthMonitor:
    """Polled on demand; holds no state of its own."""

    def __init__(self, manager: ConnectionManager):
        self._manager = manager

    def health_check(self) -> HealthReport:
        """Check connection health.

        Unhealthy when enabled servers are down. A transport still held by a
        disconnected server is reported but does not make the report unhealthy.
        """
        checked_at = datetime.now(UTC).isoformat()
        config = self._manager.config

        if not config.enabled:
            return HealthReport(healthy=True, issues=["disabled"], checked_at=checked_at)

        issues: list[str] = []
        healthy = True

        enabled = config.enabled_servers()
        connections = {c.name: c for c in self._manager.list_connections()}
        connected = [c for c in connections.values() if c.connected]

        if enabled and not connected:
            healthy = False
            issues.append("No servers connected")

        for descriptor in enabled:
            connection = connections.get(descriptor.name)
            if connection is None or not connection.connected:
                healthy = False
                last_error = connection.last_error if connection else None
                issues.append(
                    f"Server {descriptor.name} disconnected: {last_error or 'Unknown error'}"
                )

        for connection in connections.values():
            if connection.transport is not None and not connection.connected:
                issues.append(f"Stale transport detected for server {connection.name}")

        return HealthReport(healthy=healthy, issues=issues, checked_at=checked_at)
