"""Test mocks for toolmesh.

Provides test doubles:
- FakeTransport / FakeTransportFactory: scripted tool server transports
- ManualScheduler: retry scheduler whose timers fire on demand
"""

from .fake_transport import FakeTransport, FakeTransportFactory
from .manual_scheduler import ManualScheduler

__all__ = ["FakeTransport", "FakeTransportFactory", "ManualScheduler"]
