"""Retry scheduler whose timers fire only when a test says so."""

from dataclasses import dataclass, field

from toolmesh.mcp.scheduler import RetryCallback, RetryScheduler, ScheduledCall


@dataclass
class ManualCall(ScheduledCall):
    delay_seconds: float
    callback: RetryCallback
    _cancelled: bool = field(default=False)
    fired: bool = field(default=False)

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(RetryScheduler):
    """Records scheduled calls; fire_all() runs the pending ones."""

    def __init__(self) -> None:
        self.calls: list[ManualCall] = []

    def call_later(self, delay_seconds: float, callback: RetryCallback) -> ScheduledCall:
        call = ManualCall(delay_seconds, callback)
        self.calls.append(call)
        return call

    @property
    def pending(self) -> list[ManualCall]:
        return [c for c in self.calls if not c.cancelled and not c.fired]

    @property
    def delays(self) -> list[float]:
        return [c.delay_seconds for c in self.calls]

    async def fire_all(self) -> int:
        """Fire every pending call (not ones scheduled while firing)."""
        pending = self.pending
        for call in pending:
            if call.cancelled:
                continue
            call.fired = True
            await call.callback()
        return len(pending)

    async def run_until_idle(self, limit: int = 100) -> int:
        """Keep firing until nothing is pending."""
        fired = 0
        while self.pending and fired < limit:
            fired += await self.fire_all()
        return fired
