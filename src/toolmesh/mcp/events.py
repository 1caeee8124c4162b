"""Lifecycle events published by the connection manager."""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from toolmesh.logging import MeshLogger
from toolmesh.types import LogLevel

from .types import ManagerStatus


@dataclass(frozen=True)
class Initialized:
    status: ManagerStatus


@dataclass(frozen=True)
class ServerConnected:
    name: str
    tool_count: int


@dataclass(frozen=True)
class ServerError:
    name: str
    error: str


@dataclass(frozen=True)
class ServerDisconnected:
    name: str


@dataclass(frozen=True)
class Shutdown:
    pass


MeshEvent = Initialized | ServerConnected | ServerError | ServerDisconnected | Shutdown

E = TypeVar("E")
EventCallback = Callable[[Any], Awaitable[None] | None]


class EventBus:
    """Typed publish/subscribe for lifecycle events.

    Callbacks may be plain functions or coroutine functions. A failing
    callback is logged and does not stop delivery to the others.
    """

    def __init__(self, logger: MeshLogger | None = None):
        self.logger = logger
        self._subscribers: dict[type, list[EventCallback]] = {}

    def subscribe(
        self, event_type: type[E], callback: Callable[[E], Awaitable[None] | None]
    ) -> Callable[[], None]:
        """Register callback for one event type.

        Returns:
            Function that removes the subscription
        """
        callbacks = self._subscribers.setdefault(event_type, [])
        callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    async def publish(self, event: MeshEvent) -> None:
        """Deliver event to its subscribers in registration order."""
        for callback in list(self._subscribers.get(type(event), [])):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                if self.logger:
                    self.logger._log(
                        LogLevel.ERROR,
                        "manager",
                        f"Event subscriber failed for {type(event).__name__}: {e}",
                    )
