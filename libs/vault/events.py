"""
Event bus for client notifications.

Publishers call ``publish(event, *args)`` without knowing how many
subscribers exist. Callbacks may be plain functions or coroutine functions;
coroutine results are scheduled on the running loop. A failing subscriber is
logged and never breaks the publisher or other subscribers.

Events published by the client:
    authenticated       (credential)
    error:login         (error)
    logout              ()
    secret              (address, value)
    secret:<address>    (value)
    error               (error)
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

EVENT_AUTHENTICATED = "authenticated"
EVENT_LOGIN_ERROR = "error:login"
EVENT_LOGOUT = "logout"
EVENT_SECRET = "secret"
EVENT_ERROR = "error"


def secret_event(address: str) -> str:
    """Per-address secret event name."""
    return f"{EVENT_SECRET}:{address}"


class EventBus:
    """Subscriber registry keyed by event name."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Callable[..., Any]]] = defaultdict(list)
        self._tasks: set[asyncio.Task[Any]] = set()

    def subscribe(self, event: str, callback: Callable[..., Any]) -> Callable[[], None]:
        """Register ``callback`` for ``event``; returns a function that unsubscribes it."""
        self._subscribers[event].append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe(event, callback)

        return _unsubscribe

    def unsubscribe(self, event: str, callback: Callable[..., Any]) -> None:
        callbacks = self._subscribers.get(event)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def subscriber_count(self, event: str) -> int:
        return len(self._subscribers.get(event, ()))

    def publish(self, event: str, *args: Any) -> None:
        for callback in list(self._subscribers.get(event, ())):
            try:
                result = callback(*args)
                if inspect.iscoroutine(result):
                    task = asyncio.ensure_future(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._on_task_done(event))
            except Exception:
                logger.exception("Event subscriber failed", extra={"event": event})

    def clear(self) -> None:
        self._subscribers.clear()

    def _on_task_done(self, event: str) -> Callable[["asyncio.Task[Any]"], None]:
        def _callback(task: "asyncio.Task[Any]") -> None:
            self._tasks.discard(task)
            if not task.cancelled() and task.exception() is not None:
                logger.error(
                    "Async event subscriber failed",
                    extra={"event": event, "error": str(task.exception())},
                )

        return _callback
