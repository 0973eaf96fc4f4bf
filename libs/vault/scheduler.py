"""
Keyed renewal timer registry.

One armed timer per logical key (the login credential, or one secret
address). Arming a key cancels its previous timer first, so a key can never
have two pending renewals. ``cancel_all()`` is called on logout/teardown and
leaves no pending timer or running renewal task behind.

Delays are given in whole lease seconds, the unit the remote service uses for
``lease_duration``. ``time_unit`` converts them to event loop seconds.

Example:
    >>> scheduler = RenewalScheduler()
    >>> scheduler.arm(("secret", "db"), 3600, lambda: watcher.refresh(ref))
    >>> scheduler.is_armed(("secret", "db"))
    True
    >>> scheduler.cancel_all()
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

RenewalAction = Callable[[], Awaitable[object]]


@dataclass
class ScheduledRenewal:
    """A pending renewal for one key."""

    key: Hashable
    delay_seconds: float
    action: RenewalAction
    handle: asyncio.TimerHandle


class RenewalScheduler:
    """Registry of armed renewal timers, at most one per key."""

    def __init__(self, time_unit: float = 1.0) -> None:
        """
        Args:
            time_unit: Event loop seconds per lease second. 1.0 in production.
        """
        if time_unit <= 0:
            raise ValueError("time_unit must be positive")
        self.time_unit = time_unit
        self._pending: dict[Hashable, ScheduledRenewal] = {}
        self._running: set[asyncio.Task[object]] = set()

    def arm(self, key: Hashable, delay_seconds: float, action: RenewalAction) -> ScheduledRenewal:
        """Cancel any timer for ``key`` and schedule ``action`` once after the delay."""
        self.cancel(key)
        loop = asyncio.get_running_loop()
        handle = loop.call_later(delay_seconds * self.time_unit, self._fire, key)
        renewal = ScheduledRenewal(
            key=key, delay_seconds=delay_seconds, action=action, handle=handle
        )
        self._pending[key] = renewal
        logger.debug("Renewal armed", extra={"key": str(key), "delay_seconds": delay_seconds})
        return renewal

    def cancel(self, key: Hashable) -> bool:
        """Cancel the pending timer for ``key``. Returns False if none was armed."""
        renewal = self._pending.pop(key, None)
        if renewal is None:
            return False
        renewal.handle.cancel()
        logger.debug("Renewal cancelled", extra={"key": str(key)})
        return True

    def cancel_all(self) -> None:
        """Cancel every pending timer and every renewal currently running."""
        for key in list(self._pending):
            self.cancel(key)
        for task in list(self._running):
            task.cancel()
        self._running.clear()

    def is_armed(self, key: Hashable) -> bool:
        return key in self._pending

    def delay_for(self, key: Hashable) -> float | None:
        renewal = self._pending.get(key)
        return renewal.delay_seconds if renewal else None

    def keys(self) -> list[Hashable]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def _fire(self, key: Hashable) -> None:
        # Drop the entry first so the action is free to re-arm the same key.
        renewal = self._pending.pop(key, None)
        if renewal is None:
            return
        logger.info("Renewal fired", extra={"key": str(key)})
        task = asyncio.ensure_future(renewal.action())
        self._running.add(task)
        task.add_done_callback(self._on_done(key))

    def _on_done(self, key: Hashable) -> Callable[["asyncio.Task[object]"], None]:
        def _callback(task: "asyncio.Task[object]") -> None:
            self._running.discard(task)
            if task.cancelled():
                return
            error = task.exception()
            if error is not None:
                # The action already published its failure; keep it out of the loop handler.
                logger.warning(
                    "Renewal failed",
                    extra={"key": str(key), "error_type": type(error).__name__, "error": str(error)},
                )

        return _callback
