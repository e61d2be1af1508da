"""In-process change notification bus."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable
from typing import Any

from raceledger.state.events import NotificationKind

_logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], Any]


class NotificationBus:
    """Best-effort, at-most-once publish/subscribe of cache mutations.

    Subscribers are called in registration order. A failing subscriber is
    logged and skipped. Coroutine subscribers are scheduled as tasks on the
    running loop and are not awaited by :meth:`publish`.
    """

    def __init__(self) -> None:
        self._subscribers: dict[NotificationKind, list[Subscriber]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def subscribe(self, kind: NotificationKind, callback: Subscriber) -> Callable[[], None]:
        """Register *callback* for *kind*; returns an unsubscribe callable."""
        self._subscribers.setdefault(kind, []).append(callback)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._subscribers.get(kind, []).remove(callback)

        return _unsubscribe

    def publish(self, kind: NotificationKind, entity: Any) -> None:
        for callback in list(self._subscribers.get(kind, ())):
            try:
                result = callback(entity)
            except Exception:
                _logger.warning("Subscriber %r failed on %s", callback, kind, exc_info=True)
                continue
            if inspect.isawaitable(result):
                self._schedule(kind, result)

    def _schedule(self, kind: NotificationKind, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _logger.warning("Dropping async subscriber on %s: no running event loop", kind)
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        async def _run() -> None:
            try:
                await awaitable
            except Exception:
                _logger.warning("Async subscriber failed on %s", kind, exc_info=True)

        task = loop.create_task(_run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def clear(self) -> None:
        self._subscribers.clear()
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()
