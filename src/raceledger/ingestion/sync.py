"""Ledger event synchronization.

This module owns the "catch up, then follow" loop that keeps the cache
consistent with the ledger:

1. ``catch_up`` replays historical ``RaceCreated`` events and installs every
   race. It is a startup barrier: any failure is fatal.
2. ``start`` subscribes to the live event kinds. Subscription callbacks only
   enqueue events; a single consumer task applies them one at a time in
   arrival order, so per-race ordering holds without a global lock.

Handlers pull fresh records from the ledger instead of trusting event
arguments beyond the race id (and the winner of ``RaceFinished``).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable

from pydantic import ValidationError

from raceledger.exceptions import FatalSyncError, RaceLedgerError
from raceledger.ledger import Ledger
from raceledger.markets import MarketEngine
from raceledger.state.bus import NotificationBus
from raceledger.state.events import LedgerEvent, LedgerEventKind, NotificationKind
from raceledger.state.policy import finish_race
from raceledger.state.store import StateCache

_logger = logging.getLogger(__name__)

_LIVE_KINDS: tuple[LedgerEventKind, ...] = (
    LedgerEventKind.RACE_CREATED,
    LedgerEventKind.RACE_FINISHED,
    LedgerEventKind.BET_PLACED,
    LedgerEventKind.BETTING_POOL_SETTLED,
)


def _now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


class LedgerSynchronizer:
    """Brings the cache from empty to consistent and keeps it there."""

    def __init__(
        self,
        *,
        ledger: Ledger,
        cache: StateCache,
        engine: MarketEngine,
        bus: NotificationBus,
        from_block: int = 0,
        clock_ms: Callable[[], int] = _now_ms,
    ) -> None:
        self._ledger = ledger
        self._cache = cache
        self._engine = engine
        self._bus = bus
        self._from_block = from_block
        self._clock_ms = clock_ms
        self._queue: asyncio.Queue[LedgerEvent] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._unsubscribers: list[Callable[[], None]] = []
        self._ready = False

    @property
    def is_ready(self) -> bool:
        """Whether catch-up has completed."""
        return self._ready

    @property
    def pending(self) -> int:
        """Events waiting for the consumer."""
        return self._queue.qsize()

    # ------------------------------------------------------------------
    # Catch-up
    # ------------------------------------------------------------------

    async def catch_up(self) -> int:
        """Install every race created between ``from_block`` and the chain head.

        Returns the number of races installed. Raises :class:`FatalSyncError`
        on any ledger failure; a partial scan would leave the cache silently
        incomplete.
        """
        try:
            head = await self._ledger.get_block_number()
            _logger.info("Syncing races from block %s to %s", self._from_block, head)
            events = await self._ledger.query_events(LedgerEventKind.RACE_CREATED, self._from_block, head)
            _logger.info("Found %s RaceCreated events", len(events))
            for event in events:
                _logger.debug("Syncing race %s", event.race_id)
                await self._cache.refresh(event.race_id)
        except (RaceLedgerError, ValidationError, ValueError) as exc:
            raise FatalSyncError(f"Catch-up scan failed: {exc}") from exc

        self._ready = True
        _logger.info("Synced %s races total", len(self._cache))
        return len(events)

    # ------------------------------------------------------------------
    # Live subscription
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to live events and start the consumer task."""
        if self._consumer is not None:
            return
        for kind in _LIVE_KINDS:
            self._unsubscribers.append(self._ledger.subscribe(kind, self.enqueue))
        self._consumer = asyncio.get_running_loop().create_task(self._consume(), name="raceledger-sync")

    async def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        consumer = self._consumer
        self._consumer = None
        if consumer is not None:
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer

    def enqueue(self, event: LedgerEvent) -> None:
        self._queue.put_nowait(event)

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.handle(event)
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def handle(self, event: LedgerEvent) -> bool:
        """Apply one event. Returns ``False`` when the update was dropped.

        Failures are logged and never propagate, so one bad pull cannot stop
        the subscription loop.
        """
        try:
            if event.kind == LedgerEventKind.RACE_CREATED:
                await self._on_race_created(event)
            elif event.kind == LedgerEventKind.RACE_FINISHED:
                await self._on_race_finished(event)
            elif event.kind == LedgerEventKind.BET_PLACED:
                await self._on_pool_changed(event, NotificationKind.BETTING_UPDATED)
            elif event.kind == LedgerEventKind.BETTING_POOL_SETTLED:
                await self._on_pool_changed(event, NotificationKind.BETTING_SETTLED)
        except Exception:
            _logger.error("Dropping %s for race %s", event.kind, event.race_id, exc_info=True)
            return False
        return True

    async def _on_race_created(self, event: LedgerEvent) -> None:
        race = await self._cache.refresh(event.race_id)
        self._bus.publish(NotificationKind.RACE_CREATED, race)

    async def _on_race_finished(self, event: LedgerEvent) -> None:
        race = await self._cache.get_or_pull(event.race_id)
        finished = self._cache.put(finish_race(race, event.winner_token_id, self._clock_ms()))
        self._bus.publish(NotificationKind.RACE_FINISHED, finished)

    async def _on_pool_changed(self, event: LedgerEvent, notification: NotificationKind) -> None:
        pool = await self._cache.refresh_pool(event.race_id)
        self._engine.record_snapshot(event.race_id)
        self._bus.publish(notification, pool)
