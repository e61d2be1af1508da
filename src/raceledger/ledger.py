"""Ledger collaborator interface and its JSON-RPC / MQTT implementation."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any, Protocol

from raceledger._api import betting as _betting_api
from raceledger._api import races as _races_api
from raceledger._api import telemetry as _telemetry_api
from raceledger._mqtt import LedgerEventRuntime
from raceledger._transport import Transport
from raceledger.config import RaceLedgerConfig
from raceledger.models.telemetry import EncodedTelemetry
from raceledger.state.events import LedgerEvent, LedgerEventKind

_logger = logging.getLogger(__name__)

EventHandler = Callable[[LedgerEvent], None]


class Ledger(Protocol):
    """What the service consumes from the ledger.

    Records are returned raw; parsing into models happens in the cache so a
    malformed record surfaces as a pull failure.
    """

    async def get_race(self, race_id: int) -> Any: ...

    async def get_betting_pool(self, race_id: int) -> Any: ...

    async def get_odds(self, race_id: int, token_id: int) -> float: ...

    async def get_block_number(self) -> int: ...

    async def get_telemetry_snapshots(self, race_id: int, token_id: int, limit: int) -> list[Any]: ...

    async def query_events(self, kind: LedgerEventKind, from_block: int, to_block: int) -> list[LedgerEvent]: ...

    def subscribe(self, kind: LedgerEventKind, handler: EventHandler) -> Callable[[], None]: ...

    async def submit_telemetry_update(self, race_id: int, token_id: int, telemetry: EncodedTelemetry) -> str: ...


class LedgerClient:
    """Ledger gateway client.

    Request/response calls go through a JSON-RPC :class:`Transport`; live
    events arrive through the MQTT relay, which is connected lazily on the
    first :meth:`subscribe`.
    """

    def __init__(
        self,
        config: RaceLedgerConfig,
        transport: Transport,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._loop = loop
        self._runtime: LedgerEventRuntime | None = None
        self._handlers: dict[LedgerEventKind, list[EventHandler]] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_race(self, race_id: int) -> Any:
        return await _races_api.fetch_race_record(self._config, self._transport, race_id)

    async def get_betting_pool(self, race_id: int) -> Any:
        return await _betting_api.fetch_betting_pool_record(self._config, self._transport, race_id)

    async def get_odds(self, race_id: int, token_id: int) -> float:
        return await _betting_api.fetch_odds(self._config, self._transport, race_id, token_id)

    async def get_block_number(self) -> int:
        return await _races_api.fetch_block_number(self._transport)

    async def get_telemetry_snapshots(self, race_id: int, token_id: int, limit: int) -> list[Any]:
        return await _telemetry_api.fetch_telemetry_snapshots(self._config, self._transport, race_id, token_id, limit)

    async def query_events(self, kind: LedgerEventKind, from_block: int, to_block: int) -> list[LedgerEvent]:
        return await _races_api.query_events(self._config, self._transport, kind, from_block, to_block)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def submit_telemetry_update(self, race_id: int, token_id: int, telemetry: EncodedTelemetry) -> str:
        return await _telemetry_api.submit_telemetry_update(self._config, self._transport, race_id, token_id, telemetry)

    # ------------------------------------------------------------------
    # Live events
    # ------------------------------------------------------------------

    def subscribe(self, kind: LedgerEventKind, handler: EventHandler) -> Callable[[], None]:
        """Register *handler* for live events of *kind*.

        Handlers run on the event loop. Returns a callable that removes the
        registration.
        """
        self._handlers.setdefault(kind, []).append(handler)
        self._ensure_runtime_started()

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._handlers.get(kind, []).remove(handler)

        return _unsubscribe

    def dispatch(self, event: LedgerEvent) -> None:
        """Deliver *event* to the handlers registered for its kind."""
        for handler in list(self._handlers.get(event.kind, ())):
            try:
                handler(event)
            except Exception:
                _logger.warning("Ledger event handler failed for %s", event.kind, exc_info=True)

    def _ensure_runtime_started(self) -> None:
        """Best-effort relay startup (failures must not break RPC reads)."""
        if not self._config.events_enabled:
            return
        if self._runtime is not None and self._runtime.is_running:
            return
        loop = self._loop or asyncio.get_running_loop()
        runtime = LedgerEventRuntime(loop=loop, config=self._config, on_event=self.dispatch, logger=_logger)
        try:
            runtime.start()
        except OSError:
            _logger.error(
                "Event relay %s:%s unreachable; live updates disabled",
                self._config.events_host,
                self._config.events_port,
                exc_info=True,
            )
            return
        self._runtime = runtime

    def close(self) -> None:
        runtime = self._runtime
        self._runtime = None
        if runtime is not None:
            runtime.stop()
        self._handlers.clear()
