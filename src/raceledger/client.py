"""High-level async service over the racing ledger."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import aiohttp
from pydantic import ValidationError

from raceledger import codec
from raceledger._constants import DEFAULT_HISTORY_LIMIT, DEFAULT_TELEMETRY_LIMIT
from raceledger._transport import JsonRpcTransport
from raceledger.config import RaceLedgerConfig
from raceledger.exceptions import EncodeOutOfBoundsError, RaceLedgerError, TransientPullError
from raceledger.ingestion.sync import LedgerSynchronizer
from raceledger.ledger import Ledger, LedgerClient
from raceledger.markets import MarketEngine
from raceledger.models.betting import BettingPool
from raceledger.models.command_responses import SubmissionResult
from raceledger.models.market import DashboardSnapshot, OddsHistoryEntry, RaceMarket
from raceledger.models.race import Race
from raceledger.models.telemetry import TelemetryReading, TelemetrySnapshot
from raceledger.state.bus import NotificationBus, Subscriber
from raceledger.state.events import NotificationKind
from raceledger.state.store import StateCache

_logger = logging.getLogger(__name__)


class RaceLedgerService:
    """Ledger-backed race state, markets and telemetry.

    Usage::

        async with RaceLedgerService(RaceLedgerConfig.from_env()) as service:
            await service.start()
            races = service.list_races()

    A pre-built :class:`Ledger` can be injected (tests, alternative
    gateways); otherwise a :class:`LedgerClient` is created on entry.
    """

    def __init__(
        self,
        config: RaceLedgerConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        ledger: Ledger | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._ledger: Ledger | None = ledger
        self._owned_ledger: LedgerClient | None = None
        self._cache: StateCache | None = None
        self._engine: MarketEngine | None = None
        self._bus = NotificationBus()
        self._sync: LedgerSynchronizer | None = None
        if ledger is not None:
            self._build(ledger)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RaceLedgerService:
        if self._ledger is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            transport = JsonRpcTransport(self._config, self._http_session)
            self._owned_ledger = LedgerClient(self._config, transport)
            self._build(self._owned_ledger)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def _build(self, ledger: Ledger) -> None:
        self._ledger = ledger
        self._cache = StateCache(ledger)
        self._engine = MarketEngine(self._cache, capacity=self._config.odds_history_capacity)
        self._sync = LedgerSynchronizer(
            ledger=ledger,
            cache=self._cache,
            engine=self._engine,
            bus=self._bus,
            from_block=self._config.from_block,
        )

    async def start(self) -> None:
        """Run the catch-up scan, then follow live events.

        Raises :class:`FatalSyncError` if catch-up fails; the service stays
        not ready and serves no reads.
        """
        sync = self._require_sync()
        await sync.catch_up()
        if self._config.events_enabled:
            sync.start()

    async def close(self) -> None:
        if self._sync is not None:
            await self._sync.stop()
        self._bus.clear()
        if self._owned_ledger is not None:
            self._owned_ledger.close()
            self._owned_ledger = None
            self._ledger = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    @property
    def is_ready(self) -> bool:
        return self._sync is not None and self._sync.is_ready

    @property
    def cache(self) -> StateCache:
        if self._cache is None:
            raise RaceLedgerError("Service not initialized. Use 'async with RaceLedgerService(...) as service:'")
        return self._cache

    @property
    def engine(self) -> MarketEngine:
        if self._engine is None:
            raise RaceLedgerError("Service not initialized. Use 'async with RaceLedgerService(...) as service:'")
        return self._engine

    @property
    def synchronizer(self) -> LedgerSynchronizer:
        return self._require_sync()

    def _require_sync(self) -> LedgerSynchronizer:
        if self._sync is None:
            raise RaceLedgerError("Service not initialized. Use 'async with RaceLedgerService(...) as service:'")
        return self._sync

    def _require_ledger(self) -> Ledger:
        if self._ledger is None:
            raise RaceLedgerError("Service not initialized. Use 'async with RaceLedgerService(...) as service:'")
        return self._ledger

    def _require_ready(self) -> None:
        if not self.is_ready:
            raise RaceLedgerError("Service not ready; await start() first")

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def on(self, kind: NotificationKind | str, callback: Subscriber) -> Callable[[], None]:
        """Subscribe to cache mutations of *kind*; returns an unsubscribe callable."""
        return self._bus.subscribe(NotificationKind(kind), callback)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_races(self) -> list[Race]:
        self._require_ready()
        return self.cache.list_all()

    async def get_race(self, race_id: int) -> Race:
        self._require_ready()
        return await self.cache.get_or_pull(race_id)

    async def get_betting_pool(self, race_id: int) -> BettingPool:
        self._require_ready()
        return await self.cache.get_or_pull_pool(race_id)

    async def get_markets(self) -> list[RaceMarket]:
        self._require_ready()
        return await self.engine.markets()

    async def get_market(self, race_id: int) -> RaceMarket:
        self._require_ready()
        return await self.engine.market(race_id)

    def get_odds_history(self, race_id: int, limit: int = DEFAULT_HISTORY_LIMIT) -> list[OddsHistoryEntry]:
        self._require_ready()
        return self.engine.history(race_id, limit)

    async def get_dashboard_snapshot(self) -> DashboardSnapshot:
        self._require_ready()
        return await self.engine.dashboard_snapshot()

    async def get_odds(self, race_id: int, token_id: int) -> float:
        """Odds quoted by the ledger itself (not derived from the cache)."""
        try:
            return await self._require_ledger().get_odds(race_id, token_id)
        except RaceLedgerError as exc:
            raise TransientPullError(
                f"Failed to fetch odds for race {race_id} token {token_id}: {exc}", race_id=race_id
            ) from exc

    async def get_telemetry_snapshots(
        self,
        race_id: int,
        token_id: int,
        limit: int = DEFAULT_TELEMETRY_LIMIT,
    ) -> list[TelemetrySnapshot]:
        """Stored telemetry samples for one participant, in ledger encoding.

        Use :meth:`TelemetrySnapshot.decoded` for domain units.
        """
        try:
            raw = await self._require_ledger().get_telemetry_snapshots(race_id, token_id, limit)
            return [TelemetrySnapshot.model_validate(item) for item in raw]
        except (RaceLedgerError, ValidationError) as exc:
            raise TransientPullError(f"Failed to fetch telemetry for race {race_id}: {exc}", race_id=race_id) from exc

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def update_telemetry(
        self,
        race_id: int,
        token_id: int,
        reading: TelemetryReading | None = None,
        **fields: Any,
    ) -> SubmissionResult:
        """Encode and submit one telemetry sample, best effort.

        *fields* may use snake_case or the ledger's camelCase names.
        Never raises for ledger or encoding problems: telemetry is advisory
        and must not abort the race flow. The caller decides whether to
        retry a failed result.
        """
        try:
            encoded = codec.encode_reading(reading) if reading is not None else codec.encode_fields(fields)
        except (EncodeOutOfBoundsError, ValueError) as exc:
            _logger.warning("Rejected telemetry for race %s token %s: %s", race_id, token_id, exc)
            return SubmissionResult.failed(str(exc))

        if not self._config.submissions_enabled:
            return SubmissionResult.failed("Telemetry signer not configured")

        try:
            tx_hash = await self._require_ledger().submit_telemetry_update(race_id, token_id, encoded)
        except RaceLedgerError as exc:
            _logger.warning("Failed to submit telemetry (race %s, token %s): %s", race_id, token_id, exc)
            return SubmissionResult.failed(str(exc))
        _logger.debug("Telemetry submitted race=%s token=%s tx=%s", race_id, token_id, tx_hash)
        return SubmissionResult.ok(tx_hash)
