"""Implied-probability markets, odds history and dashboard aggregates."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime

from raceledger._constants import DEFAULT_HISTORY_LIMIT, ODDS_HISTORY_CAPACITY
from raceledger.exceptions import TransientPullError
from raceledger.models.betting import BettingPool
from raceledger.models.market import DashboardRace, DashboardSnapshot, Market, OddsHistoryEntry, RaceMarket
from raceledger.models.race import Race
from raceledger.state.store import StateCache

_logger = logging.getLogger(__name__)

#: Probability assigned to every participant of a race with an empty pool.
#: An empty pool is reported as fully uncertain, not fully excluded.
EMPTY_POOL_PROBABILITY = 100.0


def _utcnow() -> datetime:
    return datetime.now(UTC)


def compute_market(race: Race, pool: BettingPool | None) -> list[Market]:
    """Per-participant implied probabilities for *race*.

    Each participant's probability is its share of the total pool, in
    percent. When nothing has been wagered every participant gets
    :data:`EMPTY_POOL_PROBABILITY`.
    """
    total = pool.total_pool_wei if pool is not None else 0
    markets: list[Market] = []
    for token_id in race.participant_token_ids:
        bet = pool.bet_for(token_id) if pool is not None else "0"
        probability = 100 * int(bet) / total if total > 0 else EMPTY_POOL_PROBABILITY
        markets.append(
            Market(
                token_id=token_id,
                is_bot=race.is_bot(token_id),
                bet_total_wei=bet,
                implied_probability=probability,
            )
        )
    return markets


def summarize(race: Race, pool: BettingPool | None) -> RaceMarket:
    return RaceMarket(
        race_id=race.race_id,
        start_time=race.start_time,
        end_time=race.end_time,
        is_active=race.is_active,
        is_finished=race.is_finished,
        total_laps=race.total_laps,
        total_pool_wei=pool.total_pool if pool is not None else "0",
        markets=tuple(compute_market(race, pool)),
    )


class MarketEngine:
    """Derives markets from the cache and keeps a bounded odds history per race.

    The engine only reads the cache (lazy pulls aside); it owns the history
    sequences.
    """

    def __init__(
        self,
        cache: StateCache,
        *,
        capacity: int = ODDS_HISTORY_CAPACITY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._cache = cache
        self._capacity = capacity
        self._clock = clock
        self._history: dict[int, deque[OddsHistoryEntry]] = {}

    compute_market = staticmethod(compute_market)
    summarize = staticmethod(summarize)

    def record_snapshot(self, race_id: int) -> OddsHistoryEntry | None:
        """Append the current markets of *race_id* to its history.

        No-op (returns ``None``) while either the race or its pool is absent.
        """
        race = self._cache.get(race_id)
        pool = self._cache.get_pool(race_id)
        if race is None or pool is None:
            _logger.debug("Race %s: nothing to snapshot yet", race_id)
            return None

        entry = OddsHistoryEntry(
            timestamp=self._clock(),
            markets=tuple(compute_market(race, pool)),
            total_pool_wei=pool.total_pool,
        )
        history = self._history.get(race_id)
        if history is None:
            history = deque(maxlen=self._capacity)
            self._history[race_id] = history
        history.append(entry)
        return entry

    def history(self, race_id: int, limit: int = DEFAULT_HISTORY_LIMIT) -> list[OddsHistoryEntry]:
        """The most recent *limit* entries, oldest first."""
        history = self._history.get(race_id)
        if not history or limit <= 0:
            return []
        entries = list(history)
        return entries[-limit:]

    async def market(self, race_id: int) -> RaceMarket:
        """Market view of one race; raises :class:`TransientPullError` if the race cannot be pulled."""
        race = await self._cache.get_or_pull(race_id)
        return summarize(race, await self._pool_or_none(race_id))

    async def markets(self) -> list[RaceMarket]:
        """Market views of every cached race, most recent start first."""
        races = self._cache.list_all()
        pools = await asyncio.gather(*(self._pool_or_none(race.race_id) for race in races))
        return [summarize(race, pool) for race, pool in zip(races, pools, strict=True)]

    async def dashboard_snapshot(self) -> DashboardSnapshot:
        """Aggregate counts plus every race annotated with its pool.

        A pool that cannot be pulled blanks that race's ``betting_pool``
        instead of failing the whole snapshot.
        """
        races = self._cache.list_all()
        pools = await asyncio.gather(*(self._pool_or_none(race.race_id) for race in races))
        enriched = [
            DashboardRace(**race.model_dump(), betting_pool=pool) for race, pool in zip(races, pools, strict=True)
        ]
        return DashboardSnapshot(
            timestamp=self._clock(),
            total_races=len(enriched),
            active_races=sum(1 for race in enriched if race.is_active),
            finished_races=sum(1 for race in enriched if race.is_finished),
            races=enriched,
        )

    async def _pool_or_none(self, race_id: int) -> BettingPool | None:
        try:
            return await self._cache.get_or_pull_pool(race_id)
        except TransientPullError:
            _logger.warning("Betting pool for race %s unavailable", race_id, exc_info=True)
            return None
