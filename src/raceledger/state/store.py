"""In-memory cache of race and betting pool state.

This is the only component that owns :class:`Race` and :class:`BettingPool`
lifetimes. Entries are frozen models replaced whole, so readers never see a
partially applied update and need no lock.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from pydantic import ValidationError

from raceledger.exceptions import RaceLedgerError, TransientPullError
from raceledger.ledger import Ledger
from raceledger.models.betting import BettingPool
from raceledger.models.race import Race
from raceledger.state.policy import merge_pool, merge_race

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StateCache:
    """Read-optimized store of ledger state.

    Constructed once at startup and injected into the synchronizer and the
    market engine. Entries are never evicted.
    """

    def __init__(
        self,
        ledger: Ledger,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._ledger = ledger
        self._clock = clock
        self._races: dict[int, Race] = {}
        self._pools: dict[int, BettingPool] = {}

    def __len__(self) -> int:
        return len(self._races)

    def __contains__(self, race_id: object) -> bool:
        return race_id in self._races

    # ------------------------------------------------------------------
    # Plain access
    # ------------------------------------------------------------------

    def get(self, race_id: int) -> Race | None:
        return self._races.get(race_id)

    def put(self, race: Race) -> Race:
        """Install *race*, keeping finished state monotonic. Returns the stored entity."""
        stored = merge_race(self._races.get(race.race_id), race).model_copy(update={"updated_at": self._clock()})
        self._races[stored.race_id] = stored
        return stored

    def get_pool(self, race_id: int) -> BettingPool | None:
        return self._pools.get(race_id)

    def put_pool(self, pool: BettingPool) -> BettingPool:
        """Install *pool* unless it is stale. Returns the stored entity."""
        cached = self._pools.get(pool.race_id)
        merged = merge_pool(cached, pool)
        if merged is None:
            assert cached is not None  # noqa: S101
            return cached
        stored = merged.model_copy(update={"updated_at": self._clock()})
        self._pools[stored.race_id] = stored
        return stored

    def list_all(self) -> list[Race]:
        """Every cached race, most recent start first."""
        return sorted(self._races.values(), key=lambda race: race.start_time, reverse=True)

    # ------------------------------------------------------------------
    # Ledger pulls
    # ------------------------------------------------------------------

    async def refresh(self, race_id: int) -> Race:
        """Pull *race_id* from the ledger and install it.

        Raises :class:`TransientPullError`; the cached entry, if any, is kept.
        """
        try:
            record = await self._ledger.get_race(race_id)
            race = Race.from_ledger(record)
        except (RaceLedgerError, ValidationError, ValueError) as exc:
            raise TransientPullError(f"Failed to pull race {race_id}: {exc}", race_id=race_id) from exc
        if race.race_id != race_id:
            raise TransientPullError(f"Ledger returned race {race.race_id} for {race_id}", race_id=race_id)
        return self.put(race)

    async def refresh_pool(self, race_id: int) -> BettingPool:
        """Pull the betting pool of *race_id*, pulling the race first if absent."""
        race = await self.get_or_pull(race_id)
        try:
            record = await self._ledger.get_betting_pool(race_id)
            pool = BettingPool.from_ledger(
                record,
                race_id=race_id,
                participant_token_ids=race.participant_token_ids,
            )
        except (RaceLedgerError, ValidationError, ValueError) as exc:
            raise TransientPullError(f"Failed to pull betting pool {race_id}: {exc}", race_id=race_id) from exc
        return self.put_pool(pool)

    async def get_or_pull(self, race_id: int) -> Race:
        """Cached race, or one ledger round trip on a miss.

        Concurrent misses may both pull; the later write wins.
        """
        race = self._races.get(race_id)
        if race is not None:
            return race
        _logger.debug("Race %s not cached; pulling", race_id)
        return await self.refresh(race_id)

    async def get_or_pull_pool(self, race_id: int) -> BettingPool:
        pool = self._pools.get(race_id)
        if pool is not None:
            return pool
        _logger.debug("Betting pool %s not cached; pulling", race_id)
        return await self.refresh_pool(race_id)
