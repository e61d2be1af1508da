"""Derived market views and odds history entries."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from raceledger.models._base import LedgerModel
from raceledger.models.betting import BettingPool
from raceledger.models.race import Race


class Market(LedgerModel):
    """Implied-probability market for one participant.

    ``implied_probability`` is a percentage in ``[0, 100]``.
    """

    token_id: int
    is_bot: bool = False
    bet_total_wei: str = "0"
    implied_probability: float


class RaceMarket(LedgerModel):
    """Market view of a whole race."""

    race_id: int
    start_time: int = 0
    end_time: int | None = None
    is_active: bool = False
    is_finished: bool = False
    total_laps: int = 0
    total_pool_wei: str = "0"
    markets: tuple[Market, ...] = ()


class OddsHistoryEntry(LedgerModel):
    """Immutable snapshot of a race's markets at one point in time."""

    timestamp: datetime
    markets: tuple[Market, ...]
    total_pool_wei: str


class DashboardRace(Race):
    """A race annotated with its betting pool.

    ``betting_pool`` is ``None`` when the pool could not be pulled while the
    dashboard was assembled.
    """

    betting_pool: BettingPool | None = None


class DashboardSnapshot(LedgerModel):
    """Aggregate view over every cached race."""

    timestamp: datetime
    total_races: int = 0
    active_races: int = 0
    finished_races: int = 0
    races: list[DashboardRace] = Field(default_factory=list)
