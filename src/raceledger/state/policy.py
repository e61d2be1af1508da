"""Deterministic merge policy for cached entities.

Pure functions only: the cache decides *when* to write, these decide *what*
the written entity looks like so the monotonic fields never move backwards.
"""

from __future__ import annotations

import logging

from raceledger.models.betting import BettingPool
from raceledger.models.race import Race

_logger = logging.getLogger(__name__)


def merge_race(cached: Race | None, incoming: Race) -> Race:
    """Return the race to store when *incoming* replaces *cached*.

    A pulled record that still reports an unfinished race (a lagging read)
    cannot revert a finish already observed. A finished race keeps its first
    winner.
    """
    if cached is None or not cached.is_finished:
        return incoming

    if not incoming.is_finished:
        _logger.debug("Race %s: ignoring unfinished record for finished race", incoming.race_id)
        return incoming.model_copy(
            update={
                "is_active": False,
                "is_finished": True,
                "winner_token_id": cached.winner_token_id,
                "end_time": cached.end_time,
            }
        )

    if cached.winner_token_id is not None and incoming.winner_token_id != cached.winner_token_id:
        _logger.warning(
            "Race %s: ledger winner %s differs from recorded winner %s; keeping recorded",
            incoming.race_id,
            incoming.winner_token_id,
            cached.winner_token_id,
        )
        return incoming.model_copy(update={"winner_token_id": cached.winner_token_id})
    return incoming


def finish_race(race: Race, winner_token_id: int | None, end_time: int) -> Race:
    """Apply the active -> finished transition."""
    if race.is_finished:
        winner = race.winner_token_id if race.winner_token_id is not None else winner_token_id
        return race.model_copy(update={"is_active": False, "winner_token_id": winner})
    return race.model_copy(
        update={
            "is_active": False,
            "is_finished": True,
            "winner_token_id": winner_token_id,
            "end_time": end_time,
        }
    )


def merge_pool(cached: BettingPool | None, incoming: BettingPool) -> BettingPool | None:
    """Return the pool to store, or ``None`` when *incoming* is stale.

    Settlement never reverts and an open pool's total never shrinks.
    """
    if cached is None:
        return incoming

    if cached.is_settled:
        if incoming.is_settled:
            return incoming
        _logger.debug("Pool %s: ignoring unsettled record for settled pool", incoming.race_id)
        return None

    if not incoming.is_settled and incoming.total_pool_wei < cached.total_pool_wei:
        _logger.warning(
            "Pool %s: rejecting stale record (total %s < cached %s)",
            incoming.race_id,
            incoming.total_pool,
            cached.total_pool,
        )
        return None
    return incoming
