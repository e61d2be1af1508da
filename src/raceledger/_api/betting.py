"""Betting pool and odds reads."""

from __future__ import annotations

from typing import Any

from raceledger._api._common import call_engine
from raceledger._transport import Transport
from raceledger.config import RaceLedgerConfig
from raceledger.exceptions import LedgerApiError
from raceledger.ingestion.normalize import safe_float


async def fetch_betting_pool_record(
    config: RaceLedgerConfig,
    transport: Transport,
    race_id: int,
) -> Any:
    """Fetch the raw ``getBettingPool`` record."""
    return await call_engine(config=config, transport=transport, method="racing_getBettingPool", args=[race_id])


async def fetch_odds(
    config: RaceLedgerConfig,
    transport: Transport,
    race_id: int,
    token_id: int,
) -> float:
    """Odds the engine itself quotes for one participant."""
    method = "racing_getOdds"
    result = await call_engine(config=config, transport=transport, method=method, args=[race_id, token_id])
    odds = safe_float(result)
    if odds is None:
        raise LedgerApiError(f"{method} returned non-numeric odds {result!r}", code="invalid_result", method=method)
    return odds
