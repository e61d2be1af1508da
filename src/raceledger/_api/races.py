"""Race reads and event log queries."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from raceledger._api._common import call_engine, call_ledger
from raceledger._transport import Transport
from raceledger.config import RaceLedgerConfig
from raceledger.exceptions import LedgerApiError
from raceledger.ingestion.normalize import safe_int
from raceledger.state.events import LedgerEvent, LedgerEventKind


async def fetch_race_record(
    config: RaceLedgerConfig,
    transport: Transport,
    race_id: int,
) -> Any:
    """Fetch the raw ``getRace`` record."""
    return await call_engine(config=config, transport=transport, method="racing_getRace", args=[race_id])


async def fetch_block_number(transport: Transport) -> int:
    """Current chain head."""
    method = "eth_blockNumber"
    result = await call_ledger(transport=transport, method=method)
    block = safe_int(result)
    if block is None:
        raise LedgerApiError(f"{method} returned non-numeric block {result!r}", code="invalid_result", method=method)
    return block


async def query_events(
    config: RaceLedgerConfig,
    transport: Transport,
    kind: LedgerEventKind,
    from_block: int,
    to_block: int,
) -> list[LedgerEvent]:
    """Historical events of *kind* in ``[from_block, to_block]``."""
    method = "racing_queryEvents"
    result = await call_engine(
        config=config,
        transport=transport,
        method=method,
        args=[str(kind), from_block, to_block],
    )
    if not isinstance(result, list):
        raise LedgerApiError(
            f"{method} returned {type(result).__name__}, expected list", code="invalid_result", method=method
        )

    events: list[LedgerEvent] = []
    for item in result:
        if not isinstance(item, dict):
            continue
        payload = dict(item)
        payload.setdefault("event", str(kind))
        try:
            events.append(LedgerEvent.from_payload(payload))
        except ValidationError as exc:
            raise LedgerApiError(
                f"{method} returned a malformed {kind} event: {item!r}", code="invalid_result", method=method
            ) from exc
    return events
