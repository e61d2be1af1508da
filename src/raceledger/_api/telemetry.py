"""Telemetry reads and best-effort submissions."""

from __future__ import annotations

from typing import Any

from raceledger._api._common import call_engine
from raceledger._transport import Transport
from raceledger.config import RaceLedgerConfig
from raceledger.exceptions import LedgerApiError, RaceLedgerConfigError
from raceledger.models.telemetry import EncodedTelemetry


async def fetch_telemetry_snapshots(
    config: RaceLedgerConfig,
    transport: Transport,
    race_id: int,
    token_id: int,
    limit: int,
) -> list[Any]:
    """Raw stored telemetry samples, oldest first."""
    method = "racing_getTelemetrySnapshots"
    result = await call_engine(
        config=config,
        transport=transport,
        method=method,
        args=[race_id, token_id, limit],
    )
    if result is None:
        return []
    if not isinstance(result, list):
        raise LedgerApiError(
            f"{method} returned {type(result).__name__}, expected list", code="invalid_result", method=method
        )
    return result


async def submit_telemetry_update(
    config: RaceLedgerConfig,
    transport: Transport,
    race_id: int,
    token_id: int,
    telemetry: EncodedTelemetry,
) -> str:
    """Submit an ``updateTelemetry`` transaction and return its hash.

    Confirmation is not awaited.
    """
    if not config.signer:
        raise RaceLedgerConfigError("Telemetry signer not configured. Set RACING_SIGNER.")

    method = "racing_updateTelemetry"
    tx = {
        "signer": config.signer,
        "raceId": race_id,
        "tokenId": token_id,
        **telemetry.model_dump(by_alias=True),
    }
    result = await call_engine(config=config, transport=transport, method=method, args=[tx])
    tx_hash = result.get("hash") if isinstance(result, dict) else result
    if not isinstance(tx_hash, str) or not tx_hash:
        raise LedgerApiError(f"{method} returned no transaction hash", code="invalid_result", method=method)
    return tx_hash
