"""Shared helpers for ledger endpoint modules.

Centralizes JSON-RPC error mapping and the engine-address parameter every
``racing_*`` method takes. It is internal to raceledger and may change at
any time.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from raceledger._transport import Transport
from raceledger.config import RaceLedgerConfig
from raceledger.exceptions import LedgerApiError


def _raise_for_error(*, method: str, error: Any) -> None:
    if isinstance(error, dict):
        code = error.get("code", "")
        message = str(error.get("message", ""))
    else:
        code = ""
        message = str(error)
    raise LedgerApiError(
        f"{method} failed: code={code} message={message}",
        code=code,
        method=method,
    )


async def call_ledger(
    *,
    transport: Transport,
    method: str,
    params: Sequence[Any] = (),
) -> Any:
    """Call *method* and return its ``result``.

    Returns `Any` since ledger methods may return objects, lists or scalars.
    """
    response = await transport.post_rpc(method, params)
    if response.get("error") is not None:
        _raise_for_error(method=method, error=response["error"])
    return response.get("result")


async def call_engine(
    *,
    config: RaceLedgerConfig,
    transport: Transport,
    method: str,
    args: Sequence[Any] = (),
) -> Any:
    """Call a racing engine method, prefixing the engine address."""
    return await call_ledger(
        transport=transport,
        method=method,
        params=[config.engine_address, *args],
    )
