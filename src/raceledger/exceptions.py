"""Custom exception hierarchy for raceledger."""

from __future__ import annotations

from typing import Any


class RaceLedgerError(Exception):
    """Base exception for all raceledger errors."""


class RaceLedgerConfigError(RaceLedgerError):
    """Invalid or missing configuration."""


class LedgerTransportError(RaceLedgerError):
    """HTTP-level failure (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        method: str = "",
    ) -> None:
        self.status_code = status_code
        self.method = method
        super().__init__(message)


class LedgerApiError(RaceLedgerError):
    """Ledger returned a JSON-RPC error object."""

    def __init__(
        self,
        message: str,
        *,
        code: int | str = "",
        method: str = "",
    ) -> None:
        self.code = code
        self.method = method
        super().__init__(message)


class FatalSyncError(RaceLedgerError):
    """Catch-up scan failed.

    The cache would be silently incomplete, so the service must not serve
    reads until it is restarted.
    """


class TransientPullError(RaceLedgerError):
    """A single race or betting pool pull failed.

    Any previously cached value is left untouched.
    """

    def __init__(self, message: str, *, race_id: int) -> None:
        self.race_id = race_id
        super().__init__(message)


class EncodeOutOfBoundsError(RaceLedgerError):
    """A telemetry value cannot be represented in its ledger field."""

    kind = "out_of_bounds"

    def __init__(self, message: str, *, field: str, value: Any) -> None:
        self.field = field
        self.value = value
        super().__init__(message)
