"""Typed responses for ledger command submissions."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class SubmissionResult(BaseModel):
    """Outcome of a best-effort telemetry submission.

    ``tx_hash`` is the opaque transaction handle returned by the ledger; its
    confirmation is never awaited. On failure ``error`` describes why and
    nothing is retried.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    tx_hash: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, tx_hash: str) -> SubmissionResult:
        return cls(success=True, tx_hash=tx_hash)

    @classmethod
    def failed(cls, error: str) -> SubmissionResult:
        return cls(success=False, error=error)
