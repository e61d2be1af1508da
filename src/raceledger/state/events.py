"""Normalized ledger events and notification kinds.

Every ingestion path (catch-up scan, live relay) converts its input into a
:class:`LedgerEvent`. Only the synchronizer turns them into cache mutations.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from raceledger.ingestion.normalize import safe_int


class LedgerEventKind(StrEnum):
    RACE_CREATED = "RaceCreated"
    RACE_FINISHED = "RaceFinished"
    BET_PLACED = "BetPlaced"
    BETTING_POOL_SETTLED = "BettingPoolSettled"


class NotificationKind(StrEnum):
    RACE_CREATED = "raceCreated"
    RACE_FINISHED = "raceFinished"
    BETTING_UPDATED = "bettingUpdated"
    BETTING_SETTLED = "bettingSettled"


class LedgerEvent(BaseModel):
    """A ledger event reduced to the fields the synchronizer trusts."""

    model_config = ConfigDict(frozen=True)

    kind: LedgerEventKind
    race_id: int
    args: dict[str, Any] = Field(default_factory=dict, description="Raw event arguments")
    block_number: int | None = None
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("race_id", mode="before")
    @classmethod
    def _coerce_race_id(cls, value: Any) -> int:
        parsed = safe_int(value)
        if parsed is None or parsed < 0:
            raise ValueError(f"invalid race id {value!r}")
        return parsed

    @field_validator("block_number", mode="before")
    @classmethod
    def _coerce_block(cls, value: Any) -> int | None:
        return safe_int(value)

    @property
    def winner_token_id(self) -> int | None:
        return safe_int(self.args.get("winnerTokenId"))

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> LedgerEvent:
        """Build an event from a relay/RPC payload.

        Expected shape: ``{"event": "BetPlaced", "args": {"raceId": 3, ...},
        "blockNumber": 12}``.
        """
        args = payload.get("args")
        args = dict(args) if isinstance(args, dict) else {}
        return cls(
            kind=payload.get("event"),
            race_id=args.get("raceId"),
            args=args,
            block_number=payload.get("blockNumber"),
        )
