"""Race model."""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar

from pydantic import field_validator, model_validator

from raceledger.ingestion.normalize import safe_bool, safe_int, token_id_list
from raceledger.models._base import LedgerModel


class Race(LedgerModel):
    """A race as recorded on the ledger.

    Parameters
    ----------
    race_id : int
        Ledger-assigned identifier.
    participant_token_ids : tuple of int
        Entrant token ids, fixed at creation.
    bot_token_ids : tuple of int
        Automated entrants among the participants.
    total_laps : int
        Number of laps.
    start_time : int
        Start timestamp as reported by the ledger.
    end_time : int or None
        Finish timestamp, ``None`` until the race finishes.
    is_active : bool
        Race is running. Never true together with ``is_finished``.
    is_finished : bool
        Race has finished. Once true it never reverts.
    winner_token_id : int or None
        Winning token, ``None`` until the race finishes.
    total_distance : int
        Track distance.
    updated_at : datetime or None
        Time of the last cache write, stamped by the cache.
    """

    _POSITIONAL_FIELDS: ClassVar[tuple[str, ...]] = (
        "raceId",
        "participantTokenIds",
        "botTokenIds",
        "totalLaps",
        "startTime",
        "endTime",
        "isActive",
        "isFinished",
        "winnerTokenId",
        "totalDistance",
    )

    race_id: int
    participant_token_ids: tuple[int, ...] = ()
    bot_token_ids: tuple[int, ...] = ()
    total_laps: int = 0
    start_time: int = 0
    end_time: int | None = None
    is_active: bool = False
    is_finished: bool = False
    winner_token_id: int | None = None
    total_distance: int = 0
    updated_at: datetime | None = None

    @field_validator("race_id", mode="before")
    @classmethod
    def _coerce_race_id(cls, value: Any) -> int:
        parsed = safe_int(value)
        if parsed is None or parsed < 0:
            raise ValueError(f"invalid race id {value!r}")
        return parsed

    @field_validator("participant_token_ids", "bot_token_ids", mode="before")
    @classmethod
    def _coerce_token_ids(cls, value: Any) -> tuple[int, ...]:
        return token_id_list(value)

    @field_validator("total_laps", "start_time", "total_distance", mode="before")
    @classmethod
    def _coerce_ints(cls, value: Any) -> int:
        return safe_int(value) or 0

    @field_validator("end_time", mode="before")
    @classmethod
    def _coerce_end_time(cls, value: Any) -> int | None:
        # The ledger reports an unset end time as zero.
        parsed = safe_int(value)
        return parsed if parsed else None

    @field_validator("winner_token_id", mode="before")
    @classmethod
    def _coerce_winner(cls, value: Any) -> int | None:
        # Token 0 is a valid winner; unfinished races are cleared below.
        return safe_int(value)

    @field_validator("is_active", "is_finished", mode="before")
    @classmethod
    def _coerce_bools(cls, value: Any) -> bool:
        return safe_bool(value)

    @model_validator(mode="after")
    def _finished_excludes_active(self) -> Race:
        if self.is_finished and self.is_active:
            object.__setattr__(self, "is_active", False)
        if not self.is_finished and self.winner_token_id is not None:
            object.__setattr__(self, "winner_token_id", None)
        return self

    @classmethod
    def from_ledger(cls, record: Any) -> Race:
        """Parse a ``getRace`` record (positional sequence or object)."""
        return cls.model_validate(record)

    def is_bot(self, token_id: int) -> bool:
        return token_id in self.bot_token_ids
