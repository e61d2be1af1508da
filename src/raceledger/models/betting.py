"""Betting pool model."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from pydantic import Field, field_validator

from raceledger.ingestion.normalize import safe_bool, safe_int, to_wei_string, token_id_list
from raceledger.models._base import LedgerModel

_logger = logging.getLogger(__name__)


class BettingPool(LedgerModel):
    """Wagering state of one race.

    Parameters
    ----------
    race_id : int
        Owning race.
    total_pool : str
        Total wagered amount in wei, as a decimal string.
    is_settled : bool
        Pool has been paid out. Once true it never reverts.
    token_bets : dict
        Amount wagered per participant token, decimal strings in wei.
    updated_at : datetime or None
        Time of the last cache write, stamped by the cache.
    """

    race_id: int
    total_pool: str = "0"
    is_settled: bool = False
    token_bets: dict[int, str] = Field(default_factory=dict)
    updated_at: datetime | None = None

    @field_validator("total_pool", mode="before")
    @classmethod
    def _coerce_total(cls, value: Any) -> str:
        return to_wei_string(value)

    @field_validator("is_settled", mode="before")
    @classmethod
    def _coerce_settled(cls, value: Any) -> bool:
        return safe_bool(value)

    @field_validator("token_bets", mode="before")
    @classmethod
    def _coerce_bets(cls, value: Any) -> dict[int, str]:
        if not isinstance(value, Mapping):
            return {}
        bets: dict[int, str] = {}
        for key, amount in value.items():
            token_id = safe_int(key)
            if token_id is not None:
                bets[token_id] = to_wei_string(amount)
        return bets

    @property
    def total_pool_wei(self) -> int:
        return int(self.total_pool)

    def bet_for(self, token_id: int) -> str:
        return self.token_bets.get(token_id, "0")

    @classmethod
    def from_ledger(
        cls,
        record: Any,
        *,
        race_id: int,
        participant_token_ids: Iterable[int] = (),
    ) -> BettingPool:
        """Parse a ``getBettingPool`` record.

        The record is either ``[totalPool, isSettled, tokenIds, betAmounts]``
        or an object with the same camelCase keys. When the ledger reports
        no per-token breakdown, every participant defaults to a zero bet.
        Breakdown entries for tokens outside the race are dropped.
        """
        if isinstance(record, (list, tuple)):
            padded = list(record) + [None] * (4 - len(record))
            total, settled, token_ids_raw, amounts_raw = padded[:4]
        elif isinstance(record, Mapping):
            total = record.get("totalPool")
            settled = record.get("isSettled")
            token_ids_raw = record.get("tokenIds")
            amounts_raw = record.get("betAmounts")
        else:
            raise ValueError(f"unsupported betting pool record {type(record).__name__}")

        participants = tuple(participant_token_ids)
        token_ids = token_id_list(token_ids_raw)
        amounts = list(amounts_raw) if isinstance(amounts_raw, (list, tuple)) else []

        bets: dict[int, str]
        if token_ids:
            bets = {}
            for idx, token_id in enumerate(token_ids):
                if participants and token_id not in participants:
                    _logger.warning("Dropping bet on token %s outside race %s participants", token_id, race_id)
                    continue
                bets[token_id] = to_wei_string(amounts[idx] if idx < len(amounts) else None)
        else:
            bets = {token_id: "0" for token_id in participants}

        return cls(race_id=race_id, total_pool=total, is_settled=settled, token_bets=bets)
