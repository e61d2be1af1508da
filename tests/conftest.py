from __future__ import annotations

import contextlib
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from raceledger.config import RaceLedgerConfig
from raceledger.exceptions import LedgerApiError, LedgerTransportError
from raceledger.models.telemetry import EncodedTelemetry
from raceledger.state.events import LedgerEvent, LedgerEventKind


def race_record(
    race_id: int,
    *,
    participants: tuple[int, ...] = (101, 102),
    bots: tuple[int, ...] = (),
    total_laps: int = 3,
    start_time: int = 1_700_000_000,
    end_time: int = 0,
    active: bool = True,
    finished: bool = False,
    winner: int = 0,
    total_distance: int = 5000,
) -> list[Any]:
    """Positional ``getRace`` record as the engine returns it."""
    return [
        race_id,
        list(participants),
        list(bots),
        total_laps,
        start_time,
        end_time,
        active,
        finished,
        winner,
        total_distance,
    ]


def pool_record(
    total: str = "0",
    *,
    settled: bool = False,
    bets: dict[int, str] | None = None,
) -> list[Any]:
    """Positional ``getBettingPool`` record."""
    bets = bets or {}
    return [total, settled, list(bets.keys()), list(bets.values())]


@dataclass
class FakeLedger:
    races: dict[int, Any] = field(default_factory=dict)
    pools: dict[int, Any] = field(default_factory=dict)
    head: int = 120
    created_events: list[LedgerEvent] = field(default_factory=list)
    failing_races: set[int] = field(default_factory=set)
    failing_pools: set[int] = field(default_factory=set)
    fail_block_number: bool = False
    odds: dict[tuple[int, int], float] = field(default_factory=dict)
    telemetry: dict[tuple[int, int], list[Any]] = field(default_factory=dict)
    submit_error: Exception | None = None
    submissions: list[tuple[int, int, EncodedTelemetry]] = field(default_factory=list)
    calls: list[tuple[str, Any]] = field(default_factory=list)
    handlers: dict[LedgerEventKind, list[Callable[[LedgerEvent], None]]] = field(default_factory=dict)

    def add_race(self, race_id: int, **kwargs: Any) -> None:
        self.races[race_id] = race_record(race_id, **kwargs)
        self.created_events.append(
            LedgerEvent(kind=LedgerEventKind.RACE_CREATED, race_id=race_id, block_number=10 + race_id)
        )

    def call_count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    async def get_race(self, race_id: int) -> Any:
        self.calls.append(("get_race", race_id))
        if race_id in self.failing_races:
            raise LedgerTransportError(f"connection reset reading race {race_id}", method="racing_getRace")
        if race_id not in self.races:
            raise LedgerApiError("execution reverted: race not found", code=3, method="racing_getRace")
        return self.races[race_id]

    async def get_betting_pool(self, race_id: int) -> Any:
        self.calls.append(("get_betting_pool", race_id))
        if race_id in self.failing_pools:
            raise LedgerTransportError(f"connection reset reading pool {race_id}", method="racing_getBettingPool")
        return self.pools.get(race_id, pool_record())

    async def get_odds(self, race_id: int, token_id: int) -> float:
        self.calls.append(("get_odds", (race_id, token_id)))
        if (race_id, token_id) not in self.odds:
            raise LedgerApiError("execution reverted", code=3, method="racing_getOdds")
        return self.odds[(race_id, token_id)]

    async def get_block_number(self) -> int:
        self.calls.append(("get_block_number", None))
        if self.fail_block_number:
            raise LedgerTransportError("HTTP 502 from eth_blockNumber", status_code=502, method="eth_blockNumber")
        return self.head

    async def get_telemetry_snapshots(self, race_id: int, token_id: int, limit: int) -> list[Any]:
        self.calls.append(("get_telemetry_snapshots", (race_id, token_id, limit)))
        return self.telemetry.get((race_id, token_id), [])[-limit:]

    async def query_events(self, kind: LedgerEventKind, from_block: int, to_block: int) -> list[LedgerEvent]:
        self.calls.append(("query_events", (kind, from_block, to_block)))
        return [
            event
            for event in self.created_events
            if event.kind == kind and from_block <= (event.block_number or 0) <= to_block
        ]

    def subscribe(self, kind: LedgerEventKind, handler: Callable[[LedgerEvent], None]) -> Callable[[], None]:
        self.handlers.setdefault(kind, []).append(handler)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self.handlers[kind].remove(handler)

        return _unsubscribe

    def emit(self, kind: LedgerEventKind, race_id: int, **args: Any) -> None:
        event = LedgerEvent(kind=kind, race_id=race_id, args={"raceId": race_id, **args})
        for handler in list(self.handlers.get(kind, ())):
            handler(event)

    async def submit_telemetry_update(self, race_id: int, token_id: int, telemetry: EncodedTelemetry) -> str:
        self.calls.append(("submit_telemetry_update", (race_id, token_id)))
        if self.submit_error is not None:
            raise self.submit_error
        self.submissions.append((race_id, token_id, telemetry))
        return f"0x{len(self.submissions):064x}"


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def config() -> RaceLedgerConfig:
    return RaceLedgerConfig(
        engine_address="0x5FbDB2315678afecb367f032d93F642f64180aa3",
        signer="0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
        events_enabled=True,
    )
