from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest
from conftest import FakeLedger, pool_record, race_record

from raceledger.config import RaceLedgerConfig
from raceledger.exceptions import FatalSyncError
from raceledger.ingestion.sync import LedgerSynchronizer
from raceledger.ledger import LedgerClient
from raceledger.markets import MarketEngine
from raceledger.state.bus import NotificationBus
from raceledger.state.events import LedgerEvent, LedgerEventKind, NotificationKind
from raceledger.state.store import StateCache


class _Harness:
    def __init__(self, ledger: FakeLedger, *, from_block: int = 0) -> None:
        self.ledger = ledger
        self.cache = StateCache(ledger)
        self.engine = MarketEngine(self.cache)
        self.bus = NotificationBus()
        self.sync = LedgerSynchronizer(
            ledger=ledger,
            cache=self.cache,
            engine=self.engine,
            bus=self.bus,
            from_block=from_block,
            clock_ms=lambda: 1_700_000_555_000,
        )
        self.published: list[tuple[NotificationKind, object]] = []
        for kind in NotificationKind:
            self.bus.subscribe(kind, lambda entity, kind=kind: self.published.append((kind, entity)))


@pytest.mark.asyncio
async def test_catch_up_installs_every_created_race(ledger: FakeLedger) -> None:
    ledger.add_race(1, start_time=100)
    ledger.add_race(2, start_time=200)
    h = _Harness(ledger)

    installed = await h.sync.catch_up()

    assert installed == 2
    assert h.sync.is_ready
    assert [race.race_id for race in h.cache.list_all()] == [2, 1]
    assert ("query_events", (LedgerEventKind.RACE_CREATED, 0, ledger.head)) in ledger.calls


@pytest.mark.asyncio
async def test_catch_up_respects_from_block(ledger: FakeLedger) -> None:
    ledger.add_race(1)  # block 11
    ledger.add_race(5)  # block 15
    h = _Harness(ledger, from_block=12)

    await h.sync.catch_up()

    assert h.cache.get(1) is None
    assert h.cache.get(5) is not None


@pytest.mark.asyncio
async def test_catch_up_failure_is_fatal(ledger: FakeLedger) -> None:
    ledger.add_race(1)
    ledger.add_race(2)
    ledger.failing_races.add(2)
    h = _Harness(ledger)

    with pytest.raises(FatalSyncError):
        await h.sync.catch_up()

    assert not h.sync.is_ready


@pytest.mark.asyncio
async def test_catch_up_fails_when_head_is_unreachable(ledger: FakeLedger) -> None:
    ledger.fail_block_number = True
    h = _Harness(ledger)

    with pytest.raises(FatalSyncError):
        await h.sync.catch_up()


@pytest.mark.asyncio
async def test_race_created_installs_and_publishes(ledger: FakeLedger) -> None:
    ledger.races[3] = race_record(3)
    h = _Harness(ledger)

    handled = await h.sync.handle(LedgerEvent(kind=LedgerEventKind.RACE_CREATED, race_id=3))

    assert handled is True
    assert h.cache.get(3) is not None
    assert h.published == [(NotificationKind.RACE_CREATED, h.cache.get(3))]


@pytest.mark.asyncio
async def test_race_finished_applies_monotonic_transition(ledger: FakeLedger) -> None:
    ledger.races[3] = race_record(3, active=True)
    h = _Harness(ledger)
    await h.cache.get_or_pull(3)

    await h.sync.handle(
        LedgerEvent(kind=LedgerEventKind.RACE_FINISHED, race_id=3, args={"raceId": 3, "winnerTokenId": 102})
    )

    race = h.cache.get(3)
    assert race is not None
    assert race.is_finished is True
    assert race.is_active is False
    assert race.winner_token_id == 102
    assert race.end_time == 1_700_000_555_000
    assert h.published[-1] == (NotificationKind.RACE_FINISHED, race)
    # Cached race was used; no extra pull.
    assert ledger.call_count("get_race") == 1


@pytest.mark.asyncio
async def test_race_finished_for_unknown_race_pulls_lazily(ledger: FakeLedger) -> None:
    ledger.races[8] = race_record(8)
    h = _Harness(ledger)

    await h.sync.handle(
        LedgerEvent(kind=LedgerEventKind.RACE_FINISHED, race_id=8, args={"raceId": 8, "winnerTokenId": 101})
    )

    race = h.cache.get(8)
    assert race is not None and race.is_finished and race.winner_token_id == 101


@pytest.mark.asyncio
async def test_bet_placed_refreshes_pool_and_records_history(ledger: FakeLedger) -> None:
    ledger.races[1] = race_record(1, participants=(101, 102))
    ledger.pools[1] = pool_record("1000", bets={101: "750", 102: "250"})
    h = _Harness(ledger)

    await h.sync.handle(LedgerEvent(kind=LedgerEventKind.BET_PLACED, race_id=1))

    pool = h.cache.get_pool(1)
    assert pool is not None and pool.total_pool == "1000"
    history = h.engine.history(1)
    assert len(history) == 1
    assert [m.implied_probability for m in history[0].markets] == [75.0, 25.0]
    assert h.published[-1] == (NotificationKind.BETTING_UPDATED, pool)


@pytest.mark.asyncio
async def test_settled_event_for_absent_race_pulls_race_then_pool(ledger: FakeLedger) -> None:
    ledger.races[7] = race_record(7, participants=(1, 2), active=False, finished=True, winner=1)
    ledger.pools[7] = pool_record("90", settled=True, bets={1: "60", 2: "30"})
    h = _Harness(ledger)

    await h.sync.handle(LedgerEvent(kind=LedgerEventKind.BETTING_POOL_SETTLED, race_id=7))

    assert [name for name, _ in ledger.calls] == ["get_race", "get_betting_pool"]
    assert h.cache.get(7) is not None
    pool = h.cache.get_pool(7)
    assert pool is not None and pool.is_settled
    assert len(h.engine.history(7)) == 1
    assert h.published == [(NotificationKind.BETTING_SETTLED, pool)]


@pytest.mark.asyncio
async def test_pull_failure_drops_update_and_keeps_cache(ledger: FakeLedger) -> None:
    ledger.races[1] = race_record(1)
    ledger.pools[1] = pool_record("100", bets={101: "100"})
    h = _Harness(ledger)
    await h.sync.handle(LedgerEvent(kind=LedgerEventKind.BET_PLACED, race_id=1))
    before = h.cache.get_pool(1)
    published_before = len(h.published)

    ledger.failing_pools.add(1)
    handled = await h.sync.handle(LedgerEvent(kind=LedgerEventKind.BET_PLACED, race_id=1))

    assert handled is False
    assert h.cache.get_pool(1) == before
    assert len(h.engine.history(1)) == 1
    assert len(h.published) == published_before


@pytest.mark.asyncio
async def test_live_events_are_consumed_in_arrival_order(ledger: FakeLedger) -> None:
    ledger.add_race(1)
    ledger.pools[1] = pool_record("10", bets={101: "10"})
    h = _Harness(ledger)
    await h.sync.catch_up()
    h.sync.start()
    try:
        ledger.races[2] = race_record(2)
        ledger.emit(LedgerEventKind.RACE_CREATED, 2)
        ledger.emit(LedgerEventKind.BET_PLACED, 1)
        ledger.emit(LedgerEventKind.RACE_FINISHED, 2, winnerTokenId=102)
        ledger.emit(LedgerEventKind.BET_PLACED, 404)  # unknown race, dropped
        ledger.emit(LedgerEventKind.BET_PLACED, 1)
        await h.sync.join()
    finally:
        await h.sync.stop()

    kinds = [kind for kind, _ in h.published]
    assert kinds == [
        NotificationKind.RACE_CREATED,
        NotificationKind.BETTING_UPDATED,
        NotificationKind.RACE_FINISHED,
        NotificationKind.BETTING_UPDATED,
    ]
    assert h.cache.get(2).is_finished  # type: ignore[union-attr]
    assert len(h.engine.history(1)) == 2
    assert all(not handlers for handlers in ledger.handlers.values())


@pytest.mark.asyncio
async def test_invariants_hold_across_event_stream(ledger: FakeLedger) -> None:
    ledger.races[1] = race_record(1, participants=(101, 102))
    ledger.pools[1] = pool_record("10", bets={101: "10", 555: "5"})
    h = _Harness(ledger)

    await h.sync.handle(LedgerEvent(kind=LedgerEventKind.RACE_CREATED, race_id=1))
    await h.sync.handle(LedgerEvent(kind=LedgerEventKind.BET_PLACED, race_id=1))
    await h.sync.handle(
        LedgerEvent(kind=LedgerEventKind.RACE_FINISHED, race_id=1, args={"raceId": 1, "winnerTokenId": 101})
    )
    # Ledger node lags and re-announces the race as running.
    await h.sync.handle(LedgerEvent(kind=LedgerEventKind.RACE_CREATED, race_id=1))

    race = h.cache.get(1)
    pool = h.cache.get_pool(1)
    assert race is not None and pool is not None
    assert not (race.is_active and race.is_finished)
    assert race.is_finished
    assert set(pool.token_bets) <= set(race.participant_token_ids)


@pytest.mark.asyncio
async def test_catch_up_malformed_event_is_fatal() -> None:
    transport = _QueryEventsTransport([{"args": {"raceId": "not-a-number"}, "blockNumber": 3}])
    client = LedgerClient(
        RaceLedgerConfig(engine_address="0x5FbDB2315678afecb367f032d93F642f64180aa3", events_enabled=False),
        transport,
    )
    h = _Harness(client)  # type: ignore[arg-type]

    with pytest.raises(FatalSyncError):
        await h.sync.catch_up()

    assert not h.sync.is_ready
    assert len(h.cache) == 0


class _QueryEventsTransport:
    def __init__(self, events: list[Any]) -> None:
        self._events = events

    async def post_rpc(self, method: str, params: Sequence[Any]) -> dict[str, Any]:
        if method == "eth_blockNumber":
            return {"jsonrpc": "2.0", "id": 1, "result": "0x10"}
        if method == "racing_queryEvents":
            return {"jsonrpc": "2.0", "id": 2, "result": self._events}
        return {"jsonrpc": "2.0", "id": 3, "error": {"code": -32601, "message": f"unexpected {method}"}}
