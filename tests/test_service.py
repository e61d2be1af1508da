from __future__ import annotations

import dataclasses

import pytest
from conftest import FakeLedger, pool_record

from raceledger import RaceLedgerService
from raceledger.config import RaceLedgerConfig
from raceledger.exceptions import (
    FatalSyncError,
    LedgerTransportError,
    RaceLedgerError,
    TransientPullError,
)
from raceledger.models.telemetry import TelemetryReading
from raceledger.state.events import LedgerEventKind, NotificationKind


@pytest.mark.asyncio
async def test_reads_require_completed_catch_up(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    service = RaceLedgerService(config, ledger=ledger)

    assert not service.is_ready
    with pytest.raises(RaceLedgerError):
        service.list_races()
    with pytest.raises(RaceLedgerError):
        await service.get_dashboard_snapshot()


@pytest.mark.asyncio
async def test_start_then_serve_reads(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    ledger.add_race(1, start_time=100)
    ledger.add_race(2, start_time=200)
    ledger.pools[1] = pool_record("4", bets={101: "3", 102: "1"})

    async with RaceLedgerService(config, ledger=ledger) as service:
        await service.start()

        assert service.is_ready
        assert [race.race_id for race in service.list_races()] == [2, 1]
        market = await service.get_market(1)
        assert [m.implied_probability for m in market.markets] == [75.0, 25.0]
        pool = await service.get_betting_pool(1)
        assert pool.total_pool == "4"
        snapshot = await service.get_dashboard_snapshot()
        assert snapshot.total_races == 2
        assert service.get_odds_history(1) == []


@pytest.mark.asyncio
async def test_failed_catch_up_keeps_service_not_ready(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    ledger.fail_block_number = True
    service = RaceLedgerService(config, ledger=ledger)

    with pytest.raises(FatalSyncError):
        await service.start()

    assert not service.is_ready
    with pytest.raises(RaceLedgerError):
        await service.get_markets()
    await service.close()


@pytest.mark.asyncio
async def test_live_events_reach_subscribers(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    ledger.add_race(1)
    ledger.pools[1] = pool_record("10", bets={101: "10"})
    received: list[tuple[str, object]] = []

    async with RaceLedgerService(config, ledger=ledger) as service:
        service.on("bettingUpdated", lambda pool: received.append(("betting", pool)))
        service.on(NotificationKind.RACE_FINISHED, lambda race: received.append(("finished", race)))
        await service.start()

        ledger.emit(LedgerEventKind.BET_PLACED, 1)
        ledger.emit(LedgerEventKind.RACE_FINISHED, 1, winnerTokenId=101)
        await service.synchronizer.join()

        assert [label for label, _ in received] == ["betting", "finished"]
        assert len(service.get_odds_history(1)) == 1
        race = await service.get_race(1)
        assert race.winner_token_id == 101


@pytest.mark.asyncio
async def test_events_disabled_skips_live_subscription(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    config = dataclasses.replace(config, events_enabled=False)

    async with RaceLedgerService(config, ledger=ledger) as service:
        await service.start()

        assert service.is_ready
        assert ledger.handlers == {}


@pytest.mark.asyncio
async def test_update_telemetry_submits_encoded_sample(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    service = RaceLedgerService(config, ledger=ledger)

    result = await service.update_telemetry(
        1,
        101,
        position_x=12.5,
        position_y=-3,
        speed=612,
        current_lap=2,
        lap_progress=55.4,
        acceleration=-2.5,
    )

    assert result.success is True
    assert result.tx_hash == f"0x{1:064x}"
    _, _, encoded = ledger.submissions[0]
    assert encoded.as_params() == [12_500, -3_000, 500, 2, 55, 97_500]


@pytest.mark.asyncio
async def test_update_telemetry_accepts_reading(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    service = RaceLedgerService(config, ledger=ledger)
    reading = TelemetryReading(
        position_x=0, position_y=0, speed=10, current_lap=1, lap_progress=5, acceleration=0
    )

    result = await service.update_telemetry(1, 101, reading)

    assert result.success is True
    assert ledger.submissions[0][2].speed == 10


@pytest.mark.asyncio
async def test_update_telemetry_without_signer_reports_failure(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    service = RaceLedgerService(dataclasses.replace(config, signer=None), ledger=ledger)

    result = await service.update_telemetry(
        1, 101, position_x=0, position_y=0, speed=0, current_lap=0, lap_progress=0, acceleration=0
    )

    assert result.success is False
    assert result.error == "Telemetry signer not configured"
    assert ledger.call_count("submit_telemetry_update") == 0


@pytest.mark.asyncio
async def test_update_telemetry_ledger_error_is_returned(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    ledger.submit_error = LedgerTransportError("HTTP 503 from racing_updateTelemetry", status_code=503)
    service = RaceLedgerService(config, ledger=ledger)

    result = await service.update_telemetry(
        1, 101, position_x=0, position_y=0, speed=0, current_lap=0, lap_progress=0, acceleration=0
    )

    assert result.success is False
    assert result.tx_hash is None
    assert "503" in (result.error or "")


@pytest.mark.asyncio
async def test_get_odds_wraps_ledger_errors(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    ledger.odds[(1, 101)] = 175.0
    service = RaceLedgerService(config, ledger=ledger)

    assert await service.get_odds(1, 101) == 175.0
    with pytest.raises(TransientPullError):
        await service.get_odds(1, 102)


@pytest.mark.asyncio
async def test_get_telemetry_snapshots_decodes(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    ledger.telemetry[(1, 101)] = [
        [1_700_000_100, 1_000, 2_000, 100, 1, 10, 100_000, False],
        {
            "positionX": 3_000,
            "positionY": 0,
            "speed": 150,
            "currentLap": 1,
            "lapProgress": 20,
            "acceleration": 102_500,
            "timestamp": 1_700_000_200,
            "isBot": True,
        },
    ]
    service = RaceLedgerService(config, ledger=ledger)

    snapshots = await service.get_telemetry_snapshots(1, 101, limit=10)

    assert [s.timestamp for s in snapshots] == [1_700_000_100, 1_700_000_200]
    assert snapshots[1].is_bot is True
    decoded = snapshots[1].decoded()
    assert decoded.position_x == 3.0
    assert decoded.acceleration == 2.5


@pytest.mark.asyncio
async def test_get_telemetry_snapshots_malformed_record(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    ledger.telemetry[(1, 101)] = [{"timestamp": 1, "positionX": "garbage"}]
    service = RaceLedgerService(config, ledger=ledger)

    with pytest.raises(TransientPullError) as exc_info:
        await service.get_telemetry_snapshots(1, 101)

    assert exc_info.value.race_id == 1


@pytest.mark.asyncio
async def test_update_telemetry_accepts_camel_case_fields(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    service = RaceLedgerService(config, ledger=ledger)
    sample = {
        "positionX": 1.5,
        "positionY": 2,
        "speed": 80,
        "currentLap": 3,
        "lapProgress": 12,
        "acceleration": 1,
    }

    result = await service.update_telemetry(1, 101, **sample)

    assert result.success is True
    assert ledger.submissions[0][2].as_params() == [1_500, 2_000, 80, 3, 12, 101_000]


@pytest.mark.asyncio
async def test_update_telemetry_unknown_field_reports_failure(config: RaceLedgerConfig, ledger: FakeLedger) -> None:
    service = RaceLedgerService(config, ledger=ledger)

    result = await service.update_telemetry(1, 101, speed=10, heading=90)

    assert result.success is False
    assert "heading" in (result.error or "")
    assert ledger.call_count("submit_telemetry_update") == 0
