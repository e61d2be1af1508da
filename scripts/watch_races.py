#!/usr/bin/env python3
"""Follow the racing ledger from the command line.

Runs the catch-up scan, prints the dashboard, then prints every cache
notification until interrupted.

Usage
-----
Set environment variables and run::

    export RACING_ENGINE_ADDRESS="0x5FbDB2315678afecb367f032d93F642f64180aa3"
    export RACING_RPC_URL="http://127.0.0.1:8545"
    python scripts/watch_races.py

Options::

    --race ID          Also print markets and odds history for this race
    --json             Output as machine-readable JSON lines
    --no-follow        Exit after the dashboard instead of following events
    --verbose, -v      Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pydantic import BaseModel  # noqa: E402

from raceledger import NotificationKind, RaceLedgerConfig, RaceLedgerService  # noqa: E402
from raceledger.exceptions import RaceLedgerError  # noqa: E402

# ── helpers ──────────────────────────────────────────────────


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    return value


def _emit(label: str, value: Any, *, json_mode: bool) -> None:
    if json_mode:
        print(json.dumps({"type": label, "data": _to_jsonable(value)}, default=str), flush=True)
        return
    print(f"[{label}] {value!r}", flush=True)


async def _print_dashboard(service: RaceLedgerService, *, json_mode: bool) -> None:
    snapshot = await service.get_dashboard_snapshot()
    if json_mode:
        _emit("dashboard", snapshot, json_mode=True)
        return

    print(_section("DASHBOARD"))
    print(f"  races     : {snapshot.total_races}")
    print(f"  active    : {snapshot.active_races}")
    print(f"  finished  : {snapshot.finished_races}")
    for race in snapshot.races:
        state = "finished" if race.is_finished else "active" if race.is_active else "pending"
        pool = race.betting_pool.total_pool if race.betting_pool is not None else "?"
        winner = f" winner={race.winner_token_id}" if race.winner_token_id is not None else ""
        print(f"  race {race.race_id:>5}  {state:<8}  laps={race.total_laps}  pool={pool}{winner}")


async def _print_race(service: RaceLedgerService, race_id: int, *, json_mode: bool) -> None:
    market = await service.get_market(race_id)
    history = service.get_odds_history(race_id)
    if json_mode:
        _emit("market", market, json_mode=True)
        _emit("history", [_to_jsonable(entry) for entry in history], json_mode=True)
        return

    print(_section(f"MARKET  race={race_id}"))
    print(f"  pool      : {market.total_pool_wei}")
    for entry in market.markets:
        bot = " (bot)" if entry.is_bot else ""
        print(
            f"  token {entry.token_id:>6}{bot:<6}  bet={entry.bet_total_wei:<24}  p={entry.implied_probability:6.2f}%"
        )
    print(f"  history   : {len(history)} entries")


# ── main ─────────────────────────────────────────────────────


async def main() -> int:
    parser = argparse.ArgumentParser(description="Print the racing dashboard and follow ledger events.")
    parser.add_argument("--race", type=int, help="Also print markets and odds history for this race")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON lines")
    parser.add_argument("--no-follow", action="store_true", help="Exit after printing the dashboard")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        config = RaceLedgerConfig.from_env(events_enabled=not args.no_follow)
    except RaceLedgerError as exc:
        print(f"[watch] {exc}", file=sys.stderr)
        return 2

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signum, stop.set)

    async with RaceLedgerService(config) as service:
        for kind in NotificationKind:
            service.on(kind, lambda entity, label=str(kind): _emit(label, entity, json_mode=args.json_mode))

        try:
            await service.start()
        except RaceLedgerError as exc:
            print(f"[watch] Catch-up failed: {exc}", file=sys.stderr)
            return 1

        await _print_dashboard(service, json_mode=args.json_mode)
        if args.race is not None:
            await _print_race(service, args.race, json_mode=args.json_mode)

        if args.no_follow:
            return 0

        if not args.json_mode:
            print("\n[watch] Following ledger events. Press Ctrl+C to stop.", flush=True)
        await stop.wait()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
