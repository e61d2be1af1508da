"""Data models for ledger records and derived views."""

from raceledger.models._base import LedgerModel
from raceledger.models.betting import BettingPool
from raceledger.models.command_responses import SubmissionResult
from raceledger.models.market import DashboardRace, DashboardSnapshot, Market, OddsHistoryEntry, RaceMarket
from raceledger.models.race import Race
from raceledger.models.telemetry import EncodedTelemetry, TelemetryReading, TelemetrySnapshot

__all__ = [
    "BettingPool",
    "DashboardRace",
    "DashboardSnapshot",
    "EncodedTelemetry",
    "LedgerModel",
    "Market",
    "OddsHistoryEntry",
    "Race",
    "RaceMarket",
    "SubmissionResult",
    "TelemetryReading",
    "TelemetrySnapshot",
]
