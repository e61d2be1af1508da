"""raceledger - ledger-backed race state, betting markets and telemetry codec."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("raceledger")
except PackageNotFoundError:
    __version__ = "0+local"
from raceledger.client import RaceLedgerService
from raceledger.codec import decode, encode
from raceledger.config import RaceLedgerConfig
from raceledger.exceptions import (
    EncodeOutOfBoundsError,
    FatalSyncError,
    LedgerApiError,
    LedgerTransportError,
    RaceLedgerConfigError,
    RaceLedgerError,
    TransientPullError,
)
from raceledger.ledger import Ledger, LedgerClient
from raceledger.markets import MarketEngine, compute_market
from raceledger.models import (
    BettingPool,
    DashboardRace,
    DashboardSnapshot,
    EncodedTelemetry,
    Market,
    OddsHistoryEntry,
    Race,
    RaceMarket,
    SubmissionResult,
    TelemetryReading,
    TelemetrySnapshot,
)
from raceledger.state.bus import NotificationBus
from raceledger.state.events import LedgerEvent, LedgerEventKind, NotificationKind
from raceledger.state.store import StateCache

__all__ = [
    "__version__",
    "BettingPool",
    "DashboardRace",
    "DashboardSnapshot",
    "EncodeOutOfBoundsError",
    "EncodedTelemetry",
    "FatalSyncError",
    "Ledger",
    "LedgerApiError",
    "LedgerClient",
    "LedgerEvent",
    "LedgerEventKind",
    "LedgerTransportError",
    "Market",
    "MarketEngine",
    "NotificationBus",
    "NotificationKind",
    "OddsHistoryEntry",
    "Race",
    "RaceLedgerConfig",
    "RaceLedgerConfigError",
    "RaceLedgerError",
    "RaceLedgerService",
    "RaceMarket",
    "StateCache",
    "SubmissionResult",
    "TelemetryReading",
    "TelemetrySnapshot",
    "TransientPullError",
    "compute_market",
    "decode",
    "encode",
]
