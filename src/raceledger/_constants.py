"""Internal constants shared across the library."""

RPC_URL = "http://127.0.0.1:8545"
USER_AGENT = "raceledger/1"

# ------------------------------------------------------------------
# Telemetry fixed-point layout
# ------------------------------------------------------------------

POSITION_LIMIT = 1_000_000.0
POSITION_SCALE = 1000

SPEED_MIN = 0
SPEED_MAX = 500

LAP_MIN = 0
LAP_MAX = 100
LAP_PROGRESS_MIN = 0
LAP_PROGRESS_MAX = 100

ACCEL_LIMIT = 10.0
ACCEL_SCALE = 1000
# The ledger field is unsigned; the offset shifts the signed range above zero.
ACCEL_OFFSET = 100_000
ACCEL_FIELD_MIN = 0
ACCEL_FIELD_MAX = 200_000

# ------------------------------------------------------------------
# Markets
# ------------------------------------------------------------------

ODDS_HISTORY_CAPACITY = 500
DEFAULT_HISTORY_LIMIT = 200
DEFAULT_TELEMETRY_LIMIT = 50
