"""Vehicle telemetry models."""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, field_validator

from raceledger.ingestion.normalize import safe_bool, safe_int
from raceledger.models._base import LedgerModel


class TelemetryReading(BaseModel):
    """Telemetry in domain units.

    Parameters
    ----------
    position_x, position_y : float
        Track position.
    speed : float
        Speed in km/h.
    current_lap : int
        Lap index.
    lap_progress : float
        Progress through the current lap, percent.
    acceleration : float
        Longitudinal acceleration in m/s², the only signed quantity.
    """

    model_config = ConfigDict(frozen=True)

    position_x: float = 0.0
    position_y: float = 0.0
    speed: float = 0.0
    current_lap: int = 0
    lap_progress: float = 0.0
    acceleration: float = 0.0


class EncodedTelemetry(LedgerModel):
    """Telemetry in the ledger's fixed-point integer layout.

    Positions are signed and scaled by 1000; acceleration is scaled by 1000
    and shifted by a fixed offset so the stored value is unsigned.
    """

    _POSITIONAL_FIELDS: ClassVar[tuple[str, ...]] = (
        "positionX",
        "positionY",
        "speed",
        "currentLap",
        "lapProgress",
        "acceleration",
    )

    position_x: int
    position_y: int
    speed: int
    current_lap: int
    lap_progress: int
    acceleration: int

    @field_validator(
        "position_x", "position_y", "speed", "current_lap", "lap_progress", "acceleration", mode="before"
    )
    @classmethod
    def _coerce_ints(cls, value: Any) -> int:
        parsed = safe_int(value)
        if parsed is None:
            raise ValueError(f"expected an integer, got {value!r}")
        return parsed

    def as_params(self) -> list[int]:
        """Field values in ledger argument order."""
        return [
            self.position_x,
            self.position_y,
            self.speed,
            self.current_lap,
            self.lap_progress,
            self.acceleration,
        ]


class TelemetrySnapshot(EncodedTelemetry):
    """A telemetry sample stored on the ledger."""

    _POSITIONAL_FIELDS: ClassVar[tuple[str, ...]] = (
        "timestamp",
        "positionX",
        "positionY",
        "speed",
        "currentLap",
        "lapProgress",
        "acceleration",
        "isBot",
    )

    timestamp: int
    is_bot: bool = False

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> int:
        return safe_int(value) or 0

    @field_validator("is_bot", mode="before")
    @classmethod
    def _coerce_is_bot(cls, value: Any) -> bool:
        return safe_bool(value)

    def decoded(self) -> TelemetryReading:
        # Imported lazily; the codec depends on this module.
        from raceledger.codec import decode

        return decode(self)
