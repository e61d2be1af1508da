"""Telemetry fixed-point codec.

Translates domain telemetry into the ledger's integer layout and back. The
ledger stores acceleration in an unsigned field, so the signed value is
scaled and shifted by ``ACCEL_OFFSET`` before storage.

Every function here is pure and safe to call from any task or thread.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic.alias_generators import to_snake

from raceledger._constants import (
    ACCEL_FIELD_MAX,
    ACCEL_FIELD_MIN,
    ACCEL_LIMIT,
    ACCEL_OFFSET,
    ACCEL_SCALE,
    LAP_MAX,
    LAP_MIN,
    LAP_PROGRESS_MAX,
    LAP_PROGRESS_MIN,
    POSITION_LIMIT,
    POSITION_SCALE,
    SPEED_MAX,
    SPEED_MIN,
)
from raceledger.exceptions import EncodeOutOfBoundsError
from raceledger.ingestion.normalize import finite_or_zero
from raceledger.models.telemetry import EncodedTelemetry, TelemetryReading

_FIELD_NAMES: frozenset[str] = frozenset(TelemetryReading.model_fields)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def encode_position(value: Any) -> int:
    return int(round(_clamp(finite_or_zero(value), -POSITION_LIMIT, POSITION_LIMIT) * POSITION_SCALE))


def encode_acceleration(value: Any) -> int:
    """Clamp, scale and offset an acceleration in m/s².

    Raises :class:`EncodeOutOfBoundsError` if the stored value would fall
    outside the ledger field's legal range. The clamp keeps this unreachable.
    """
    scaled = int(round(_clamp(finite_or_zero(value), -ACCEL_LIMIT, ACCEL_LIMIT) * ACCEL_SCALE))
    stored = scaled + ACCEL_OFFSET
    if not ACCEL_FIELD_MIN <= stored <= ACCEL_FIELD_MAX:
        raise EncodeOutOfBoundsError(
            f"acceleration {value!r} encodes to {stored}, outside [{ACCEL_FIELD_MIN}, {ACCEL_FIELD_MAX}]",
            field="acceleration",
            value=value,
        )
    return stored


def encode(
    position_x: Any = 0.0,
    position_y: Any = 0.0,
    speed: Any = 0.0,
    current_lap: Any = 0,
    lap_progress: Any = 0.0,
    acceleration: Any = 0.0,
) -> EncodedTelemetry:
    """Encode domain telemetry for ledger storage.

    Non-finite or non-numeric inputs are treated as zero, then every field is
    clamped to its legal range. Positions keep three decimal digits.
    """
    return EncodedTelemetry(
        position_x=encode_position(position_x),
        position_y=encode_position(position_y),
        speed=int(_clamp(round(finite_or_zero(speed)), SPEED_MIN, SPEED_MAX)),
        current_lap=int(_clamp(int(finite_or_zero(current_lap)), LAP_MIN, LAP_MAX)),
        lap_progress=int(_clamp(round(finite_or_zero(lap_progress)), LAP_PROGRESS_MIN, LAP_PROGRESS_MAX)),
        acceleration=encode_acceleration(acceleration),
    )


def encode_fields(fields: Mapping[str, Any]) -> EncodedTelemetry:
    """Encode a telemetry mapping keyed by snake_case or camelCase names.

    Accepts the ledger-facing shape (``positionX``, ``currentLap``, ...) as
    well as the keyword names of :func:`encode`. Missing fields encode as
    zero. Raises ``ValueError`` for keys that are not telemetry fields.
    """
    kwargs: dict[str, Any] = {}
    unknown: list[str] = []
    for key, value in fields.items():
        name = to_snake(key)
        if name in _FIELD_NAMES:
            kwargs[name] = value
        else:
            unknown.append(key)
    if unknown:
        raise ValueError(f"unknown telemetry fields: {', '.join(sorted(unknown))}")
    return encode(**kwargs)


def encode_reading(reading: TelemetryReading) -> EncodedTelemetry:
    return encode(
        position_x=reading.position_x,
        position_y=reading.position_y,
        speed=reading.speed,
        current_lap=reading.current_lap,
        lap_progress=reading.lap_progress,
        acceleration=reading.acceleration,
    )


def decode(encoded: EncodedTelemetry) -> TelemetryReading:
    """Convert stored telemetry back to domain units."""
    return TelemetryReading(
        position_x=encoded.position_x / POSITION_SCALE,
        position_y=encoded.position_y / POSITION_SCALE,
        speed=float(encoded.speed),
        current_lap=encoded.current_lap,
        lap_progress=float(encoded.lap_progress),
        acceleration=(encoded.acceleration - ACCEL_OFFSET) / ACCEL_SCALE,
    )
