"""Normalization helpers.

Centralizes parsing of ledger values, which may arrive as JSON
numbers, decimal strings or ``0x`` prefixed hex quantities.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def finite_or_zero(value: Any) -> float:
    """Return *value* as a finite float, or ``0.0`` for anything else."""
    parsed = safe_float(value)
    return 0.0 if parsed is None else parsed


def safe_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            try:
                return int(text, 16)
            except ValueError:
                return None
        if text.lstrip("-").isdigit():
            return int(text)
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


def to_wei_string(value: Any) -> str:
    """Normalize an arbitrary-precision amount to a non-negative decimal string.

    Amounts are kept as strings so wei-sized values never pass through a float.
    Missing or unparseable amounts normalize to ``"0"``.
    """
    parsed = safe_int(value)
    if parsed is None or parsed < 0:
        return "0"
    return str(parsed)


def token_id_list(value: Any) -> tuple[int, ...]:
    """Parse a sequence of token ids, skipping unparseable entries."""
    if not isinstance(value, (list, tuple)):
        return ()
    ids: list[int] = []
    for item in value:
        parsed = safe_int(item)
        if parsed is not None:
            ids.append(parsed)
    return tuple(ids)
