"""Helpers for safe debug logging.

RPC traffic can carry signer accounts, raw signed transactions and auth
headers. :func:`redact_for_log` masks them before DEBUG logs are emitted.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

REDACTED = "<redacted>"

# Compared after lowercasing and dropping underscores.
_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "signer",
        "privatekey",
        "signature",
        "rawtransaction",
        "password",
        "authorization",
        "cookie",
    }
)

_MAX_DEPTH = 20


def _is_sensitive(key: object) -> bool:
    return str(key).lower().replace("_", "") in _SENSITIVE_KEYS


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}…<truncated>"


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a copy of *value* with sensitive entries masked.

    Mappings are walked recursively and any value under a sensitive key is
    replaced with ``"<redacted>"``. Long strings are truncated and bytes are
    summarized by length. Unknown objects fall back to ``repr``.
    """
    if _depth > _MAX_DEPTH:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return _truncate(value, max_string)
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    depth = _depth + 1
    if isinstance(value, Mapping):
        return {
            str(key): REDACTED if _is_sensitive(key) else redact_for_log(item, max_string=max_string, _depth=depth)
            for key, item in value.items()
        }
    if isinstance(value, Sequence):
        return [redact_for_log(item, max_string=max_string, _depth=depth) for item in value]
    return repr(value)
