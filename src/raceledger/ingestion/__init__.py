"""Ingestion layer.

This package contains the adapters that turn ledger data (catch-up scans,
live events) into cache mutations.
"""

__all__: list[str] = []
