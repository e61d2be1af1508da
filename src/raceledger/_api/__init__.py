"""Ledger gateway endpoint modules (internal)."""
