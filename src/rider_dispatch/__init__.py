"""Rider dispatch, matching and earnings ledger service."""

__version__ = "1.0.0"
