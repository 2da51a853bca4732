"""Ledger integrity service: double-entry validation, approvals, matching and closing."""

__version__ = "0.1.0"
