"""Payroll derivation and ledger-integrity engine."""

__version__ = "1.0.0"
