"""
Shared trading core: money helpers, ledger records, outcomes, and the
price source protocol.

This package hosts the storage-agnostic types used by the Ledger Store,
the Trade Engine and the Account View.
"""
