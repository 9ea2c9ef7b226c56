"""
Ledger Store

Durable balances, positions, transaction log and favorites with per-account
atomic read-modify-write.
"""

from .store import AccountTransaction, LedgerClock, LedgerStore

__all__ = [
    'AccountTransaction',
    'LedgerClock',
    'LedgerStore',
]
