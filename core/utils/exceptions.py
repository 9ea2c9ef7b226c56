# Structured exception hierarchy for the marketplace ledger

from decimal import Decimal
from typing import Dict, Any, Optional
from datetime import datetime, timezone


class LedgerException(Exception):
    """Base exception for all ledger specific errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)


class TransientError(LedgerException):
    """Failure that may succeed when retried later; nothing was mutated"""
    pass


class PermanentError(LedgerException):
    """Failure caused by the request itself; retrying the same request fails again"""
    pass


# Storage Errors
class LedgerStorageError(TransientError):
    """Infrastructure fault raised by the ledger store.

    The surrounding transaction has already been rolled back when this
    propagates out of the store.
    """

    def __init__(self, message: str, operation: str, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation


class ConstraintViolationError(LedgerStorageError):
    """Uniqueness or referential constraint rejected a write"""
    pass


class AccountExistsError(ConstraintViolationError):
    """An account with this user id is already open"""

    def __init__(self, user_id: str, **kwargs):
        super().__init__(f"Account already exists for user {user_id}",
                         operation="create_account", **kwargs)
        self.user_id = user_id


class AccountNotFoundError(PermanentError):
    """No account is open for this user id"""

    def __init__(self, user_id: str, **kwargs):
        super().__init__(f"No account for user {user_id}", **kwargs)
        self.user_id = user_id


# Business rule violations
class InsufficientFundsError(PermanentError):
    """Insufficient funds for trade execution"""

    def __init__(self, required_amount: Decimal, available_amount: Decimal,
                 user_id: str, **kwargs):
        super().__init__(
            f"Insufficient funds. Need ${required_amount:.2f}, have ${available_amount:.2f}",
            **kwargs,
        )
        self.required_amount = required_amount
        self.available_amount = available_amount
        self.user_id = user_id


class InsufficientSharesError(PermanentError):
    """Sell order exceeds the shares held"""

    def __init__(self, owned_shares: int, requested_shares: int, symbol: str,
                 user_id: str, **kwargs):
        super().__init__(
            f"Insufficient shares. You own {owned_shares}, tried to sell {requested_shares}",
            **kwargs,
        )
        self.owned_shares = owned_shares
        self.requested_shares = requested_shares
        self.symbol = symbol
        self.user_id = user_id


class IdempotencyConflictError(PermanentError):
    """A client order id was reused for a different order"""

    def __init__(self, client_order_id: str, **kwargs):
        super().__init__(
            f"Client order id {client_order_id} was already used for a different order",
            **kwargs,
        )
        self.client_order_id = client_order_id


class UnknownSymbolError(PermanentError):
    """Symbol is not part of the tradable universe"""

    def __init__(self, symbol: str, **kwargs):
        super().__init__(f"Invalid symbol {symbol!r}", **kwargs)
        self.symbol = symbol
