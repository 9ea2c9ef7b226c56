"""
Typed results of a trade request.

``TradeEngine.execute`` returns exactly one of ``TradeReceipt`` or
``TradeFailure``. Failures carry a closed ``FailureKind``; the category is
derived from the kind so callers can branch on either without string matching.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .models import Side


class FailureCategory(str, Enum):
    VALIDATION = "validation"
    TRANSIENT_UNAVAILABLE = "transient_unavailable"
    BUSINESS_RULE_VIOLATION = "business_rule_violation"
    STORAGE_FAILURE = "storage_failure"


class FailureKind(str, Enum):
    INVALID_SIDE = "INVALID_SIDE"
    UNKNOWN_SYMBOL = "UNKNOWN_SYMBOL"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    IDEMPOTENCY_CONFLICT = "IDEMPOTENCY_CONFLICT"
    PRICE_UNAVAILABLE = "PRICE_UNAVAILABLE"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    INSUFFICIENT_SHARES = "INSUFFICIENT_SHARES"
    STORAGE_FAILURE = "STORAGE_FAILURE"

    @property
    def category(self) -> FailureCategory:
        return _CATEGORIES[self]

    @property
    def retryable(self) -> bool:
        return self.category in (FailureCategory.TRANSIENT_UNAVAILABLE, FailureCategory.STORAGE_FAILURE)


_CATEGORIES: Dict[FailureKind, FailureCategory] = {
    FailureKind.INVALID_SIDE: FailureCategory.VALIDATION,
    FailureKind.UNKNOWN_SYMBOL: FailureCategory.VALIDATION,
    FailureKind.INVALID_QUANTITY: FailureCategory.VALIDATION,
    FailureKind.ACCOUNT_NOT_FOUND: FailureCategory.VALIDATION,
    FailureKind.IDEMPOTENCY_CONFLICT: FailureCategory.VALIDATION,
    FailureKind.PRICE_UNAVAILABLE: FailureCategory.TRANSIENT_UNAVAILABLE,
    FailureKind.INSUFFICIENT_FUNDS: FailureCategory.BUSINESS_RULE_VIOLATION,
    FailureKind.INSUFFICIENT_SHARES: FailureCategory.BUSINESS_RULE_VIOLATION,
    FailureKind.STORAGE_FAILURE: FailureCategory.STORAGE_FAILURE,
}


class TradeReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: Literal[True] = True
    transaction_id: int
    user_id: str
    side: Side
    symbol: str
    quantity: int
    price: Decimal
    total: Decimal
    balance: Decimal  # cash balance after the trade
    executed_at: datetime
    client_order_id: Optional[str] = None
    replayed: bool = False


class TradeFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: Literal[False] = False
    kind: FailureKind
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def category(self) -> FailureCategory:
        return self.kind.category

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


TradeOutcome = Union[TradeReceipt, TradeFailure]
