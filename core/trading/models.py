from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class LedgerRecord(BaseModel):
    """Read-only snapshot of a stored row; the store never hands out live ORM objects."""

    model_config = ConfigDict(frozen=True, from_attributes=True)


class AccountRecord(LedgerRecord):
    user_id: str
    balance: Decimal
    created_at: datetime


class PositionRecord(LedgerRecord):
    user_id: str
    symbol: str
    shares: int = Field(gt=0)
    avg_cost: Decimal


class TransactionRecord(LedgerRecord):
    id: int
    user_id: str
    side: Side
    symbol: str
    quantity: int = Field(gt=0)
    price: Decimal
    total: Decimal
    timestamp: datetime
    client_order_id: Optional[str] = None


class FavoriteRecord(LedgerRecord):
    user_id: str
    symbol: str
    added_at: datetime


class Quote(BaseModel):
    """Current and previous-close price for one symbol.

    A price of None or 0 means the feed has not delivered a usable value yet.
    """

    symbol: str
    name: str = ""
    description: str = ""
    price: Optional[Decimal] = None
    previous_close: Optional[Decimal] = None
    updated_at: Optional[datetime] = None

    @property
    def is_available(self) -> bool:
        return self.price is not None and self.price > 0
