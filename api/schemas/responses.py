from pydantic import BaseModel, Field, PlainSerializer
from typing import Annotated, Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal

from core.trading.models import Side, TransactionRecord
from core.trading.outcomes import TradeFailure, TradeReceipt
from services.account_view.service import AccountProjection, PositionView
from services.market_feed.quote_book import StockListing

# Money leaves the API as a JSON number with two decimals
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ErrorResponse(BaseModel):
    """Error response model"""
    error: str
    kind: Optional[str] = None
    category: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_failure(cls, failure: TradeFailure) -> "ErrorResponse":
        return cls(error=failure.message, kind=failure.kind.value,
                   category=failure.category.value, details=failure.details)


# Trades
class TradeRequest(BaseModel):
    """Order body; fields stay loosely typed so the trade engine reports bad values itself"""
    symbol: Any = None
    side: Any = None
    quantity: Any = None
    client_order_id: Optional[str] = Field(None, max_length=64)


class TradeResponse(BaseModel):
    transaction_id: int
    symbol: str
    side: Side
    quantity: int
    price: Money
    total: Money
    balance: Money
    executed_at: datetime
    client_order_id: Optional[str] = None
    replayed: bool = False

    @classmethod
    def from_receipt(cls, receipt: TradeReceipt) -> "TradeResponse":
        return cls(**receipt.model_dump(exclude={"ok", "user_id"}))


# Account
class PositionResponse(BaseModel):
    symbol: str
    shares: int
    avg_cost: Money
    price: Money
    price_available: bool
    market_value: Money
    cost_basis: Money
    gain: Money

    @classmethod
    def from_view(cls, view: PositionView) -> "PositionResponse":
        return cls(**view.model_dump())


class TransactionResponse(BaseModel):
    id: int
    time: datetime
    side: Side
    symbol: str
    quantity: int
    price: Money
    total: Money

    @classmethod
    def from_record(cls, record: TransactionRecord) -> "TransactionResponse":
        return cls(id=record.id, time=record.timestamp, side=record.side, symbol=record.symbol,
                   quantity=record.quantity, price=record.price, total=record.total)


class AccountResponse(BaseModel):
    user_id: str
    balance: Money
    created_at: datetime
    positions: List[PositionResponse]
    transactions: List[TransactionResponse]
    favorites: List[str]
    holdings_value: Money
    total_value: Money
    total_gain: Money

    @classmethod
    def from_projection(cls, projection: AccountProjection) -> "AccountResponse":
        return cls(
            user_id=projection.user_id,
            balance=projection.balance,
            created_at=projection.created_at,
            positions=[PositionResponse.from_view(p) for p in projection.positions],
            transactions=[TransactionResponse.from_record(t) for t in projection.transactions],
            favorites=projection.favorites,
            holdings_value=projection.holdings_value,
            total_value=projection.total_value,
            total_gain=projection.total_gain,
        )


class AccountCreatedResponse(BaseModel):
    user_id: str
    balance: Money
    created_at: datetime


# Market data
class StockResponse(BaseModel):
    symbol: str
    name: str
    description: str
    price: Optional[Money] = None
    previous_close: Optional[Money] = None
    change: Optional[Money] = None
    change_pct: Optional[Money] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_listing(cls, listing: StockListing) -> "StockResponse":
        return cls(**listing.model_dump())


# Favorites
class FavoriteRequest(BaseModel):
    symbol: str = ""


class FavoriteChangeResponse(BaseModel):
    ok: bool = True
    symbol: str
    changed: bool


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: datetime
    database: bool
    quotes_available: int
    symbols: int
