"""
Account View: read-only projection of one account for display.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from core.logging import get_trading_logger_safe
from core.trading.interfaces import PriceSource
from core.trading.models import PositionRecord, TransactionRecord
from core.trading.utils import ZERO, to_money, to_money_or_none
from core.utils.exceptions import AccountNotFoundError
from services.ledger.store import LedgerStore


class PositionView(BaseModel):
    symbol: str
    shares: int
    avg_cost: Decimal
    price: Decimal  # current quote, or avg_cost when no quote is available
    price_available: bool
    market_value: Decimal
    cost_basis: Decimal
    gain: Decimal


class AccountProjection(BaseModel):
    user_id: str
    balance: Decimal
    created_at: datetime
    positions: List[PositionView]
    transactions: List[TransactionRecord]
    favorites: List[str]
    holdings_value: Decimal
    total_value: Decimal
    total_gain: Decimal


class AccountView:
    """Joins ledger state with current quotes; never mutates anything"""

    def __init__(self, store: LedgerStore, price_source: PriceSource,
                 history_limit: int = 50, quote_timeout_seconds: float = 2.0):
        self.store = store
        self.price_source = price_source
        self.history_limit = history_limit
        self.quote_timeout_seconds = quote_timeout_seconds
        self.logger = get_trading_logger_safe("account_view")

    async def project(self, user_id: str, limit: Optional[int] = None) -> AccountProjection:
        """Balance, valued positions, recent transactions (newest first) and favorites.

        Raises:
            AccountNotFoundError: no account is open for ``user_id``
            LedgerStorageError: propagated from the store
        """
        account = await self.store.get_account(user_id)
        if account is None:
            raise AccountNotFoundError(user_id)

        positions = await self.store.list_positions(user_id)
        transactions = await self.store.list_transactions(
            user_id, limit if limit is not None else self.history_limit
        )
        favorites = await self.store.list_favorites(user_id)

        views = [await self._value(position) for position in positions]
        holdings_value = to_money(sum((v.market_value for v in views), ZERO))
        total_gain = to_money(sum((v.gain for v in views), ZERO))

        return AccountProjection(
            user_id=account.user_id,
            balance=account.balance,
            created_at=account.created_at,
            positions=views,
            transactions=transactions,
            favorites=[f.symbol for f in favorites],
            holdings_value=holdings_value,
            total_value=to_money(account.balance + holdings_value),
            total_gain=total_gain,
        )

    async def _value(self, position: PositionRecord) -> PositionView:
        quoted = await self._quoted_price(position.symbol)
        price = quoted if quoted is not None else position.avg_cost
        market_value = to_money(price * position.shares)
        cost_basis = to_money(position.avg_cost * position.shares)
        return PositionView(
            symbol=position.symbol,
            shares=position.shares,
            avg_cost=position.avg_cost,
            price=price,
            price_available=quoted is not None,
            market_value=market_value,
            cost_basis=cost_basis,
            gain=to_money(market_value - cost_basis),
        )

    async def _quoted_price(self, symbol: str) -> Optional[Decimal]:
        try:
            quote = await asyncio.wait_for(self.price_source.get_quote(symbol),
                                           timeout=self.quote_timeout_seconds)
        except asyncio.TimeoutError:
            self.logger.warning("Quote lookup timed out", symbol=symbol)
            return None
        except Exception as e:
            self.logger.warning("Quote lookup failed", symbol=symbol, error=str(e))
            return None
        if quote is None:
            return None
        price = to_money_or_none(quote.price)
        return price if price is not None and price > 0 else None
