from typing import List

from core.logging import get_trading_logger_safe
from core.trading.interfaces import PriceSource
from core.trading.utils import normalize_symbol
from core.utils.exceptions import UnknownSymbolError
from services.ledger.store import LedgerStore


class WatchlistService:
    """Per-account favorite symbols"""

    def __init__(self, store: LedgerStore, price_source: PriceSource):
        self.store = store
        self.price_source = price_source
        self.logger = get_trading_logger_safe("watchlist")

    async def add(self, user_id: str, symbol: str) -> bool:
        """Idempotent; returns True if the symbol was not already a favorite"""
        sym = normalize_symbol(symbol)
        if not sym or not self.price_source.is_listed(sym):
            raise UnknownSymbolError(symbol)
        added = await self.store.add_favorite(user_id, sym)
        if added:
            self.logger.info("Favorite added", user_id=user_id, symbol=sym)
        return added

    async def remove(self, user_id: str, symbol: str) -> bool:
        sym = normalize_symbol(symbol)
        removed = await self.store.remove_favorite(user_id, sym)
        if removed:
            self.logger.info("Favorite removed", user_id=user_id, symbol=sym)
        return removed

    async def list(self, user_id: str) -> List[str]:
        return [favorite.symbol for favorite in await self.store.list_favorites(user_id)]
