"""
In-memory quote book for the tradable symbol universe.

Implements ``PriceSource`` for the trade engine and account view. Prices
start out unavailable (None) until a feed or an operator calls ``update``.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from core.logging import get_market_data_logger_safe
from core.trading.models import Quote
from core.trading.utils import normalize_symbol, to_money, to_money_or_none

logger = get_market_data_logger_safe("quote_book")

# symbol -> (name, description)
CATALOGUE: Dict[str, tuple] = {
    "AAPL": ("Apple Inc.", "Technology company known for iPhone, Mac, and services."),
    "TSLA": ("Tesla Inc.", "Electric vehicle and clean energy company."),
    "MSFT": ("Microsoft Corp.", "Cloud computing, Windows, Office, and Xbox."),
    "GOOGL": ("Alphabet Inc.", "Google Search, YouTube, and Google Cloud."),
    "AMZN": ("Amazon.com Inc.", "E-commerce, AWS cloud, and Prime Video."),
    "META": ("Meta Platforms", "Facebook, Instagram, WhatsApp, and Reality Labs."),
    "NVDA": ("NVIDIA Corp.", "GPUs, AI chips, and data center hardware."),
    "NFLX": ("Netflix Inc.", "Global streaming entertainment service."),
    "AMD": ("Advanced Micro Devices", "CPUs, GPUs, and semiconductor solutions."),
    "INTC": ("Intel Corp.", "Semiconductor chips, processors, and networking."),
    "BABA": ("Alibaba Group", "Chinese e-commerce, cloud, and fintech."),
    "DIS": ("The Walt Disney Co.", "Media, theme parks, Disney+, and ESPN."),
    "UBER": ("Uber Technologies", "Ride-hailing, food delivery, and freight."),
    "SPOT": ("Spotify Technology", "Music and podcast streaming platform."),
    "PYPL": ("PayPal Holdings", "Online payments, Venmo, and digital wallets."),
    "SHOP": ("Shopify Inc.", "E-commerce platform for merchants worldwide."),
    "COIN": ("Coinbase Global", "Cryptocurrency exchange and wallet services."),
    "SNAP": ("Snap Inc.", "Snapchat social media and AR technology."),
    "PLTR": ("Palantir Technologies", "AI-powered data analytics for enterprise and government."),
    "RIVN": ("Rivian Automotive", "Electric trucks, vans, and adventure vehicles."),
}


class StockListing(BaseModel):
    symbol: str
    name: str
    description: str
    price: Optional[Decimal] = None
    previous_close: Optional[Decimal] = None
    change: Optional[Decimal] = None
    change_pct: Optional[Decimal] = None
    updated_at: Optional[datetime] = None


def build_listing(quote: Quote) -> StockListing:
    """Quote plus day change; change_pct is None when there is no previous close"""
    change = change_pct = None
    if quote.price is not None and quote.previous_close is not None:
        change = to_money(quote.price - quote.previous_close)
        if quote.previous_close != 0:
            change_pct = to_money(change / quote.previous_close * 100)
    return StockListing(
        symbol=quote.symbol,
        name=quote.name,
        description=quote.description,
        price=quote.price,
        previous_close=quote.previous_close,
        change=change,
        change_pct=change_pct,
        updated_at=quote.updated_at,
    )


class QuoteBook:
    """Current quotes keyed by symbol"""

    def __init__(self, symbols: Iterable[str]):
        self._quotes: Dict[str, Quote] = {}
        for raw in symbols:
            symbol = normalize_symbol(raw)
            if not symbol or symbol in self._quotes:
                continue
            name, description = CATALOGUE.get(symbol, (symbol, ""))
            self._quotes[symbol] = Quote(symbol=symbol, name=name, description=description)

    @property
    def symbols(self) -> List[str]:
        return list(self._quotes)

    def is_listed(self, symbol: str) -> bool:
        return normalize_symbol(symbol) in self._quotes

    async def get_quote(self, symbol: str) -> Optional[Quote]:
        return self.quote(symbol)

    def quote(self, symbol: str) -> Optional[Quote]:
        return self._quotes.get(normalize_symbol(symbol))

    def update(self, symbol: str, price, previous_close=None) -> Quote:
        """Store a new price, rounded to cents.

        ``previous_close`` of None keeps the one already held. A price of
        None or 0 marks the symbol unavailable for trading.
        """
        symbol = normalize_symbol(symbol)
        current = self._quotes.get(symbol)
        if current is None:
            raise KeyError(f"{symbol} is not a listed symbol")

        new_previous = to_money_or_none(previous_close)
        updated = current.model_copy(update={
            "price": to_money_or_none(price),
            "previous_close": new_previous if new_previous is not None else current.previous_close,
            "updated_at": datetime.now(timezone.utc),
        })
        self._quotes[symbol] = updated
        logger.debug("Quote updated", symbol=symbol, price=str(updated.price),
                     previous_close=str(updated.previous_close))
        return updated

    def available_count(self) -> int:
        return sum(1 for quote in self._quotes.values() if quote.is_available)

    def listing(self, symbol: str) -> Optional[StockListing]:
        quote = self.quote(symbol)
        return build_listing(quote) if quote is not None else None

    def snapshot(self) -> List[StockListing]:
        return [build_listing(quote) for quote in self._quotes.values()]
