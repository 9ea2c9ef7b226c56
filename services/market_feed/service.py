# services/market_feed/service.py

import asyncio
import logging
from decimal import Decimal
from typing import Optional, Tuple

import yfinance as yf

from core.config.settings import MarketFeedSettings
from core.logging import get_error_logger_safe, get_market_data_logger_safe
from core.monitoring.prometheus_metrics import LedgerMetrics

from .quote_book import QuoteBook

# yfinance is chatty about delisted or throttled symbols; failures are logged here instead
logging.getLogger("yfinance").setLevel(logging.ERROR)


class QuoteFetchError(Exception):
    """Yahoo returned no usable price for a symbol"""


def fetch_quote(symbol: str) -> Tuple[Decimal, Optional[Decimal]]:
    """Latest close and the close before it, from daily bars.

    Blocking; run it in a worker thread.
    """
    history = yf.Ticker(symbol).history(period="5d", interval="1d")
    if history is None or history.empty:
        raise QuoteFetchError(f"No price history returned for {symbol}")

    closes = history["Close"].dropna()
    if closes.empty:
        raise QuoteFetchError(f"No closing prices returned for {symbol}")

    price = Decimal(str(float(closes.iloc[-1])))
    previous_close = Decimal(str(float(closes.iloc[-2]))) if len(closes) > 1 else None
    return price, previous_close


class QuoteFeedService:
    """
    Refreshes the quote book from Yahoo Finance on a fixed interval.

    Symbols are fetched one at a time; a symbol that fails is logged and
    keeps its previous quote.
    """

    def __init__(self, quote_book: QuoteBook, settings: MarketFeedSettings,
                 metrics: Optional[LedgerMetrics] = None, fetcher=fetch_quote):
        self.quote_book = quote_book
        self.settings = settings
        self.metrics = metrics
        self._fetcher = fetcher
        self._running = False
        self._feed_task: Optional[asyncio.Task] = None
        self.logger = get_market_data_logger_safe("market_feed")
        self.error_logger = get_error_logger_safe("market_feed_errors")

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._feed_task = asyncio.create_task(self._run_feed())
        self.logger.info("Quote feed started",
                         symbols=len(self.quote_book.symbols),
                         refresh_interval_seconds=self.settings.refresh_interval_seconds)

    async def stop(self) -> None:
        self._running = False
        if self._feed_task:
            self._feed_task.cancel()
            try:
                await self._feed_task
            except asyncio.CancelledError:
                pass
            self._feed_task = None
        self.logger.info("Quote feed stopped")

    async def refresh_once(self) -> int:
        """Fetch every symbol once; returns how many were updated"""
        updated = 0
        for symbol in self.quote_book.symbols:
            try:
                price, previous_close = await asyncio.to_thread(self._fetcher, symbol)
                quote = self.quote_book.update(symbol, price, previous_close)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.error_logger.error("Failed to fetch price", symbol=symbol, error=str(e))
                if self.metrics:
                    self.metrics.record_quote_update(success=False)
                continue

            updated += 1
            if self.metrics:
                self.metrics.record_quote_update(success=True)
            self.logger.debug("Price updated", symbol=symbol, price=str(quote.price))

        if self.metrics:
            self.metrics.set_quotes_available(self.quote_book.available_count())
        self.logger.info("Quote refresh complete", updated=updated,
                         total=len(self.quote_book.symbols))
        return updated

    async def _run_feed(self) -> None:
        while self._running:
            try:
                await self.refresh_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.error_logger.error("Quote refresh failed", error=str(e), exc_info=True)
            await asyncio.sleep(self.settings.refresh_interval_seconds)
