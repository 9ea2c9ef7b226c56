"""
Pytest configuration and shared fixtures for Marketplace Ledger tests.
"""
import pytest
from decimal import Decimal

from prometheus_client import CollectorRegistry

from core.config.settings import (
    DEFAULT_SYMBOLS, DatabaseSettings, LedgerSettings, LoggingSettings, Settings,
)
from core.database.connection import DatabaseManager
from core.monitoring.prometheus_metrics import LedgerMetrics
from services.account_view.service import AccountView
from services.ledger.store import LedgerStore
from services.market_feed.quote_book import QuoteBook
from services.trade_engine.service import TradeEngine
from services.watchlist.service import WatchlistService

STARTING_BALANCE = Decimal("10000.00")


@pytest.fixture
def test_settings(tmp_path):
    """Test settings configuration with a throwaway SQLite file."""
    return Settings(
        environment="testing",
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"),
        ledger=LedgerSettings(quote_timeout_seconds=0.2),
        logging=LoggingSettings(file_enabled=False, level="WARNING"),
    )


@pytest.fixture
async def db_manager(test_settings):
    manager = DatabaseManager(test_settings.database.url)
    await manager.init()
    yield manager
    await manager.shutdown()


@pytest.fixture
async def store(db_manager):
    return LedgerStore(db_manager)


@pytest.fixture
def quote_book():
    """Quote book with AAPL and MSFT priced; every other symbol is still loading."""
    book = QuoteBook(DEFAULT_SYMBOLS)
    book.update("AAPL", "178.50", "175.00")
    book.update("MSFT", "410.25", "405.00")
    return book


@pytest.fixture
def metrics():
    return LedgerMetrics(CollectorRegistry())


@pytest.fixture
def engine(store, quote_book, test_settings, metrics):
    return TradeEngine(store, quote_book, test_settings.ledger, metrics)


@pytest.fixture
def account_view(store, quote_book, test_settings):
    return AccountView(store, quote_book, history_limit=test_settings.ledger.history_limit)


@pytest.fixture
def watchlist(store, quote_book):
    return WatchlistService(store, quote_book)


@pytest.fixture
async def alice(store):
    """Open account with the default starting balance."""
    return await store.create_account("alice", STARTING_BALANCE)


@pytest.fixture
def ledger_snapshot(store):
    """Everything the ledger holds for one account, for before/after comparisons."""
    async def _snapshot(user_id):
        return (
            await store.get_account(user_id),
            await store.list_positions(user_id),
            await store.list_transactions(user_id),
            await store.list_favorites(user_id),
        )
    return _snapshot
