# DI container for the marketplace ledger
from dependency_injector import containers, providers
from prometheus_client import CollectorRegistry

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from core.monitoring.prometheus_metrics import LedgerMetrics
from services.account_view.service import AccountView
from services.ledger.store import LedgerStore
from services.market_feed.quote_book import QuoteBook
from services.market_feed.service import QuoteFeedService
from services.trade_engine.service import TradeEngine
from services.watchlist.service import WatchlistService


class AppContainer(containers.DeclarativeContainer):
    """Application dependency injection container"""

    # Configuration
    settings = providers.Singleton(Settings)

    # --- Observability: Prometheus ---
    # Shared registry used by the API /metrics endpoint and collectors
    prometheus_registry = providers.Singleton(CollectorRegistry)
    metrics = providers.Singleton(
        LedgerMetrics,
        registry=prometheus_registry,
    )

    db_manager = providers.Singleton(
        DatabaseManager,
        db_url=settings.provided.database.url,
        echo=settings.provided.database.echo,
        busy_timeout_seconds=settings.provided.database.busy_timeout_seconds,
    )

    # Price source shared by trading, the account view and the feed
    quote_book = providers.Singleton(
        QuoteBook,
        symbols=settings.provided.market_feed.symbols,
    )

    quote_feed = providers.Singleton(
        QuoteFeedService,
        quote_book=quote_book,
        settings=settings.provided.market_feed,
        metrics=metrics,
    )

    ledger_store = providers.Singleton(
        LedgerStore,
        db_manager=db_manager,
    )

    trade_engine = providers.Singleton(
        TradeEngine,
        store=ledger_store,
        price_source=quote_book,
        settings=settings.provided.ledger,
        metrics=metrics,
    )

    account_view = providers.Singleton(
        AccountView,
        store=ledger_store,
        price_source=quote_book,
        history_limit=settings.provided.ledger.history_limit,
        quote_timeout_seconds=settings.provided.ledger.quote_timeout_seconds,
    )

    watchlist = providers.Singleton(
        WatchlistService,
        store=ledger_store,
        price_source=quote_book,
    )
