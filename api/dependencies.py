from fastapi import Depends, HTTPException, Request, status
from dependency_injector.wiring import inject, Provide

from app.containers import AppContainer
from core.config.settings import Settings
from services.account_view.service import AccountView
from services.ledger.store import LedgerStore
from services.market_feed.quote_book import QuoteBook
from services.trade_engine.service import TradeEngine
from services.watchlist.service import WatchlistService


# Authentication happens upstream; the proxy forwards the user id in a header
@inject
async def get_current_user_id(
    request: Request,
    settings: Settings = Depends(Provide[AppContainer.settings])
) -> str:
    """Authenticated user id from the configured header"""
    user_id = (request.headers.get(settings.api.user_header) or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Authentication required ({settings.api.user_header} header missing)",
        )
    return user_id


@inject
def get_settings(
    settings: Settings = Depends(Provide[AppContainer.settings])
) -> Settings:
    return settings


@inject
def get_trade_engine(
    trade_engine: TradeEngine = Depends(Provide[AppContainer.trade_engine])
) -> TradeEngine:
    return trade_engine


@inject
def get_account_view(
    account_view: AccountView = Depends(Provide[AppContainer.account_view])
) -> AccountView:
    return account_view


@inject
def get_ledger_store(
    ledger_store: LedgerStore = Depends(Provide[AppContainer.ledger_store])
) -> LedgerStore:
    return ledger_store


@inject
def get_quote_book(
    quote_book: QuoteBook = Depends(Provide[AppContainer.quote_book])
) -> QuoteBook:
    return quote_book


@inject
def get_watchlist(
    watchlist: WatchlistService = Depends(Provide[AppContainer.watchlist])
) -> WatchlistService:
    return watchlist
