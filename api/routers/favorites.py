from typing import List

from fastapi import APIRouter, Depends

from api.dependencies import get_current_user_id, get_watchlist
from api.schemas.responses import ErrorResponse, FavoriteChangeResponse, FavoriteRequest
from core.trading.utils import normalize_symbol
from services.watchlist.service import WatchlistService

router = APIRouter(prefix="/favorites", tags=["Favorites"])


@router.get("", response_model=List[str])
async def list_favorites(
    user_id: str = Depends(get_current_user_id),
    watchlist: WatchlistService = Depends(get_watchlist),
):
    """Favorite symbols, oldest first."""
    return await watchlist.list(user_id)


@router.post("", response_model=FavoriteChangeResponse,
             responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}})
async def add_favorite(
    body: FavoriteRequest,
    user_id: str = Depends(get_current_user_id),
    watchlist: WatchlistService = Depends(get_watchlist),
):
    added = await watchlist.add(user_id, body.symbol)
    return FavoriteChangeResponse(symbol=normalize_symbol(body.symbol), changed=added)


@router.delete("/{symbol}", response_model=FavoriteChangeResponse,
               responses={404: {"model": ErrorResponse}})
async def remove_favorite(
    symbol: str,
    user_id: str = Depends(get_current_user_id),
    watchlist: WatchlistService = Depends(get_watchlist),
):
    removed = await watchlist.remove(user_id, symbol)
    return FavoriteChangeResponse(symbol=normalize_symbol(symbol), changed=removed)
