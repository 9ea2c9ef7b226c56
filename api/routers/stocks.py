from typing import List

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_current_user_id, get_quote_book
from api.schemas.responses import ErrorResponse, StockResponse
from services.market_feed.quote_book import QuoteBook

router = APIRouter(
    prefix="/stocks",
    tags=["Stocks"],
    dependencies=[Depends(get_current_user_id)]  # Protect all routes in this file
)


@router.get("", response_model=List[StockResponse])
async def list_stocks(quote_book: QuoteBook = Depends(get_quote_book)):
    """All tradable symbols with their current quote and day change."""
    return [StockResponse.from_listing(listing) for listing in quote_book.snapshot()]


@router.get("/{symbol}", response_model=StockResponse, responses={404: {"model": ErrorResponse}})
async def get_stock(symbol: str, quote_book: QuoteBook = Depends(get_quote_book)):
    listing = quote_book.listing(symbol)
    if listing is None:
        raise HTTPException(status_code=404, detail="Stock not found")
    return StockResponse.from_listing(listing)
