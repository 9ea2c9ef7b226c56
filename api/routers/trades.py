from fastapi import APIRouter, Depends

from api.dependencies import get_current_user_id, get_trade_engine
from api.error_handlers import failure_response
from api.schemas.responses import ErrorResponse, TradeRequest, TradeResponse
from core.trading.outcomes import TradeFailure
from services.trade_engine.service import TradeEngine

router = APIRouter(prefix="/trades", tags=["Trades"])


@router.post(
    "",
    response_model=TradeResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse, "description": "Price unavailable, retry later"},
    },
)
async def place_trade(
    order: TradeRequest,
    user_id: str = Depends(get_current_user_id),
    engine: TradeEngine = Depends(get_trade_engine),
):
    """
    Execute a BUY or SELL at the current quoted price.

    Supplying ``client_order_id`` makes the request safe to resend: a repeat
    returns the original execution with ``replayed`` set.
    """
    outcome = await engine.execute(
        user_id,
        order.side,
        order.symbol,
        order.quantity,
        client_order_id=order.client_order_id,
    )
    if isinstance(outcome, TradeFailure):
        return failure_response(outcome)
    return TradeResponse.from_receipt(outcome)
