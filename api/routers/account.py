from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import (
    get_account_view, get_current_user_id, get_ledger_store, get_settings,
)
from api.schemas.responses import AccountCreatedResponse, AccountResponse, ErrorResponse
from core.config.settings import Settings
from services.account_view.service import AccountView
from services.ledger.store import LedgerStore

router = APIRouter(prefix="/account", tags=["Account"])


@router.get("", response_model=AccountResponse, responses={404: {"model": ErrorResponse}})
async def get_account(
    limit: Optional[int] = Query(None, ge=1, le=500, description="Recent transactions to include"),
    user_id: str = Depends(get_current_user_id),
    view: AccountView = Depends(get_account_view),
):
    """Balance, valued positions, recent transactions and favorites."""
    projection = await view.project(user_id, limit=limit)
    return AccountResponse.from_projection(projection)


@router.post(
    "",
    response_model=AccountCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def open_account(
    user_id: str = Depends(get_current_user_id),
    store: LedgerStore = Depends(get_ledger_store),
    settings: Settings = Depends(get_settings),
):
    """Open an account for the caller at the configured starting balance."""
    account = await store.create_account(user_id, settings.ledger.starting_balance)
    return AccountCreatedResponse(user_id=account.user_id, balance=account.balance,
                                  created_at=account.created_at)
