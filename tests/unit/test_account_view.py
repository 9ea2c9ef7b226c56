from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest

from core.trading.models import Side
from core.utils.exceptions import AccountNotFoundError
from services.account_view.service import AccountView


@pytest.mark.asyncio
async def test_fresh_account(account_view, alice):
    projection = await account_view.project("alice")

    assert projection.user_id == "alice"
    assert projection.balance == Decimal("10000.00")
    assert projection.positions == []
    assert projection.transactions == []
    assert projection.favorites == []
    assert projection.holdings_value == Decimal("0.00")
    assert projection.total_value == Decimal("10000.00")
    assert projection.total_gain == Decimal("0.00")


@pytest.mark.asyncio
async def test_positions_are_valued_at_current_price(account_view, engine, quote_book, alice):
    await engine.execute("alice", "BUY", "AAPL", 10)
    quote_book.update("AAPL", "190.00")

    projection = await account_view.project("alice")

    [position] = projection.positions
    assert position.symbol == "AAPL"
    assert position.shares == 10
    assert position.avg_cost == Decimal("178.50")
    assert position.price == Decimal("190.00")
    assert position.price_available is True
    assert position.market_value == Decimal("1900.00")
    assert position.cost_basis == Decimal("1785.00")
    assert position.gain == Decimal("115.00")

    assert projection.balance == Decimal("8215.00")
    assert projection.holdings_value == Decimal("1900.00")
    assert projection.total_value == Decimal("10115.00")
    assert projection.total_gain == Decimal("115.00")


@pytest.mark.asyncio
async def test_missing_quote_falls_back_to_average_cost(account_view, engine, quote_book, alice):
    await engine.execute("alice", "BUY", "MSFT", 2)
    quote_book.update("MSFT", None)

    projection = await account_view.project("alice")

    [position] = projection.positions
    assert position.price == Decimal("410.25")
    assert position.price_available is False
    assert position.market_value == Decimal("820.50")
    assert position.gain == Decimal("0.00")


@pytest.mark.asyncio
async def test_failing_price_source_still_projects(store, alice):
    source = Mock()
    source.get_quote = AsyncMock(side_effect=ConnectionError("feed down"))

    async with store.account_transaction("alice") as tx:
        await tx.insert_position("AAPL", 4, Decimal("25.00"))

    projection = await AccountView(store, source).project("alice")

    assert projection.positions[0].price == Decimal("25.00")
    assert projection.holdings_value == Decimal("100.00")


@pytest.mark.asyncio
async def test_recent_transactions_newest_first(account_view, engine, alice):
    await engine.execute("alice", "BUY", "AAPL", 1)
    await engine.execute("alice", "BUY", "MSFT", 1)
    await engine.execute("alice", "SELL", "AAPL", 1)

    projection = await account_view.project("alice")
    assert [(t.side, t.symbol) for t in projection.transactions] == [
        (Side.SELL, "AAPL"), (Side.BUY, "MSFT"), (Side.BUY, "AAPL"),
    ]

    limited = await account_view.project("alice", limit=1)
    assert len(limited.transactions) == 1
    assert limited.transactions[0].side == Side.SELL


@pytest.mark.asyncio
async def test_history_limit_default(store, quote_book, engine, alice):
    for _ in range(4):
        await engine.execute("alice", "BUY", "AAPL", 1)

    projection = await AccountView(store, quote_book, history_limit=3).project("alice")

    assert len(projection.transactions) == 3


@pytest.mark.asyncio
async def test_favorites_included(account_view, watchlist, alice):
    await watchlist.add("alice", "nvda")
    await watchlist.add("alice", "AAPL")

    projection = await account_view.project("alice")

    assert projection.favorites == ["NVDA", "AAPL"]


@pytest.mark.asyncio
async def test_projection_does_not_mutate(account_view, engine, alice, ledger_snapshot):
    await engine.execute("alice", "BUY", "AAPL", 3)
    before = await ledger_snapshot("alice")

    await account_view.project("alice")

    assert await ledger_snapshot("alice") == before


@pytest.mark.asyncio
async def test_unknown_account(account_view):
    with pytest.raises(AccountNotFoundError):
        await account_view.project("ghost")
