import asyncio
from decimal import Decimal

import pytest

from core.trading.models import Side
from core.utils.exceptions import (
    AccountExistsError, AccountNotFoundError, ConstraintViolationError,
)
from services.ledger.store import LedgerClock


class TestAccounts:

    @pytest.mark.asyncio
    async def test_create_and_read(self, store):
        account = await store.create_account("carol", Decimal("10000"))

        assert account.balance == Decimal("10000.00")
        loaded = await store.get_account("carol")
        assert loaded == account
        assert loaded.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_duplicate_account(self, store, alice):
        with pytest.raises(AccountExistsError):
            await store.create_account("alice", Decimal("1.00"))

    @pytest.mark.asyncio
    async def test_negative_starting_balance(self, store):
        with pytest.raises(ValueError):
            await store.create_account("dave", Decimal("-1"))

    @pytest.mark.asyncio
    async def test_unknown_account_reads(self, store):
        assert await store.get_account("ghost") is None
        assert await store.list_positions("ghost") == []
        assert await store.list_transactions("ghost") == []

    @pytest.mark.asyncio
    async def test_transaction_on_unknown_account(self, store):
        with pytest.raises(AccountNotFoundError):
            async with store.account_transaction("ghost"):
                pass

    @pytest.mark.asyncio
    async def test_delete_cascades(self, store, alice):
        async with store.account_transaction("alice") as tx:
            await tx.insert_position("AAPL", 3, Decimal("100.00"))
            await tx.append_record(Side.BUY, "AAPL", 3, Decimal("100.00"), Decimal("300.00"))
        await store.add_favorite("alice", "AAPL")

        assert await store.delete_account("alice") is True

        assert await store.get_account("alice") is None
        assert await store.list_positions("alice") == []
        assert await store.list_transactions("alice") == []
        assert await store.list_favorites("alice") == []
        assert await store.delete_account("alice") is False

    @pytest.mark.asyncio
    async def test_reopen_after_delete(self, store, alice):
        await store.delete_account("alice")
        account = await store.create_account("alice", Decimal("50.00"))
        assert account.balance == Decimal("50.00")


class TestAccountTransaction:

    @pytest.mark.asyncio
    async def test_changes_commit_together(self, store, alice):
        async with store.account_transaction("alice") as tx:
            tx.set_balance(tx.balance - Decimal("300.00"))
            await tx.insert_position("AAPL", 3, Decimal("100.00"))
            record = await tx.append_record(Side.BUY, "AAPL", 3, Decimal("100.00"), Decimal("300.00"))

        assert record.id is not None
        assert (await store.get_account("alice")).balance == Decimal("9700.00")
        assert (await store.get_position("alice", "AAPL")).shares == 3
        assert (await store.list_transactions("alice"))[0] == record

    @pytest.mark.asyncio
    async def test_reads_do_not_wait_for_an_open_transaction(self, store, alice):
        async with store.account_transaction("alice") as tx:
            tx.set_balance(Decimal("1.00"))
            await tx.session.flush()

            account = await asyncio.wait_for(store.get_account("alice"), timeout=1.0)

        # Readers see the last committed balance
        assert account.balance == Decimal("10000.00")
        assert (await store.get_account("alice")).balance == Decimal("1.00")

    @pytest.mark.asyncio
    async def test_exception_rolls_back(self, store, alice, ledger_snapshot):
        before = await ledger_snapshot("alice")

        with pytest.raises(RuntimeError):
            async with store.account_transaction("alice") as tx:
                tx.set_balance(Decimal("1.00"))
                await tx.insert_position("AAPL", 3, Decimal("100.00"))
                await tx.append_record(Side.BUY, "AAPL", 3, Decimal("100.00"), Decimal("300.00"))
                raise RuntimeError("abort")

        assert await ledger_snapshot("alice") == before

    @pytest.mark.asyncio
    async def test_duplicate_position_key(self, store, alice):
        async with store.account_transaction("alice") as tx:
            await tx.insert_position("AAPL", 3, Decimal("100.00"))

        with pytest.raises(ConstraintViolationError):
            async with store.account_transaction("alice") as tx:
                tx.set_balance(Decimal("5.00"))
                await tx.insert_position("AAPL", 1, Decimal("90.00"))

        position = await store.get_position("alice", "AAPL")
        assert position.shares == 3
        assert position.avg_cost == Decimal("100.00")
        assert (await store.get_account("alice")).balance == Decimal("10000.00")

    @pytest.mark.asyncio
    async def test_zero_share_position_is_rejected(self, store, alice):
        with pytest.raises(ConstraintViolationError):
            async with store.account_transaction("alice") as tx:
                await tx.insert_position("AAPL", 0, Decimal("100.00"))

    @pytest.mark.asyncio
    async def test_missing_position_cannot_be_changed(self, store, alice):
        with pytest.raises(ConstraintViolationError):
            async with store.account_transaction("alice") as tx:
                await tx.delete_position("AAPL")

        with pytest.raises(ConstraintViolationError):
            async with store.account_transaction("alice") as tx:
                await tx.update_position("AAPL", 2, Decimal("1.00"))

    @pytest.mark.asyncio
    async def test_negative_balance_is_rejected(self, store, alice):
        with pytest.raises(ConstraintViolationError):
            async with store.account_transaction("alice") as tx:
                tx.set_balance(Decimal("-0.01"))

        assert (await store.get_account("alice")).balance == Decimal("10000.00")

    @pytest.mark.asyncio
    async def test_duplicate_client_order_id(self, store, alice):
        async with store.account_transaction("alice") as tx:
            await tx.append_record(Side.BUY, "AAPL", 1, Decimal("1.00"), Decimal("1.00"), "abc")

        with pytest.raises(ConstraintViolationError):
            async with store.account_transaction("alice") as tx:
                await tx.append_record(Side.BUY, "AAPL", 1, Decimal("1.00"), Decimal("1.00"), "abc")

        found = await store.find_transaction("alice", "abc")
        assert found.client_order_id == "abc"

    @pytest.mark.asyncio
    async def test_with_transaction_returns_result(self, store, alice):
        async def read_balance(tx):
            return tx.balance

        assert await store.with_transaction("alice", read_balance) == Decimal("10000.00")

    @pytest.mark.asyncio
    async def test_money_is_rounded_to_cents(self, store, alice):
        async with store.account_transaction("alice") as tx:
            tx.set_balance(Decimal("1234.565"))
            await tx.insert_position("AAPL", 3, Decimal("33.333"))

        assert (await store.get_account("alice")).balance == Decimal("1234.57")
        assert (await store.get_position("alice", "AAPL")).avg_cost == Decimal("33.33")


class TestTransactionLog:

    @pytest.mark.asyncio
    async def test_most_recent_first_with_limit(self, store, alice):
        async with store.account_transaction("alice") as tx:
            for quantity in (1, 2, 3):
                await tx.append_record(Side.BUY, "AAPL", quantity, Decimal("10.00"),
                                       Decimal("10.00") * quantity)

        log = await store.list_transactions("alice")
        assert [t.quantity for t in log] == [3, 2, 1]

        recent = await store.list_transactions("alice", limit=2)
        assert [t.quantity for t in recent] == [3, 2]

    @pytest.mark.asyncio
    async def test_logs_are_per_account(self, store, alice):
        await store.create_account("bob", Decimal("10.00"))
        async with store.account_transaction("bob") as tx:
            await tx.append_record(Side.BUY, "MSFT", 1, Decimal("1.00"), Decimal("1.00"))

        assert await store.list_transactions("alice") == []
        assert len(await store.list_transactions("bob")) == 1


class TestFavorites:

    @pytest.mark.asyncio
    async def test_add_is_idempotent(self, store, alice):
        assert await store.add_favorite("alice", "AAPL") is True
        assert await store.add_favorite("alice", "AAPL") is False
        assert [f.symbol for f in await store.list_favorites("alice")] == ["AAPL"]

    @pytest.mark.asyncio
    async def test_oldest_first(self, store, alice):
        for symbol in ("TSLA", "AAPL", "MSFT"):
            await store.add_favorite("alice", symbol)

        assert [f.symbol for f in await store.list_favorites("alice")] == ["TSLA", "AAPL", "MSFT"]

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self, store, alice):
        await store.add_favorite("alice", "AAPL")

        assert await store.remove_favorite("alice", "AAPL") is True
        assert await store.remove_favorite("alice", "AAPL") is False
        assert await store.list_favorites("alice") == []

    @pytest.mark.asyncio
    async def test_requires_account(self, store):
        with pytest.raises(AccountNotFoundError):
            await store.add_favorite("ghost", "AAPL")


def test_clock_strictly_increases():
    clock = LedgerClock()
    readings = [clock.now() for _ in range(1000)]

    assert all(later > earlier for earlier, later in zip(readings, readings[1:]))
    assert readings[0].tzinfo is not None
