"""
Durable ledger state: balances, positions, the append-only transaction log
and favorites.

All writes to one account go through ``account_transaction``, which gives
the caller exclusive, all-or-nothing access to that account:

* an in-process ``asyncio.Lock`` per user id queues concurrent writers on
  the same account while leaving other accounts untouched;
* the database transaction is opened with ``BEGIN IMMEDIATE`` on SQLite
  (see ``DatabaseManager``) or locks the account row with
  ``SELECT ... FOR UPDATE`` elsewhere, so writers in other processes are
  serialized as well.

Raising anything inside the block rolls back every change made through the
handle. Storage faults leave the store as ``LedgerStorageError``.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import FlushError

from core.database.connection import DatabaseManager
from core.database.models import Account, Favorite, LedgerTransaction, Position
from core.logging import get_database_logger_safe, get_error_logger_safe
from core.trading.models import (
    AccountRecord, FavoriteRecord, PositionRecord, Side, TransactionRecord,
)
from core.trading.utils import ZERO, to_money
from core.utils.exceptions import (
    AccountExistsError, AccountNotFoundError, ConstraintViolationError,
    LedgerStorageError,
)

T = TypeVar("T")

logger = get_database_logger_safe("ledger_store")
error_logger = get_error_logger_safe("ledger_store")


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _account_record(row: Account) -> AccountRecord:
    return AccountRecord(user_id=row.user_id, balance=to_money(row.balance),
                         created_at=_as_utc(row.created_at))


def _position_record(row: Position) -> PositionRecord:
    return PositionRecord(user_id=row.user_id, symbol=row.symbol, shares=row.shares,
                          avg_cost=to_money(row.avg_cost))


def _transaction_record(row: LedgerTransaction) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        user_id=row.user_id,
        side=Side(row.side),
        symbol=row.symbol,
        quantity=row.quantity,
        price=to_money(row.price),
        total=to_money(row.total),
        timestamp=_as_utc(row.timestamp),
        client_order_id=row.client_order_id,
    )


def _favorite_record(row: Favorite) -> FavoriteRecord:
    return FavoriteRecord(user_id=row.user_id, symbol=row.symbol, added_at=_as_utc(row.added_at))


class LedgerClock:
    """UTC clock whose readings strictly increase within the process"""

    def __init__(self):
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = datetime.now(timezone.utc)
        if self._last is not None and current <= self._last:
            current = self._last + timedelta(microseconds=1)
        self._last = current
        return current


class AccountTransaction:
    """Read-modify-write handle over one account inside an open transaction.

    Only valid inside ``LedgerStore.account_transaction``. Changes become
    visible to other readers when the block exits without an exception.
    """

    def __init__(self, session: AsyncSession, account: Account, clock: LedgerClock):
        self.session = session
        self._account = account
        self._clock = clock

    @property
    def user_id(self) -> str:
        return self._account.user_id

    @property
    def balance(self) -> Decimal:
        return to_money(self._account.balance)

    @property
    def account(self) -> AccountRecord:
        return _account_record(self._account)

    def set_balance(self, balance: Decimal) -> None:
        balance = to_money(balance)
        if balance < ZERO:
            raise ConstraintViolationError(
                f"Balance for {self.user_id} cannot go negative ({balance})",
                operation="set_balance",
            )
        self._account.balance = balance

    async def get_position(self, symbol: str) -> Optional[PositionRecord]:
        row = await self.session.get(Position, (self.user_id, symbol))
        return _position_record(row) if row is not None else None

    async def insert_position(self, symbol: str, shares: int, avg_cost: Decimal) -> PositionRecord:
        self._check_shares(shares, "insert_position")
        row = Position(user_id=self.user_id, symbol=symbol, shares=shares, avg_cost=to_money(avg_cost))
        try:
            self.session.add(row)
            await self.session.flush()
        except (IntegrityError, FlushError) as e:
            raise ConstraintViolationError(
                f"Position {self.user_id}/{symbol} already exists",
                operation="insert_position",
                details={"user_id": self.user_id, "symbol": symbol},
            ) from e
        return _position_record(row)

    async def update_position(self, symbol: str, shares: int, avg_cost: Decimal) -> PositionRecord:
        self._check_shares(shares, "update_position")
        row = await self._require_position(symbol, "update_position")
        row.shares = shares
        row.avg_cost = to_money(avg_cost)
        return _position_record(row)

    async def delete_position(self, symbol: str) -> None:
        row = await self._require_position(symbol, "delete_position")
        await self.session.delete(row)

    async def append_record(self, side: Side, symbol: str, quantity: int, price: Decimal,
                            total: Decimal, client_order_id: Optional[str] = None) -> TransactionRecord:
        row = LedgerTransaction(
            user_id=self.user_id,
            side=side.value,
            symbol=symbol,
            quantity=quantity,
            price=to_money(price),
            total=to_money(total),
            timestamp=self._clock.now(),
            client_order_id=client_order_id,
        )
        try:
            self.session.add(row)
            await self.session.flush()
        except IntegrityError as e:
            raise ConstraintViolationError(
                f"Transaction log rejected record for {self.user_id}",
                operation="append_record",
                details={"user_id": self.user_id, "client_order_id": client_order_id},
            ) from e
        return _transaction_record(row)

    async def find_by_client_order_id(self, client_order_id: str) -> Optional[TransactionRecord]:
        stmt = select(LedgerTransaction).where(
            LedgerTransaction.user_id == self.user_id,
            LedgerTransaction.client_order_id == client_order_id,
        )
        row = (await self.session.execute(stmt)).scalar_one_or_none()
        return _transaction_record(row) if row is not None else None

    async def _require_position(self, symbol: str, operation: str) -> Position:
        row = await self.session.get(Position, (self.user_id, symbol))
        if row is None:
            raise ConstraintViolationError(
                f"No position {self.user_id}/{symbol}",
                operation=operation,
                details={"user_id": self.user_id, "symbol": symbol},
            )
        return row

    @staticmethod
    def _check_shares(shares: int, operation: str) -> None:
        # Zero-share positions are deleted, never stored
        if shares <= 0:
            raise ConstraintViolationError(f"Position shares must be positive, got {shares}",
                                           operation=operation)


class LedgerStore:
    """Ledger Store backed by SQLAlchemy."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager
        self.clock = LedgerClock()

        # Concurrency control; locks are never evicted so a waiter can't end up on a stale one
        self._account_locks: Dict[str, asyncio.Lock] = {}
        self._account_locks_lock = asyncio.Lock()

    # ------------------------------------------------------------------ reads

    async def get_account(self, user_id: str) -> Optional[AccountRecord]:
        async with self._guard("get_account", user_id=user_id):
            async with self.db_manager.get_session() as session:
                row = await session.get(Account, user_id)
                return _account_record(row) if row is not None else None

    async def get_position(self, user_id: str, symbol: str) -> Optional[PositionRecord]:
        async with self._guard("get_position", user_id=user_id, symbol=symbol):
            async with self.db_manager.get_session() as session:
                row = await session.get(Position, (user_id, symbol))
                return _position_record(row) if row is not None else None

    async def list_positions(self, user_id: str) -> List[PositionRecord]:
        async with self._guard("list_positions", user_id=user_id):
            async with self.db_manager.get_session() as session:
                stmt = select(Position).where(Position.user_id == user_id).order_by(Position.symbol)
                rows = (await session.execute(stmt)).scalars().all()
                return [_position_record(row) for row in rows]

    async def list_transactions(self, user_id: str, limit: Optional[int] = None) -> List[TransactionRecord]:
        """Most recent first; ``limit`` of None returns the whole log"""
        async with self._guard("list_transactions", user_id=user_id):
            async with self.db_manager.get_session() as session:
                stmt = (select(LedgerTransaction)
                        .where(LedgerTransaction.user_id == user_id)
                        .order_by(LedgerTransaction.id.desc()))
                if limit is not None:
                    stmt = stmt.limit(max(limit, 0))
                rows = (await session.execute(stmt)).scalars().all()
                return [_transaction_record(row) for row in rows]

    async def find_transaction(self, user_id: str, client_order_id: str) -> Optional[TransactionRecord]:
        async with self._guard("find_transaction", user_id=user_id):
            async with self.db_manager.get_session() as session:
                stmt = select(LedgerTransaction).where(
                    LedgerTransaction.user_id == user_id,
                    LedgerTransaction.client_order_id == client_order_id,
                )
                row = (await session.execute(stmt)).scalar_one_or_none()
                return _transaction_record(row) if row is not None else None

    async def list_favorites(self, user_id: str) -> List[FavoriteRecord]:
        """Oldest first"""
        async with self._guard("list_favorites", user_id=user_id):
            async with self.db_manager.get_session() as session:
                stmt = (select(Favorite)
                        .where(Favorite.user_id == user_id)
                        .order_by(Favorite.added_at.asc(), Favorite.symbol.asc()))
                rows = (await session.execute(stmt)).scalars().all()
                return [_favorite_record(row) for row in rows]

    # -------------------------------------------------------------- lifecycle

    async def create_account(self, user_id: str, starting_balance: Decimal) -> AccountRecord:
        balance = to_money(starting_balance)
        if balance < ZERO:
            raise ValueError("Starting balance cannot be negative")

        lock = await self._lock_for(user_id)
        async with lock:
            async with self._guard("create_account", user_id=user_id):
                async with self.db_manager.get_session(write=True) as session:
                    try:
                        async with session.begin():
                            if await session.get(Account, user_id) is not None:
                                raise AccountExistsError(user_id)
                            row = Account(user_id=user_id, balance=balance, created_at=self.clock.now())
                            session.add(row)
                    except IntegrityError as e:
                        # Lost a race with another process
                        raise AccountExistsError(user_id) from e

        logger.info("Account opened", user_id=user_id, balance=str(balance))
        return _account_record(row)

    async def delete_account(self, user_id: str) -> bool:
        """Remove an account with its positions, transactions and favorites.

        Returns False when there was no such account.
        """
        lock = await self._lock_for(user_id)
        async with lock:
            async with self._guard("delete_account", user_id=user_id):
                async with self.db_manager.get_session(write=True) as session:
                    async with session.begin():
                        if await session.get(Account, user_id) is None:
                            return False
                        for model in (Favorite, Position, LedgerTransaction):
                            await session.execute(delete(model).where(model.user_id == user_id))
                        await session.execute(delete(Account).where(Account.user_id == user_id))

        logger.info("Account closed", user_id=user_id)
        return True

    # ---------------------------------------------------------------- writes

    @asynccontextmanager
    async def account_transaction(self, user_id: str) -> AsyncIterator[AccountTransaction]:
        """Exclusive atomic access to one account.

        Raises:
            AccountNotFoundError: no account is open for ``user_id``
            LedgerStorageError: the database failed; nothing was committed
        """
        lock = await self._lock_for(user_id)
        async with lock:
            async with self._guard("account_transaction", user_id=user_id):
                async with self.db_manager.get_session(write=True) as session:
                    async with session.begin():
                        stmt = (select(Account)
                                .where(Account.user_id == user_id)
                                .with_for_update())
                        account = (await session.execute(stmt)).scalar_one_or_none()
                        if account is None:
                            raise AccountNotFoundError(user_id)
                        yield AccountTransaction(session, account, self.clock)
                        await session.flush()

    async def with_transaction(self, user_id: str, fn: Callable[[AccountTransaction], Awaitable[T]]) -> T:
        """Run ``fn`` inside ``account_transaction`` and return its result"""
        async with self.account_transaction(user_id) as tx:
            return await fn(tx)

    async def add_favorite(self, user_id: str, symbol: str) -> bool:
        """Insert-or-ignore. Returns True when the symbol was newly added."""
        async with self.account_transaction(user_id) as tx:
            if await tx.session.get(Favorite, (user_id, symbol)) is not None:
                return False
            tx.session.add(Favorite(user_id=user_id, symbol=symbol, added_at=self.clock.now()))
            return True

    async def remove_favorite(self, user_id: str, symbol: str) -> bool:
        async with self.account_transaction(user_id) as tx:
            result = await tx.session.execute(
                delete(Favorite).where(Favorite.user_id == user_id, Favorite.symbol == symbol)
            )
            return result.rowcount > 0

    # -------------------------------------------------------------- internals

    async def _lock_for(self, user_id: str) -> asyncio.Lock:
        async with self._account_locks_lock:
            lock = self._account_locks.get(user_id)
            if lock is None:
                lock = self._account_locks[user_id] = asyncio.Lock()
            return lock

    @asynccontextmanager
    async def _guard(self, operation: str, **context) -> AsyncIterator[None]:
        """Translate driver errors into ledger storage faults"""
        try:
            yield
        except IntegrityError as e:
            error_logger.error("Ledger constraint violation", operation=operation,
                               error=str(e), exc_info=True, **context)
            raise ConstraintViolationError(f"Constraint violation during {operation}",
                                           operation=operation, details=context) from e
        except SQLAlchemyError as e:
            error_logger.error("Ledger storage failure", operation=operation,
                               error=str(e), exc_info=True, **context)
            raise LedgerStorageError(f"Storage failure during {operation}",
                                     operation=operation, details=context) from e
