"""
Trade Engine: validates an order and applies it to the ledger atomically.

``execute`` checks, in order and short-circuiting: side, symbol, quantity,
then the current price. Only then does it open the account transaction,
where funds or shares are checked and balance, position and log are
written together. Every failure is returned as a ``TradeFailure``.
"""

import asyncio
import time
from decimal import Decimal
from typing import Any, Optional, Tuple

from core.config.settings import LedgerSettings
from core.logging import (
    get_audit_logger_safe, get_error_logger_safe, get_trading_logger_safe,
)
from core.monitoring.prometheus_metrics import LedgerMetrics
from core.trading.interfaces import PriceSource
from core.trading.models import Side, TransactionRecord
from core.trading.outcomes import FailureKind, TradeFailure, TradeOutcome, TradeReceipt
from core.trading.utils import normalize_symbol, to_money, to_money_or_none
from core.utils.exceptions import (
    AccountNotFoundError, IdempotencyConflictError, InsufficientFundsError,
    InsufficientSharesError, LedgerStorageError,
)
from services.ledger.store import AccountTransaction, LedgerStore


def parse_side(side: Any) -> Optional[Side]:
    if isinstance(side, Side):
        return side
    if isinstance(side, str):
        try:
            return Side(side.strip().upper())
        except ValueError:
            return None
    return None


def parse_quantity(quantity: Any, max_quantity: int) -> Optional[int]:
    """Whole share count in ``1..max_quantity``; floats and bools are rejected"""
    if isinstance(quantity, bool):
        return None
    if isinstance(quantity, int):
        value = quantity
    elif isinstance(quantity, str) and quantity.strip().isascii() and quantity.strip().isdigit():
        value = int(quantity.strip())
    else:
        return None
    if 1 <= value <= max_quantity:
        return value
    return None


def average_cost(old_shares: int, old_avg_cost: Decimal, quantity: int, cost: Decimal) -> Decimal:
    """Weighted average after buying ``quantity`` shares for ``cost``.

    Works from the stored (already rounded) average, so the result is
    ``round2((old_shares * old_avg_cost + cost) / (old_shares + quantity))``.
    """
    return to_money((old_shares * old_avg_cost + cost) / (old_shares + quantity))


class TradeEngine:
    """Executes BUY and SELL orders against the ledger"""

    def __init__(self, store: LedgerStore, price_source: PriceSource,
                 settings: LedgerSettings, metrics: Optional[LedgerMetrics] = None):
        self.store = store
        self.price_source = price_source
        self.settings = settings
        self.metrics = metrics
        self.logger = get_trading_logger_safe("trade_engine")
        self.audit_logger = get_audit_logger_safe("trade_engine")
        self.error_logger = get_error_logger_safe("trade_engine")

    async def execute(self, user_id: str, side: Any, symbol: Any, quantity: Any,
                      client_order_id: Optional[str] = None) -> TradeOutcome:
        """Run one order through validation and the atomic ledger update.

        Never raises for validation, pricing, business-rule or storage
        problems; those come back as ``TradeFailure``.
        """
        started = time.perf_counter()

        parsed_side = parse_side(side)
        if parsed_side is None:
            return self._fail(FailureKind.INVALID_SIDE, "Side must be BUY or SELL",
                              user_id=user_id, side=side)

        sym = normalize_symbol(symbol)
        if not sym or not self.price_source.is_listed(sym):
            return self._fail(FailureKind.UNKNOWN_SYMBOL, "Invalid stock symbol",
                              user_id=user_id, symbol=symbol)

        qty = parse_quantity(quantity, self.settings.max_order_quantity)
        if qty is None:
            return self._fail(
                FailureKind.INVALID_QUANTITY,
                f"Quantity must be between 1 and {self.settings.max_order_quantity:,}",
                user_id=user_id, quantity=quantity,
            )

        client_order_id = (client_order_id or "").strip() or None
        if client_order_id is not None:
            # Replays are answered even when the market is not priced right now
            outcome = await self._check_replay(user_id, client_order_id, parsed_side, sym, qty)
            if outcome is not None:
                return outcome

        price = await self._current_price(sym)
        if price is None:
            return self._fail(FailureKind.PRICE_UNAVAILABLE,
                              "Price unavailable, market may be loading",
                              user_id=user_id, symbol=sym)

        async def apply(tx: AccountTransaction) -> Tuple[TransactionRecord, Decimal, bool]:
            if client_order_id is not None:
                existing = await tx.find_by_client_order_id(client_order_id)
                if existing is not None:
                    self._ensure_same_order(existing, client_order_id, parsed_side, sym, qty)
                    return existing, tx.balance, True
            if parsed_side is Side.BUY:
                record = await self._buy(tx, sym, qty, price, client_order_id)
            else:
                record = await self._sell(tx, sym, qty, price, client_order_id)
            return record, tx.balance, False

        try:
            record, balance, replayed = await self.store.with_transaction(user_id, apply)
        except AccountNotFoundError as e:
            return self._fail(FailureKind.ACCOUNT_NOT_FOUND, e.message, user_id=user_id)
        except IdempotencyConflictError as e:
            return self._fail(FailureKind.IDEMPOTENCY_CONFLICT, e.message,
                              user_id=user_id, client_order_id=e.client_order_id)
        except InsufficientFundsError as e:
            return self._fail(FailureKind.INSUFFICIENT_FUNDS, e.message, user_id=user_id,
                              symbol=sym, quantity=qty,
                              required=str(e.required_amount), available=str(e.available_amount))
        except InsufficientSharesError as e:
            return self._fail(FailureKind.INSUFFICIENT_SHARES, e.message, user_id=user_id,
                              symbol=sym, owned=e.owned_shares, requested=e.requested_shares)
        except LedgerStorageError as e:
            self.error_logger.error("Trade aborted by storage failure",
                                    user_id=user_id, side=parsed_side.value, symbol=sym,
                                    quantity=qty, operation=e.operation, exc_info=True)
            return self._fail(FailureKind.STORAGE_FAILURE, "Transaction failed",
                              user_id=user_id, operation=e.operation)

        if replayed:
            return self._replay_receipt(record, balance)

        if self.metrics:
            self.metrics.record_trade(parsed_side.value, time.perf_counter() - started)
        self.audit_logger.info("Trade executed",
                               transaction_id=record.id,
                               user_id=user_id,
                               side=record.side.value,
                               symbol=record.symbol,
                               quantity=record.quantity,
                               price=str(record.price),
                               total=str(record.total),
                               balance=str(balance),
                               client_order_id=client_order_id)
        return self._receipt(record, balance)

    async def _buy(self, tx: AccountTransaction, symbol: str, quantity: int,
                   price: Decimal, client_order_id: Optional[str]) -> TransactionRecord:
        cost = to_money(price * quantity)
        balance = tx.balance
        if balance < cost:
            raise InsufficientFundsError(cost, balance, tx.user_id)

        tx.set_balance(balance - cost)
        position = await tx.get_position(symbol)
        if position is None:
            await tx.insert_position(symbol, quantity, average_cost(0, Decimal("0"), quantity, cost))
        else:
            await tx.update_position(
                symbol,
                position.shares + quantity,
                average_cost(position.shares, position.avg_cost, quantity, cost),
            )
        return await tx.append_record(Side.BUY, symbol, quantity, price, cost, client_order_id)

    async def _sell(self, tx: AccountTransaction, symbol: str, quantity: int,
                    price: Decimal, client_order_id: Optional[str]) -> TransactionRecord:
        proceeds = to_money(price * quantity)
        position = await tx.get_position(symbol)
        owned = position.shares if position is not None else 0
        if owned < quantity:
            raise InsufficientSharesError(owned, quantity, symbol, tx.user_id)

        tx.set_balance(tx.balance + proceeds)
        remaining = owned - quantity
        if remaining == 0:
            await tx.delete_position(symbol)
        else:
            # Average cost is untouched by a sale
            await tx.update_position(symbol, remaining, position.avg_cost)
        return await tx.append_record(Side.SELL, symbol, quantity, price, proceeds, client_order_id)

    async def _current_price(self, symbol: str) -> Optional[Decimal]:
        try:
            quote = await asyncio.wait_for(self.price_source.get_quote(symbol),
                                           timeout=self.settings.quote_timeout_seconds)
        except asyncio.TimeoutError:
            self.logger.warning("Quote lookup timed out", symbol=symbol,
                                timeout_seconds=self.settings.quote_timeout_seconds)
            return None
        except Exception as e:
            self.logger.warning("Quote lookup failed", symbol=symbol, error=str(e))
            return None

        if quote is None:
            return None
        price = to_money_or_none(quote.price)
        if price is None or price <= 0:
            return None
        return price

    async def _check_replay(self, user_id: str, client_order_id: str, side: Side,
                            symbol: str, quantity: int) -> Optional[TradeOutcome]:
        try:
            existing = await self.store.find_transaction(user_id, client_order_id)
        except LedgerStorageError as e:
            self.error_logger.error("Client order id lookup failed", user_id=user_id,
                                    client_order_id=client_order_id, exc_info=True)
            return self._fail(FailureKind.STORAGE_FAILURE, "Transaction failed",
                              user_id=user_id, operation=e.operation)
        if existing is None:
            return None
        try:
            self._ensure_same_order(existing, client_order_id, side, symbol, quantity)
        except IdempotencyConflictError as e:
            return self._fail(FailureKind.IDEMPOTENCY_CONFLICT, e.message,
                              user_id=user_id, client_order_id=client_order_id)

        try:
            account = await self.store.get_account(user_id)
        except LedgerStorageError as e:
            return self._fail(FailureKind.STORAGE_FAILURE, "Transaction failed",
                              user_id=user_id, operation=e.operation)
        if account is None:
            return self._fail(FailureKind.ACCOUNT_NOT_FOUND, f"No account for user {user_id}",
                              user_id=user_id)
        return self._replay_receipt(existing, account.balance)

    @staticmethod
    def _ensure_same_order(existing: TransactionRecord, client_order_id: str, side: Side,
                           symbol: str, quantity: int) -> None:
        if (existing.side, existing.symbol, existing.quantity) != (side, symbol, quantity):
            raise IdempotencyConflictError(
                client_order_id,
                details={"side": existing.side.value, "symbol": existing.symbol,
                         "quantity": existing.quantity},
            )

    def _replay_receipt(self, record: TransactionRecord, balance: Decimal) -> TradeReceipt:
        if self.metrics:
            self.metrics.record_replay()
        self.logger.info("Trade request replayed", user_id=record.user_id,
                         transaction_id=record.id, client_order_id=record.client_order_id)
        return self._receipt(record, balance, replayed=True)

    @staticmethod
    def _receipt(record: TransactionRecord, balance: Decimal, replayed: bool = False) -> TradeReceipt:
        return TradeReceipt(
            transaction_id=record.id,
            user_id=record.user_id,
            side=record.side,
            symbol=record.symbol,
            quantity=record.quantity,
            price=record.price,
            total=record.total,
            balance=balance,
            executed_at=record.timestamp,
            client_order_id=record.client_order_id,
            replayed=replayed,
        )

    def _fail(self, kind: FailureKind, message: str, **details) -> TradeFailure:
        if self.metrics:
            self.metrics.record_failure(kind.value)
        self.logger.info("Trade rejected", kind=kind.value, category=kind.category.value,
                         reason=message, **details)
        details.pop("user_id", None)
        return TradeFailure(kind=kind, message=message,
                            details={k: v for k, v in details.items() if v is not None})
