# Database models for the ledger: accounts, positions, transaction log, favorites
from sqlalchemy import (
    CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .connection import Base

# Two-decimal money columns; asdecimal keeps values as Decimal on every backend
Money = Numeric(14, 2, asdecimal=True)


class Account(Base):
    """Cash balance owned by one user"""
    __tablename__ = "accounts"

    user_id = Column(String, primary_key=True)
    balance = Column(Money, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    positions = relationship("Position", back_populates="account",
                             cascade="all, delete-orphan", passive_deletes=True)
    transactions = relationship("LedgerTransaction", back_populates="account",
                                cascade="all, delete-orphan", passive_deletes=True)
    favorites = relationship("Favorite", back_populates="account",
                             cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
    )


class Position(Base):
    """Current holding in one symbol; rows with zero shares are deleted, never stored"""
    __tablename__ = "positions"

    user_id = Column(String, ForeignKey("accounts.user_id", ondelete="CASCADE"), primary_key=True)
    symbol = Column(String, primary_key=True)
    shares = Column(Integer, nullable=False)
    avg_cost = Column(Money, nullable=False)

    account = relationship("Account", back_populates="positions")

    __table_args__ = (
        CheckConstraint("shares > 0", name="ck_positions_shares_positive"),
        CheckConstraint("avg_cost >= 0", name="ck_positions_avg_cost_non_negative"),
    )


class LedgerTransaction(Base):
    """Append-only trade log; rows are never updated or deleted except by account cascade"""
    __tablename__ = "ledger_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("accounts.user_id", ondelete="CASCADE"), nullable=False)
    side = Column(String(4), nullable=False)
    symbol = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Money, nullable=False)
    total = Column(Money, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    client_order_id = Column(String, nullable=True)

    account = relationship("Account", back_populates="transactions")

    __table_args__ = (
        CheckConstraint("side IN ('BUY', 'SELL')", name="ck_ledger_transactions_side"),
        CheckConstraint("quantity > 0", name="ck_ledger_transactions_quantity_positive"),
        CheckConstraint("price > 0", name="ck_ledger_transactions_price_positive"),
        UniqueConstraint("user_id", "client_order_id", name="uq_ledger_transactions_client_order"),
        Index("idx_ledger_transactions_user_id", "user_id", "id"),
    )


class Favorite(Base):
    """Watchlist entry"""
    __tablename__ = "favorites"

    user_id = Column(String, ForeignKey("accounts.user_id", ondelete="CASCADE"), primary_key=True)
    symbol = Column(String, primary_key=True)
    added_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    account = relationship("Account", back_populates="favorites")
