from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from core.trading.models import Side
from core.trading.outcomes import FailureCategory, FailureKind, TradeFailure, TradeReceipt


@pytest.mark.parametrize("kind,category,retryable", [
    (FailureKind.INVALID_SIDE, FailureCategory.VALIDATION, False),
    (FailureKind.UNKNOWN_SYMBOL, FailureCategory.VALIDATION, False),
    (FailureKind.INVALID_QUANTITY, FailureCategory.VALIDATION, False),
    (FailureKind.ACCOUNT_NOT_FOUND, FailureCategory.VALIDATION, False),
    (FailureKind.IDEMPOTENCY_CONFLICT, FailureCategory.VALIDATION, False),
    (FailureKind.PRICE_UNAVAILABLE, FailureCategory.TRANSIENT_UNAVAILABLE, True),
    (FailureKind.INSUFFICIENT_FUNDS, FailureCategory.BUSINESS_RULE_VIOLATION, False),
    (FailureKind.INSUFFICIENT_SHARES, FailureCategory.BUSINESS_RULE_VIOLATION, False),
    (FailureKind.STORAGE_FAILURE, FailureCategory.STORAGE_FAILURE, True),
])
def test_failure_classification(kind, category, retryable):
    failure = TradeFailure(kind=kind, message="x")

    assert failure.ok is False
    assert failure.category == category
    assert failure.retryable is retryable


def test_every_kind_has_a_category():
    for kind in FailureKind:
        assert isinstance(kind.category, FailureCategory)


def test_outcomes_are_immutable():
    receipt = TradeReceipt(
        transaction_id=1, user_id="alice", side=Side.BUY, symbol="AAPL", quantity=1,
        price=Decimal("1.00"), total=Decimal("1.00"), balance=Decimal("9.00"),
        executed_at=datetime.now(timezone.utc),
    )

    assert receipt.ok is True
    assert receipt.replayed is False
    with pytest.raises(ValidationError):
        receipt.balance = Decimal("100.00")
