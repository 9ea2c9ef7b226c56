from decimal import Decimal

import pytest
from pydantic import ValidationError

from core.config.settings import (
    DEFAULT_SYMBOLS, APISettings, Environment, LedgerSettings, MarketFeedSettings, Settings,
)


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.environment == Environment.DEVELOPMENT
    assert settings.ledger.starting_balance == Decimal("10000.00")
    assert settings.ledger.max_order_quantity == 10_000
    assert settings.market_feed.enabled is False
    assert settings.market_feed.symbols == DEFAULT_SYMBOLS
    assert settings.api.user_header == "X-User-Id"


def test_nested_environment_override(monkeypatch):
    monkeypatch.setenv("LEDGER__MAX_ORDER_QUANTITY", "500")
    monkeypatch.setenv("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("ENVIRONMENT", "testing")

    settings = Settings(_env_file=None)

    assert settings.ledger.max_order_quantity == 500
    assert settings.database.url == "sqlite+aiosqlite:///:memory:"
    assert settings.environment == Environment.TESTING


def test_symbols_from_comma_separated_string():
    settings = MarketFeedSettings(symbols="aapl, msft,,tsla ")

    assert settings.symbols == ["AAPL", "MSFT", "TSLA"]


def test_empty_symbol_list_rejected():
    with pytest.raises(ValidationError):
        MarketFeedSettings(symbols=" , ")


def test_negative_starting_balance_rejected():
    with pytest.raises(ValidationError):
        LedgerSettings(starting_balance=Decimal("-1"))


@pytest.mark.parametrize("field", ["max_order_quantity", "history_limit"])
def test_limits_must_be_positive(field):
    with pytest.raises(ValidationError):
        LedgerSettings(**{field: 0})


def test_cors_wildcard_cannot_be_mixed():
    with pytest.raises(ValidationError):
        APISettings(cors_origins=["*", "http://localhost:3000"])
