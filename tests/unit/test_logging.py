import json
import logging

import pytest

from core.config.settings import LoggingSettings, Settings
from core.logging import (
    configure_logging, get_audit_logger_safe, get_logger, get_statistics,
    get_trading_logger_safe, reset_enhanced_logging,
)


@pytest.fixture
def file_logging(tmp_path):
    """Multi-channel file logging into tmp_path; root handlers restored afterwards."""
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    reset_enhanced_logging()

    settings = Settings(
        _env_file=None,
        logging=LoggingSettings(console_enabled=False, file_enabled=True, logs_dir=str(tmp_path)),
    )
    configure_logging(settings)
    yield tmp_path

    for handler in list(root.handlers):
        if handler not in original_handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(original_level)
    reset_enhanced_logging()


def _flush():
    for handler in logging.getLogger().handlers:
        handler.flush()


def _events(path):
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


def test_statistics_before_configuration():
    reset_enhanced_logging()

    assert "error" in get_statistics()


def test_channel_files_are_created(file_logging):
    stats = get_statistics()

    assert stats["file_logging_enabled"] is True
    assert stats["channel_handlers"]["trading"]["attached"] is True
    for name in ("application.log", "trading.log", "audit.log", "error.log", "marketplace_ledger.log"):
        assert (file_logging / name).exists()


def test_configuration_is_idempotent(file_logging):
    before = len(logging.getLogger().handlers)

    configure_logging(Settings(_env_file=None))

    assert len(logging.getLogger().handlers) == before


def test_records_are_routed_by_channel(file_logging):
    get_trading_logger_safe("routing_test").info("Trade rejected", kind="UNKNOWN_SYMBOL")
    get_audit_logger_safe("routing_test").info("Trade executed", symbol="AAPL")
    _flush()

    trading = _events(file_logging / "trading.log")
    audit = _events(file_logging / "audit.log")

    assert [e["event"] for e in trading] == ["Trade rejected"]
    assert [e["event"] for e in audit] == ["Trade executed"]
    assert trading[0]["service"] == "Marketplace Ledger"


def test_sensitive_keys_are_redacted(file_logging):
    get_logger("redaction_test", component="api").info("Login", password="hunter2",
                                                          headers={"authorization": "Bearer x"})
    _flush()

    [event] = _events(file_logging / "api.log")

    assert event["password"] == "[REDACTED]"
    assert event["headers"]["authorization"] == "[REDACTED]"
    assert event["channel"] == "api"
