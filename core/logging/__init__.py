# Enhanced structured logging with multi-channel support
from typing import Optional
import structlog

from core.config.settings import Settings
from .channels import LogChannel
from .enhanced_logging import (
    configure_enhanced_logging,
    reset_enhanced_logging,
    get_enhanced_logger,
    get_channel_logger,
    get_logging_statistics,
)


def configure_logging(settings: Settings) -> None:
    """Configure the logging system (idempotent)."""
    configure_enhanced_logging(settings)


def get_logger(name: str, component: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return get_enhanced_logger(name, component)


def get_statistics() -> dict:
    """Get logging system statistics."""
    return get_logging_statistics()


# Channel-specific logger functions
def get_trading_logger_safe(name: str) -> structlog.BoundLogger:
    """Get a trading logger safely."""
    return get_channel_logger(name, LogChannel.TRADING)


def get_market_data_logger_safe(name: str) -> structlog.BoundLogger:
    """Get a market data logger safely."""
    return get_channel_logger(name, LogChannel.MARKET_DATA)


def get_api_logger_safe(name: str) -> structlog.BoundLogger:
    """Get an API logger safely."""
    return get_channel_logger(name, LogChannel.API)


def get_audit_logger_safe(name: str) -> structlog.BoundLogger:
    """Get an audit logger safely."""
    return get_channel_logger(name, LogChannel.AUDIT)


def get_monitoring_logger_safe(name: str) -> structlog.BoundLogger:
    """Get a monitoring logger safely."""
    return get_channel_logger(name, LogChannel.MONITORING)


def get_error_logger_safe(name: str) -> structlog.BoundLogger:
    """Get an error logger safely."""
    return get_channel_logger(name, LogChannel.ERROR)


def get_database_logger_safe(name: str) -> structlog.BoundLogger:
    """Get a database logger safely."""
    return get_channel_logger(name, LogChannel.DATABASE)


__all__ = [
    "LogChannel",
    "configure_logging",
    "reset_enhanced_logging",
    "get_logger",
    "get_statistics",
    "get_trading_logger_safe",
    "get_market_data_logger_safe",
    "get_api_logger_safe",
    "get_audit_logger_safe",
    "get_monitoring_logger_safe",
    "get_error_logger_safe",
    "get_database_logger_safe",
]
