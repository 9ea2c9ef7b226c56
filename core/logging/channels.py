"""
Log channels for the marketplace ledger.

Each channel gets its own rotating file when multi-channel logging is on;
loggers pick a channel explicitly or through their component name.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict


class LogChannel(str, Enum):
    APPLICATION = "application"  # Startup, shutdown, CLI
    TRADING = "trading"          # Trade rejections, account view, watchlist
    MARKET_DATA = "market_data"  # Quote book and feed
    DATABASE = "database"        # Ledger store and engine lifecycle
    API = "api"                  # HTTP requests and handlers
    AUDIT = "audit"              # Executed trades, account lifecycle
    ERROR = "error"              # ERROR and above from every channel
    MONITORING = "monitoring"    # Metrics exposition


@dataclass
class ChannelConfig:
    filename: str
    level: str = "INFO"
    max_bytes: str = "50MB"
    backup_count: int = 5

    def get_file_path(self, logs_dir: str) -> Path:
        return Path(logs_dir) / self.filename


CHANNEL_CONFIGS: Dict[LogChannel, ChannelConfig] = {
    LogChannel.APPLICATION: ChannelConfig("application.log", max_bytes="100MB", backup_count=10),
    LogChannel.TRADING: ChannelConfig("trading.log", backup_count=20),
    LogChannel.MARKET_DATA: ChannelConfig("market_data.log"),
    # Only warnings and errors; per-query noise stays out
    LogChannel.DATABASE: ChannelConfig("database.log", level="WARNING"),
    LogChannel.API: ChannelConfig("api.log", backup_count=10),
    # Every executed trade lands here; keep the longest history
    LogChannel.AUDIT: ChannelConfig("audit.log", max_bytes="100MB", backup_count=50),
    LogChannel.ERROR: ChannelConfig("error.log", level="ERROR", backup_count=20),
    LogChannel.MONITORING: ChannelConfig("monitoring.log", backup_count=10),
}

_COMPONENT_CHANNELS: Dict[str, LogChannel] = {
    "trade_engine": LogChannel.TRADING,
    "account_view": LogChannel.TRADING,
    "watchlist": LogChannel.TRADING,
    "market_feed": LogChannel.MARKET_DATA,
    "quote_book": LogChannel.MARKET_DATA,
    "ledger_store": LogChannel.DATABASE,
    "database": LogChannel.DATABASE,
    "api": LogChannel.API,
    "metrics": LogChannel.MONITORING,
    "audit": LogChannel.AUDIT,
}


def get_channel_for_component(component: str) -> LogChannel:
    """Channel for a component name; unknown components log to APPLICATION."""
    return _COMPONENT_CHANNELS.get(component, LogChannel.APPLICATION)


def get_channel_config(channel: LogChannel) -> ChannelConfig:
    return CHANNEL_CONFIGS[channel]


def create_log_directory_structure(logs_dir: str) -> None:
    Path(logs_dir).mkdir(parents=True, exist_ok=True)
