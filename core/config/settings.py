# Complete settings with ALL required sections
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from enum import Enum
from typing import List, Union
from pathlib import Path


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


# Default tradable universe (US large caps)
DEFAULT_SYMBOLS = [
    "AAPL", "TSLA", "MSFT", "GOOGL", "AMZN", "META", "NVDA", "NFLX", "AMD", "INTC",
    "BABA", "DIS", "UBER", "SPOT", "PYPL", "SHOP", "COIN", "SNAP", "PLTR", "RIVN",
]


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./marketplace.db"
    echo: bool = False
    busy_timeout_seconds: float = Field(
        default=5.0,
        description="How long a SQLite writer waits for the database lock"
    )


class LedgerSettings(BaseModel):
    """Trading policy and account defaults"""
    starting_balance: Decimal = Decimal("10000.00")
    max_order_quantity: int = 10_000
    history_limit: int = 50  # Recent transactions shown by the account view
    quote_timeout_seconds: float = 2.0

    @field_validator('starting_balance')
    @classmethod
    def validate_starting_balance(cls, v):
        if v < 0:
            raise ValueError("starting_balance cannot be negative")
        return v

    @field_validator('max_order_quantity', 'history_limit')
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v


class MarketFeedSettings(BaseModel):
    """Quote refresh configuration. The trade engine never schedules refreshes itself."""
    enabled: bool = False
    refresh_interval_seconds: float = 60.0
    symbols: Union[str, List[str]] = Field(default_factory=lambda: list(DEFAULT_SYMBOLS))

    @field_validator('symbols', mode='before')
    @classmethod
    def parse_symbols(cls, v):
        """Parse comma-separated string or return list as-is"""
        if isinstance(v, str):
            v = v.split(",")
        symbols = [s.strip().upper() for s in v if s and s.strip()]
        if not symbols:
            raise ValueError("At least one symbol is required")
        return symbols


class LoggingSettings(BaseModel):
    # Core logging settings
    level: str = "INFO"
    json_format: bool = True

    # Console logging
    console_enabled: bool = True
    console_json_format: bool = False  # Plain text for console by default

    # File logging
    file_enabled: bool = False
    logs_dir: str = "logs"
    file_max_size: str = "50MB"
    file_backup_count: int = 5

    # Multi-channel logging (one file per channel, needs file_enabled)
    multi_channel_enabled: bool = True

    # Redaction
    redact_keys: list[str] = [
        "authorization", "password", "password_hash", "secret", "token", "cookie", "set-cookie"
    ]


class APISettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    # Authentication happens upstream; the gateway forwards the user id in this header
    user_header: str = "X-User-Id"

    # CORS settings
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )
    cors_methods: List[str] = Field(
        default=["GET", "POST", "DELETE", "OPTIONS"],
        description="Allowed CORS methods"
    )
    cors_headers: List[str] = Field(
        default=["Content-Type", "X-Request-ID", "X-User-Id"],
        description="Allowed CORS headers"
    )
    cors_credentials: bool = Field(
        default=True,
        description="Allow credentials in CORS requests"
    )

    @field_validator('cors_origins')
    def validate_cors_origins(cls, v):
        """Validate CORS origins configuration"""
        if "*" in v and len(v) > 1:
            raise ValueError("Cannot mix '*' with specific origins")
        return v


class Settings(BaseSettings):
    """Main application settings, loaded from environment variables"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    app_name: str = "Marketplace Ledger"
    version: str = "1.0.0"
    environment: Environment = Environment.DEVELOPMENT

    database: DatabaseSettings = DatabaseSettings()
    ledger: LedgerSettings = LedgerSettings()
    market_feed: MarketFeedSettings = MarketFeedSettings()
    logging: LoggingSettings = LoggingSettings()
    api: APISettings = APISettings()

    @property
    def logs_dir(self) -> str:
        """Get absolute path to logs directory"""
        return self.logging.logs_dir

    @property
    def base_dir(self) -> str:
        """Get base application directory dynamically"""
        # Go up 2 levels from core/config/settings.py to reach project root
        return str(Path(__file__).resolve().parents[2])


# No global settings instance - use dependency injection instead
