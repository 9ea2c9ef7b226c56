# Enhanced structured logging with multi-channel support
import sys
import logging
import logging.handlers
from pathlib import Path
from typing import Dict, Optional, Any
import structlog

from core.config.settings import Settings
from .channels import (
    LogChannel,
    get_channel_for_component,
    get_channel_config,
    create_log_directory_structure,
)

# Global logger manager instance
_logger_manager: Optional['EnhancedLoggerManager'] = None

# Unstructured third-party loggers routed into a channel file by logger name
_THIRD_PARTY_PREFIXES: Dict[LogChannel, list[str]] = {
    LogChannel.API: ["uvicorn", "fastapi", "starlette"],
    LogChannel.DATABASE: ["sqlalchemy", "aiosqlite", "asyncpg"],
    LogChannel.MARKET_DATA: ["yfinance"],
}


class ChannelFilter(logging.Filter):
    """Filter that routes records to a handler only if they match a channel.

    If the record has a structured `channel` attribute, it must match `expected_channel`.
    If not present, allow selected third-party logger name prefixes (e.g., uvicorn/fastapi) when provided.
    """

    def __init__(self, expected_channel: str, allowed_logger_prefixes: Optional[list[str]] = None):
        super().__init__()
        self.expected_channel = expected_channel
        self.allowed_logger_prefixes = allowed_logger_prefixes or []

    def filter(self, record: logging.LogRecord) -> bool:
        event = record.msg if isinstance(record.msg, dict) else {}
        channel = event.get("channel") or getattr(record, "channel", None)
        if channel is not None:
            return channel == self.expected_channel
        return any(record.name.startswith(p) for p in self.allowed_logger_prefixes)


def _foreign_pre_chain() -> list:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


class EnhancedLoggerManager:
    """Enhanced logging manager with multi-channel support and configurable formats."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.channel_handlers: Dict[LogChannel, logging.Handler] = {}
        self.configured_loggers: Dict[str, structlog.BoundLogger] = {}

        self._setup_logging()

    def _setup_logging(self) -> None:
        if self.settings.logging.file_enabled:
            create_log_directory_structure(self.settings.logs_dir)

        self._setup_console_logging()

        if self.settings.logging.file_enabled:
            self._setup_file_logging()
            if self.settings.logging.multi_channel_enabled:
                self._setup_multi_channel_logging()

        self._configure_structlog()

    def _level(self, name: Optional[str] = None) -> int:
        return getattr(logging, (name or self.settings.logging.level).upper())

    def _setup_console_logging(self) -> None:
        """Setup console logging with configurable format."""
        root_logger = logging.getLogger()
        root_logger.setLevel(self._level())
        if not self.settings.logging.console_enabled:
            return

        # Reuse a console handler someone else (e.g. uvicorn) already installed
        console_handler = next(
            (h for h in root_logger.handlers
             if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) == sys.stdout),
            None,
        )
        if console_handler is None:
            console_handler = logging.StreamHandler(sys.stdout)
            root_logger.addHandler(console_handler)

        console_handler.setLevel(self._level())
        console_processor = (
            structlog.processors.JSONRenderer()
            if self.settings.logging.console_json_format
            else structlog.dev.ConsoleRenderer()
        )
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=console_processor,
                foreign_pre_chain=_foreign_pre_chain(),
            )
        )

    def _file_formatter(self) -> logging.Formatter:
        file_processor = (
            structlog.processors.JSONRenderer()
            if self.settings.logging.json_format
            else structlog.processors.KeyValueRenderer(key_order=["event", "level", "timestamp"])
        )
        return structlog.stdlib.ProcessorFormatter(
            processor=file_processor,
            foreign_pre_chain=_foreign_pre_chain(),
        )

    def _setup_file_logging(self) -> None:
        """Setup the combined application log file."""
        log_file = Path(self.settings.logs_dir) / "marketplace_ledger.log"
        root_logger = logging.getLogger()

        for handler in root_logger.handlers:
            if (isinstance(handler, logging.handlers.RotatingFileHandler) and
                    Path(handler.baseFilename) == log_file.resolve()):
                return  # File handler already configured

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=self._parse_size(self.settings.logging.file_max_size),
            backupCount=self.settings.logging.file_backup_count,
            encoding="utf-8"
        )
        file_handler.setLevel(self._level())
        file_handler.setFormatter(self._file_formatter())
        root_logger.addHandler(file_handler)

    def _setup_multi_channel_logging(self) -> None:
        """Setup multi-channel logging with dedicated files."""
        for channel in LogChannel:
            config = get_channel_config(channel)
            handler = logging.handlers.RotatingFileHandler(
                filename=config.get_file_path(self.settings.logs_dir),
                maxBytes=self._parse_size(config.max_bytes),
                backupCount=config.backup_count,
                encoding="utf-8"
            )
            handler.setLevel(self._level(config.level))
            handler.setFormatter(self._file_formatter())
            # Error channel is attached to root and keeps all ERROR+ records
            if channel != LogChannel.ERROR:
                handler.addFilter(ChannelFilter(channel.value, _THIRD_PARTY_PREFIXES.get(channel)))
            self.channel_handlers[channel] = handler

        # Channel handlers hang off root; ChannelFilter keeps each file to its own channel
        root_logger = logging.getLogger()
        for handler in self.channel_handlers.values():
            if handler not in root_logger.handlers:
                root_logger.addHandler(handler)

        for name in _THIRD_PARTY_PREFIXES[LogChannel.DATABASE]:
            lg = logging.getLogger(name)
            if lg.level == logging.NOTSET:
                lg.setLevel(logging.WARNING)

    def _parse_size(self, size_str: str) -> int:
        """Parse size string (e.g., '100MB') to bytes."""
        size_str = size_str.upper()

        if size_str.endswith("B"):
            size_str = size_str[:-1]

        multipliers = {
            "K": 1024,
            "M": 1024 * 1024,
            "G": 1024 * 1024 * 1024,
        }

        for suffix, multiplier in multipliers.items():
            if size_str.endswith(suffix):
                return int(float(size_str[:-1]) * multiplier)

        return int(size_str)

    def _configure_structlog(self) -> None:
        """Configure structlog with appropriate processors."""
        settings = self.settings
        keys_to_redact = {k.lower() for k in settings.logging.redact_keys}

        def add_standard_context(logger, name, event_dict):
            """Bind standard context fields once from settings."""
            event_dict.setdefault('env', settings.environment.value)
            event_dict.setdefault('service', settings.app_name)
            event_dict.setdefault('version', settings.version)
            return event_dict

        def redact_sensitive(logger, name, event_dict):
            """Redact sensitive fields from event dict recursively."""
            def _redact(obj):
                if isinstance(obj, dict):
                    return {
                        k: '[REDACTED]' if isinstance(k, str) and k.lower() in keys_to_redact else _redact(v)
                        for k, v in obj.items()
                    }
                if isinstance(obj, list):
                    return [_redact(v) for v in obj]
                return obj

            return _redact(event_dict)

        def normalize_error(logger, name, event_dict):
            """Map an `error` field onto `error_message` for log search."""
            if "error" in event_dict and not event_dict.get("error_message"):
                event_dict["error_message"] = str(event_dict["error"])
            return event_dict

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                add_standard_context,
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                normalize_error,
                structlog.processors.UnicodeDecoder(),
                redact_sensitive,
                # Defer final rendering to handlers via ProcessorFormatter
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def get_logger(self, name: str, component: Optional[str] = None) -> structlog.BoundLogger:
        """Get a structured logger for a component."""
        if name in self.configured_loggers:
            return self.configured_loggers[name]

        logger = structlog.get_logger(name)
        if component:
            channel = get_channel_for_component(component)
            logger = logger.bind(component=component, channel=channel.value)

        self.configured_loggers[name] = logger
        return logger

    def get_channel_logger(self, name: str, channel: LogChannel) -> structlog.BoundLogger:
        """Get a logger for a specific channel."""
        return self.get_logger(name).bind(channel=channel.value)

    def get_statistics(self) -> Dict[str, Any]:
        """Get logging statistics."""
        return {
            "total_loggers": len(self.configured_loggers),
            "multi_channel_enabled": self.settings.logging.multi_channel_enabled,
            "file_logging_enabled": self.settings.logging.file_enabled,
            "console_logging_enabled": self.settings.logging.console_enabled,
            "logs_directory": self.settings.logs_dir,
            "channel_handlers": {
                ch.value: {
                    "filename": get_channel_config(ch).filename,
                    "attached": ch in self.channel_handlers,
                }
                for ch in LogChannel
            },
        }


def configure_enhanced_logging(settings: Settings) -> None:
    """Configure enhanced logging system."""
    global _logger_manager

    if _logger_manager is not None:
        return

    _logger_manager = EnhancedLoggerManager(settings)


def reset_enhanced_logging() -> None:
    """Forget the configured manager so the next configure call rebuilds handlers."""
    global _logger_manager
    _logger_manager = None


def get_enhanced_logger(name: str, component: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger instance.

    Before `configure_enhanced_logging` runs (module import, tests, CLI helpers)
    this returns a lazy proxy that picks up whatever configuration is active
    when it first logs.
    """
    if _logger_manager is None:
        if component:
            channel = get_channel_for_component(component)
            return structlog.get_logger(name, component=component, channel=channel.value)
        return structlog.get_logger(name)

    return _logger_manager.get_logger(name, component)


def get_channel_logger(name: str, channel: LogChannel) -> structlog.BoundLogger:
    """Get a logger for a specific channel."""
    if _logger_manager is None:
        return structlog.get_logger(name, channel=channel.value)

    return _logger_manager.get_channel_logger(name, channel)


def get_logging_statistics() -> Dict[str, Any]:
    """Get logging system statistics."""
    if _logger_manager is None:
        return {"error": "Logger manager not initialized"}
    return _logger_manager.get_statistics()
