# Structured logging with channel support
import sys
import logging
import logging.handlers
from typing import Optional, Dict

import structlog

from core.config.settings import Settings
from .channels import (
    LogChannel,
    get_channel_for_component,
    get_channel_config,
    create_log_directory_structure,
)
from .correlation import CorrelationIdManager, add_correlation_info

# Global flag to prevent duplicate logging configuration
_logging_configured = False


def _event_channel(record: logging.LogRecord) -> Optional[str]:
    msg = record.msg
    if isinstance(msg, dict):
        return msg.get("channel")
    return getattr(record, "channel", None)


class ChannelFilter(logging.Filter):
    """Route records to a handler only if they belong to `expected_channel`.

    Records without a channel (third-party loggers such as uvicorn) are
    treated as application records.
    """

    def __init__(self, expected_channel: str, min_level: int = logging.NOTSET):
        super().__init__()
        self.expected_channel = expected_channel
        self.min_level = min_level

    def filter(self, record: logging.LogRecord) -> bool:
        channel = _event_channel(record) or LogChannel.APPLICATION.value
        return channel == self.expected_channel and record.levelno >= self.min_level


class ChannelLevelFilter(logging.Filter):
    """Apply per-channel minimum levels on a shared handler."""

    def __init__(self, levels: Dict[str, int]):
        super().__init__()
        self.levels = levels

    def filter(self, record: logging.LogRecord) -> bool:
        channel = _event_channel(record)
        if channel is None:
            return True
        return record.levelno >= self.levels.get(channel, logging.NOTSET)


def _channel_levels(settings: Settings) -> Dict[str, int]:
    cfg = settings.logging
    levels = {channel.value: logging.getLevelName(get_channel_config(channel).level)
              for channel in LogChannel}
    levels.update({
        LogChannel.TRADING.value: logging.getLevelName(cfg.trading_level.upper()),
        LogChannel.MARKET_DATA.value: logging.getLevelName(cfg.market_data_level.upper()),
        LogChannel.DATABASE.value: logging.getLevelName(cfg.database_level.upper()),
        LogChannel.API.value: logging.getLevelName(cfg.api_level.upper()),
    })
    return levels


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        add_correlation_info,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def _formatter(json_format: bool) -> structlog.stdlib.ProcessorFormatter:
    if json_format:
        processors = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=False),
        ]
    return structlog.stdlib.ProcessorFormatter(
        processors=processors,
        foreign_pre_chain=_shared_processors(),
    )


def configure_logging(settings: Settings) -> None:
    """Configure structlog and stdlib handlers once per process."""
    global _logging_configured

    if _logging_configured:
        return

    cfg = settings.logging
    levels = _channel_levels(settings)

    structlog.configure(
        processors=_shared_processors() + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(cfg.level.upper())

    if cfg.console_enabled:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(_formatter(cfg.console_json_format))
        console.addFilter(ChannelLevelFilter(levels))
        root_logger.addHandler(console)

    if cfg.file_enabled:
        create_log_directory_structure(settings.logs_dir)
        for channel in LogChannel:
            handler = logging.handlers.RotatingFileHandler(
                get_channel_config(channel).get_file_path(settings.logs_dir),
                maxBytes=cfg.file_max_bytes,
                backupCount=cfg.file_backup_count,
                encoding="utf-8",
            )
            handler.setFormatter(_formatter(cfg.json_format))
            handler.addFilter(ChannelFilter(channel.value, levels[channel.value]))
            root_logger.addHandler(handler)

    _logging_configured = True


def get_logger(name: str, component: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger bound to the channel of `component`."""
    channel = get_channel_for_component(component) if component else LogChannel.APPLICATION
    return structlog.get_logger(name, channel=channel.value)


def get_logger_safe(name: str, component: Optional[str] = None) -> structlog.BoundLogger:
    """Alias for get_logger."""
    return get_logger(name, component)


def get_trading_logger_safe(name: str) -> structlog.BoundLogger:
    return get_logger(name, "trading_engine")


def get_market_data_logger_safe(name: str) -> structlog.BoundLogger:
    return get_logger(name, "market_data")


def get_api_logger_safe(name: str) -> structlog.BoundLogger:
    return get_logger(name, "api")


def get_database_logger_safe(name: str) -> structlog.BoundLogger:
    return get_logger(name, "database")


def get_error_logger_safe(name: str) -> structlog.BoundLogger:
    return get_logger(name, "error")


__all__ = [
    "ChannelFilter",
    "ChannelLevelFilter",
    "CorrelationIdManager",
    "LogChannel",
    "configure_logging",
    "get_logger",
    "get_logger_safe",
    "get_trading_logger_safe",
    "get_market_data_logger_safe",
    "get_api_logger_safe",
    "get_database_logger_safe",
    "get_error_logger_safe",
]
