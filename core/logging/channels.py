"""
Logging channel definitions for SimuTrade.
Each structured log event carries a `channel` field; when file logging is
enabled every channel gets its own rotating file.
"""

from enum import Enum
from typing import Dict
from pathlib import Path
from dataclasses import dataclass


class LogChannel(str, Enum):
    """Logging channels for different components."""

    APPLICATION = "application"  # General application logs
    TRADING = "trading"          # Order execution and ledger writes
    MARKET_DATA = "market_data"  # Quote fetching
    DATABASE = "database"        # Account store operations
    API = "api"                  # API requests/responses
    ERROR = "error"              # Error logs


@dataclass
class ChannelConfig:
    """Configuration for a logging channel."""

    name: str
    filename: str
    level: str = "INFO"

    def get_file_path(self, logs_dir: str) -> Path:
        """Get the full file path for this channel."""
        return Path(logs_dir) / self.filename


CHANNEL_CONFIGS: Dict[LogChannel, ChannelConfig] = {
    LogChannel.APPLICATION: ChannelConfig(name="application", filename="application.log"),
    LogChannel.TRADING: ChannelConfig(name="trading", filename="trading.log"),
    LogChannel.MARKET_DATA: ChannelConfig(name="market_data", filename="market_data.log"),
    LogChannel.DATABASE: ChannelConfig(name="database", filename="database.log", level="WARNING"),
    LogChannel.API: ChannelConfig(name="api", filename="api.log"),
    LogChannel.ERROR: ChannelConfig(name="error", filename="error.log", level="ERROR"),
}


def get_channel_for_component(component: str) -> LogChannel:
    """Get the appropriate logging channel for a component."""
    component_mapping = {
        "trading_engine": LogChannel.TRADING,
        "trading_service": LogChannel.TRADING,
        "portfolio": LogChannel.TRADING,
        "market_data": LogChannel.MARKET_DATA,
        "quote_provider": LogChannel.MARKET_DATA,
        "database": LogChannel.DATABASE,
        "account_store": LogChannel.DATABASE,
        "api": LogChannel.API,
        "client": LogChannel.API,
        "error": LogChannel.ERROR,
    }
    return component_mapping.get(component, LogChannel.APPLICATION)


def get_channel_config(channel: LogChannel) -> ChannelConfig:
    """Get configuration for a specific channel."""
    return CHANNEL_CONFIGS[channel]


def create_log_directory_structure(logs_dir: str) -> None:
    """Create the logs directory."""
    Path(logs_dir).mkdir(parents=True, exist_ok=True)
