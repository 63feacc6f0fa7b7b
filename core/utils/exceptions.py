# Structured exception hierarchy for SimuTrade

from typing import Dict, Any, Optional
from datetime import datetime, timezone

from core.logging.correlation import CorrelationIdManager


class SimuTradeException(Exception):
    """Base exception for all SimuTrade specific errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 correlation_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.correlation_id = correlation_id or CorrelationIdManager.get_correlation_id()
        self.timestamp = datetime.now(timezone.utc)


class TransientError(SimuTradeException):
    """Errors where the caller may re-verify state and resubmit"""
    pass


class PermanentError(SimuTradeException):
    """Errors that will not succeed on resubmission"""
    pass


# Market Data Errors
class MarketDataError(TransientError):
    """Market data feed errors"""
    pass


class QuoteUnavailableError(MarketDataError):
    """Upstream quote fetch failed, timed out or returned unusable data"""

    def __init__(self, message: str, symbol: str, source: Optional[str] = None,
                 **kwargs):
        super().__init__(message, **kwargs)
        self.symbol = symbol
        self.source = source


# Infrastructure Errors
class InfrastructureError(TransientError):
    """Base class for infrastructure failures"""
    pass


class StoreFailureError(InfrastructureError):
    """Account store read/write failed.

    Writes are transactional, so no partial mutation is left behind; the
    outcome of the order is unknown to the caller and state must be
    re-read before resubmitting.
    """

    def __init__(self, message: str, operation: str, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation


class ConcurrentModificationError(TransientError):
    """Account changed between read and write (optimistic check failed)"""

    def __init__(self, message: str, expected_version: int,
                 actual_version: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.expected_version = expected_version
        self.actual_version = actual_version


# Configuration Errors
class ConfigurationError(PermanentError):
    """Configuration validation errors"""

    def __init__(self, message: str, config_field: str, config_value: Any,
                 **kwargs):
        super().__init__(message, **kwargs)
        self.config_field = config_field
        self.config_value = config_value


# Client Errors
class ApiRequestError(SimuTradeException):
    """Non-success response returned by the SimuTrade HTTP API"""

    def __init__(self, message: str, status_code: int, kind: Optional[str] = None,
                 **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.kind = kind

    @property
    def is_client_fault(self) -> bool:
        return 400 <= self.status_code < 500
