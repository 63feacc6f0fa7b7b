"""
Correlation ID system for tracking one request across the API, the trading
service and the account store.
"""

import uuid
import contextvars
from typing import Optional, Dict, Any

# Context variable to store correlation ID for the current request/operation
_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id', default=None
)

# Context variable to store additional correlation context
_correlation_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    'correlation_context', default={}
)


class CorrelationIdManager:
    """Manager for correlation ID lifecycle and context propagation"""

    @staticmethod
    def generate_correlation_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def set_correlation_id(correlation_id: str) -> str:
        _correlation_id.set(correlation_id)
        return correlation_id

    @staticmethod
    def get_correlation_id() -> Optional[str]:
        return _correlation_id.get()

    @staticmethod
    def set_correlation_context(**kwargs) -> Dict[str, Any]:
        """Merge key-value pairs into the current correlation context."""
        current_context = _correlation_context.get().copy()
        current_context.update(kwargs)
        _correlation_context.set(current_context)
        return current_context

    @staticmethod
    def clear_correlation() -> None:
        """Clear correlation ID and context from current context"""
        _correlation_id.set(None)
        _correlation_context.set({})


def add_correlation_info(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor that stamps correlation and request IDs on every event."""
    correlation_id = _correlation_id.get()
    if correlation_id and "correlation_id" not in event_dict:
        event_dict["correlation_id"] = correlation_id
    request_id = _correlation_context.get().get("request_id")
    if request_id and "request_id" not in event_dict:
        event_dict["request_id"] = request_id
    return event_dict
