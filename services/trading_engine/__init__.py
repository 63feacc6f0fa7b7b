"""
Trading Engine Service

Paper order execution: a pure ExecutionEngine that prices and decides each
order, and a TradingService that feeds it quotes and applies its results to
the account store.
"""

from .execution_engine import ExecutionEngine
from .service import TradingService

__all__ = [
    "ExecutionEngine",
    "TradingService",
]
