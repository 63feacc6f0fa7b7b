"""
Shared trading core: domain models for accounts, positions, trades, orders,
quotes and portfolio valuation.
"""

from .models import (
    Account,
    Execution,
    ExecutionOutcome,
    OrderRequest,
    OrderSide,
    OrderType,
    Position,
    PricePoint,
    Quote,
    Rejection,
    RejectionKind,
    Trade,
)
from .portfolio_models import HoldingValuation, PortfolioSnapshot, TimelinePoint

__all__ = [
    "Account",
    "Execution",
    "ExecutionOutcome",
    "HoldingValuation",
    "OrderRequest",
    "OrderSide",
    "OrderType",
    "PortfolioSnapshot",
    "Position",
    "PricePoint",
    "Quote",
    "Rejection",
    "RejectionKind",
    "TimelinePoint",
    "Trade",
]
