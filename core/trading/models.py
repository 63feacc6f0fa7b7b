from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"


class RejectionKind(str, Enum):
    INVALID_REQUEST = "InvalidRequest"
    LIMIT_NOT_FILLED = "LimitNotFilled"
    INSUFFICIENT_CASH = "InsufficientCash"
    INSUFFICIENT_HOLDINGS = "InsufficientHoldings"


def normalize_symbol(symbol: Optional[str]) -> Optional[str]:
    if symbol is None:
        return None
    return symbol.strip().upper() or None


class Account(BaseModel):
    """Cash side of the single simulated user."""
    model_config = ConfigDict(frozen=True)

    cash: Decimal
    currency: str = "USD"
    email: Optional[str] = None
    version: int = 0


class Position(BaseModel):
    """Holding of one symbol. Zero-quantity positions are never stored."""
    model_config = ConfigDict(frozen=True)

    symbol: str
    quantity: Decimal
    average_price: Decimal

    @field_validator("symbol")
    @classmethod
    def upper_symbol(cls, v: str) -> str:
        return normalize_symbol(v) or v


class Trade(BaseModel):
    """Immutable record of one execution."""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    symbol: str
    side: OrderSide
    price: Decimal
    quantity: Decimal
    fee: Decimal = Decimal("0")
    timestamp: datetime


class OrderRequest(BaseModel):
    """Inbound order. Presence and range checks happen in the execution engine
    so they surface as InvalidRequest rejections rather than parse errors."""

    symbol: Optional[str] = None
    side: Optional[OrderSide] = None
    quantity: Optional[Decimal] = None
    order_type: OrderType = OrderType.MARKET
    limit_price: Optional[Decimal] = None

    @field_validator("symbol", mode="before")
    @classmethod
    def clean_symbol(cls, v):
        if isinstance(v, str):
            return normalize_symbol(v)
        return v

    @field_validator("side", mode="before")
    @classmethod
    def lower_side(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or None
        return v

    @field_validator("order_type", mode="before")
    @classmethod
    def lower_order_type(cls, v):
        if v is None:
            return OrderType.MARKET
        if isinstance(v, str):
            return v.strip().lower() or OrderType.MARKET
        return v


class PricePoint(BaseModel):
    date: str
    price: Decimal


class Quote(BaseModel):
    """Latest price plus chronological history for a symbol."""

    symbol: str
    latest_price: Decimal
    history: List[PricePoint] = Field(default_factory=list)
    source: Optional[str] = None


class Execution(BaseModel):
    """Everything a fill changes: the store applies these as one unit."""

    order: OrderRequest
    account: Account
    position: Optional[Position]  # None means the position is removed
    trade: Trade
    fee: Decimal
    trade_cost: Decimal

    @property
    def symbol(self) -> str:
        return self.trade.symbol

    @property
    def position_removed(self) -> bool:
        return self.position is None


class Rejection(BaseModel):
    """Typed non-fill outcome; no mutation accompanies it."""

    kind: RejectionKind
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

ExecutionOutcome = Union[Execution, Rejection]
