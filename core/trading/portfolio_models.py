from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class HoldingValuation(BaseModel):
    symbol: str
    quantity: Decimal
    average_price: Decimal
    latest_price: Optional[Decimal] = None
    market_value: Optional[Decimal] = None
    error: Optional[str] = None

    @property
    def priced(self) -> bool:
        return self.market_value is not None


class TimelinePoint(BaseModel):
    date: str
    value: Decimal


class PortfolioSnapshot(BaseModel):
    cash: Decimal
    currency: str
    holdings: List[HoldingValuation] = Field(default_factory=list)
    portfolio_value: Decimal = Decimal("0")
    total_equity: Decimal = Decimal("0")
    timeline: List[TimelinePoint] = Field(default_factory=list)
    unpriced_symbols: List[str] = Field(default_factory=list)

    @property
    def fully_priced(self) -> bool:
        return not self.unpriced_symbols
