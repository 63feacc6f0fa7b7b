from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.trading.models import OrderRequest, Quote, Trade
from core.trading.portfolio_models import HoldingValuation, PortfolioSnapshot


class CamelModel(BaseModel):
    """JSON bodies use camelCase keys; Python code uses snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Market data
class PricePointResponse(CamelModel):
    date: str
    price: float


class StockResponse(CamelModel):
    latest_price: float
    history: List[PricePointResponse]

    @classmethod
    def from_quote(cls, quote: Quote) -> "StockResponse":
        return cls(
            latest_price=float(quote.latest_price),
            history=[PricePointResponse(date=p.date, price=float(p.price)) for p in quote.history],
        )


# Portfolio
class HoldingResponse(CamelModel):
    symbol: str
    quantity: float
    average_price: float
    market_value: Optional[float] = None
    latest_price: Optional[float] = None
    error: Optional[str] = None

    @classmethod
    def from_valuation(cls, holding: HoldingValuation) -> "HoldingResponse":
        return cls(
            symbol=holding.symbol,
            quantity=float(holding.quantity),
            average_price=float(holding.average_price),
            market_value=float(holding.market_value) if holding.market_value is not None else None,
            latest_price=float(holding.latest_price) if holding.latest_price is not None else None,
            error=holding.error,
        )


class TimelinePointResponse(CamelModel):
    date: str
    value: float


class PortfolioResponse(CamelModel):
    cash: float
    currency: str
    holdings: List[HoldingResponse]
    portfolio_value: float
    total_equity: float
    timeline: List[TimelinePointResponse]
    unpriced_symbols: List[str] = Field(default_factory=list)

    @classmethod
    def from_snapshot(cls, snapshot: PortfolioSnapshot) -> "PortfolioResponse":
        return cls(
            cash=float(snapshot.cash),
            currency=snapshot.currency,
            holdings=[HoldingResponse.from_valuation(h) for h in snapshot.holdings],
            portfolio_value=float(snapshot.portfolio_value),
            total_equity=float(snapshot.total_equity),
            timeline=[TimelinePointResponse(date=p.date, value=float(p.value)) for p in snapshot.timeline],
            unpriced_symbols=list(snapshot.unpriced_symbols),
        )


# Trades
class TradeResponse(CamelModel):
    id: Optional[int] = None
    symbol: str
    type: str = Field(description="buy or sell")
    price: float
    quantity: float
    fee: float
    timestamp: datetime

    @classmethod
    def from_trade(cls, trade: Trade) -> "TradeResponse":
        return cls(
            id=trade.id,
            symbol=trade.symbol,
            type=trade.side.value,
            price=float(trade.price),
            quantity=float(trade.quantity),
            fee=float(trade.fee),
            timestamp=trade.timestamp,
        )


class TradeRequest(CamelModel):
    """POST /api/trade body. Presence checks are left to the execution engine."""
    symbol: Optional[str] = None
    side: Optional[str] = None
    quantity: Optional[Decimal] = None
    order_type: Optional[str] = None
    limit_price: Optional[Decimal] = None

    def to_order(self) -> OrderRequest:
        # Raises pydantic.ValidationError for an unknown side or order type
        return OrderRequest(
            symbol=self.symbol,
            side=self.side,
            quantity=self.quantity,
            order_type=self.order_type,
            limit_price=self.limit_price,
        )


class TradeResultResponse(CamelModel):
    success: bool = True
    trade: TradeResponse


class ErrorResponse(CamelModel):
    """Error response model"""
    error: str
    kind: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class HealthResponse(CamelModel):
    status: str = "ok"
