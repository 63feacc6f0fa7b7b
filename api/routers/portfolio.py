from typing import List, Optional

from fastapi import APIRouter, Depends

from api.dependencies import get_history_limit, get_portfolio_service, get_trading_service
from api.schemas.responses import PortfolioResponse, TradeResponse
from services.portfolio.service import PortfolioService
from services.trading_engine.service import TradingService

router = APIRouter(tags=["Portfolio"])


@router.get("/portfolio", response_model=PortfolioResponse, response_model_by_alias=True)
async def get_portfolio(
    portfolio_service: PortfolioService = Depends(get_portfolio_service),
):
    """
    Cash, holdings marked to market, totals and an illustrative value curve.
    Holdings whose quote could not be fetched carry an `error` and are listed
    in `unpricedSymbols`.
    """
    snapshot = await portfolio_service.get_portfolio()
    return PortfolioResponse.from_snapshot(snapshot)


@router.get("/history", response_model=List[TradeResponse], response_model_by_alias=True)
async def get_history(
    limit: Optional[int] = Depends(get_history_limit),
    trading_service: TradingService = Depends(get_trading_service),
):
    """Executed trades, most recent first."""
    trades = await trading_service.get_history(limit=limit)
    return [TradeResponse.from_trade(t) for t in trades]
