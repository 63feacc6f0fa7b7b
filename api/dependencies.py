from fastapi import Depends, Query
from dependency_injector.wiring import inject, Provide
from typing import Optional

from app.containers import AppContainer
from core.config.settings import Settings
from services.market_data.provider import QuoteProvider
from services.portfolio.service import PortfolioService
from services.trading_engine.service import TradingService


@inject
def get_settings(
    settings: Settings = Depends(Provide[AppContainer.settings])
) -> Settings:
    """Get application settings for API endpoints"""
    return settings


@inject
def get_quote_provider(
    quote_provider: QuoteProvider = Depends(Provide[AppContainer.quote_provider])
) -> QuoteProvider:
    return quote_provider


@inject
def get_trading_service(
    trading_service: TradingService = Depends(Provide[AppContainer.trading_service])
) -> TradingService:
    return trading_service


@inject
def get_portfolio_service(
    portfolio_service: PortfolioService = Depends(Provide[AppContainer.portfolio_service])
) -> PortfolioService:
    return portfolio_service


# Query parameter dependencies
def get_history_limit(
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Maximum number of trades")
) -> Optional[int]:
    return limit
