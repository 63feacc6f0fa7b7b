from fastapi import APIRouter, Depends, Query

from api.dependencies import get_quote_provider
from api.schemas.responses import StockResponse
from services.market_data.provider import QuoteProvider

router = APIRouter(tags=["Market Data"])


@router.get("/stocks", response_model=StockResponse, response_model_by_alias=True)
async def get_stock(
    symbol: str = Query("AAPL", min_length=1, max_length=20, description="Ticker symbol"),
    quote_provider: QuoteProvider = Depends(get_quote_provider),
):
    """
    Latest price and recent daily history for a symbol.
    Crypto tickers in the configured map are quoted from CoinGecko, everything
    else from Yahoo Finance.
    """
    quote = await quote_provider.quote(symbol)
    return StockResponse.from_quote(quote)
