from fastapi import APIRouter, Depends

from api.dependencies import get_trading_service
from api.middleware.error_handling import rejection_response
from api.schemas.responses import ErrorResponse, TradeRequest, TradeResponse, TradeResultResponse
from core.trading.models import Rejection
from services.trading_engine.service import TradingService

router = APIRouter(tags=["Trading"])


@router.post(
    "/trade",
    response_model=TradeResultResponse,
    response_model_by_alias=True,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid order or insufficient cash/holdings"},
        409: {"model": ErrorResponse, "description": "Limit not filled or concurrent modification"},
        500: {"model": ErrorResponse, "description": "Market data or store failure"},
    },
)
async def place_trade(
    request: TradeRequest,
    trading_service: TradingService = Depends(get_trading_service),
):
    """
    Execute a paper market or limit order against the latest quote.
    Limit orders that do not cross are rejected outright; nothing rests.
    """
    outcome = await trading_service.place_order(request.to_order())
    if isinstance(outcome, Rejection):
        return rejection_response(outcome)
    return TradeResultResponse(success=True, trade=TradeResponse.from_trade(outcome.trade))
