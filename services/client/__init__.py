from .api_client import SimuTradeClient
from .refresher import PortfolioRefresher

__all__ = ["PortfolioRefresher", "SimuTradeClient"]
