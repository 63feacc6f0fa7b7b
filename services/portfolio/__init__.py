from .service import PortfolioService
from .valuator import PortfolioValuator

__all__ = ["PortfolioService", "PortfolioValuator"]
