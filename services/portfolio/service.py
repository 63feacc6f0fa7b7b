from core.logging import get_trading_logger_safe
from core.trading.portfolio_models import PortfolioSnapshot
from services.account_store.interfaces import AccountStore
from .valuator import PortfolioValuator


class PortfolioService:
    """Reads the account, quotes every held symbol concurrently and values it."""

    def __init__(self, valuator: PortfolioValuator, store: AccountStore, quote_provider):
        self.valuator = valuator
        self.store = store
        self.quote_provider = quote_provider
        self.logger = get_trading_logger_safe("portfolio_service")

    async def get_portfolio(self) -> PortfolioSnapshot:
        account = await self.store.get_account()
        positions = await self.store.get_positions()
        quotes = await self.quote_provider.quotes([p.symbol for p in positions])

        snapshot = self.valuator.valuate(account, positions, quotes)
        if snapshot.unpriced_symbols:
            self.logger.warning("Portfolio valued without some quotes",
                                unpriced_symbols=snapshot.unpriced_symbols)
        self.logger.debug("Portfolio valued",
                          positions=len(positions),
                          portfolio_value=str(snapshot.portfolio_value),
                          total_equity=str(snapshot.total_equity))
        return snapshot
