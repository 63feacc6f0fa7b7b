from decimal import Decimal
from typing import List, Mapping, Sequence, Union

from core.config.settings import TradingSettings
from core.trading.models import Account, Position, Quote
from core.trading.portfolio_models import HoldingValuation, PortfolioSnapshot, TimelinePoint
from core.utils.exceptions import QuoteUnavailableError

ZERO = Decimal("0")


class PortfolioValuator:
    """
    Marks positions to market and aggregates the portfolio.

    Failures are isolated per symbol: a holding whose quote could not be
    fetched is reported with `market_value=None` and an error message, left
    out of `portfolio_value`, and listed in `unpriced_symbols`. It is never
    valued at zero.

    The timeline is an illustrative curve derived from the current snapshot
    (`cash + portfolio_value * (base_factor + step * i)`), not a
    reconstruction of historical account value.
    """

    def __init__(self, settings: TradingSettings):
        self.timeline_points = settings.timeline_points
        self.base_factor = Decimal(settings.timeline_base_factor)
        self.step = Decimal(settings.timeline_step)

    def value_holding(
        self, position: Position, quote: Union[Quote, QuoteUnavailableError, None]
    ) -> HoldingValuation:
        if isinstance(quote, Quote):
            return HoldingValuation(
                symbol=position.symbol,
                quantity=position.quantity,
                average_price=position.average_price,
                latest_price=quote.latest_price,
                market_value=position.quantity * quote.latest_price,
            )
        if isinstance(quote, QuoteUnavailableError):
            error = quote.message
        else:
            error = "No quote available"
        return HoldingValuation(
            symbol=position.symbol,
            quantity=position.quantity,
            average_price=position.average_price,
            error=error,
        )

    def scaling_factor(self, index: int) -> Decimal:
        return self.base_factor + self.step * index

    def build_timeline(self, cash: Decimal, portfolio_value: Decimal) -> List[TimelinePoint]:
        return [
            TimelinePoint(date=f"Day {i + 1}", value=cash + portfolio_value * self.scaling_factor(i))
            for i in range(self.timeline_points)
        ]

    def valuate(
        self,
        account: Account,
        positions: Sequence[Position],
        quotes: Mapping[str, Union[Quote, QuoteUnavailableError]],
    ) -> PortfolioSnapshot:
        holdings = [self.value_holding(p, quotes.get(p.symbol)) for p in positions]
        portfolio_value = sum((h.market_value for h in holdings if h.priced), ZERO)
        return PortfolioSnapshot(
            cash=account.cash,
            currency=account.currency,
            holdings=holdings,
            portfolio_value=portfolio_value,
            total_equity=account.cash + portfolio_value,
            timeline=self.build_timeline(account.cash, portfolio_value),
            unpriced_symbols=[h.symbol for h in holdings if not h.priced],
        )
