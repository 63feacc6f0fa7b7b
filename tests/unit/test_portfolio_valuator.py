from decimal import Decimal

from core.config.settings import TradingSettings
from core.trading.models import Account, Position
from core.utils.exceptions import QuoteUnavailableError
from services.portfolio.valuator import PortfolioValuator
from tests.factories import make_quote


def _positions():
    return [
        Position(symbol="AAPL", quantity=Decimal("12"), average_price=Decimal("170.12")),
        Position(symbol="BTC", quantity=Decimal("0.4"), average_price=Decimal("28000")),
    ]


def test_valuation_totals():
    valuator = PortfolioValuator(TradingSettings())
    account = Account(cash=Decimal("25000"))
    quotes = {"AAPL": make_quote("AAPL", "180"), "BTC": make_quote("BTC", "30000")}

    snapshot = valuator.valuate(account, _positions(), quotes)

    values = {h.symbol: h.market_value for h in snapshot.holdings}
    assert values == {"AAPL": Decimal("2160"), "BTC": Decimal("12000")}
    assert snapshot.portfolio_value == Decimal("14160")
    assert snapshot.total_equity == Decimal("39160")
    assert snapshot.currency == "USD"
    assert snapshot.fully_priced
    assert snapshot.holdings[0].latest_price == Decimal("180")


def test_failed_quote_is_isolated_to_its_symbol():
    valuator = PortfolioValuator(TradingSettings())
    account = Account(cash=Decimal("1000"))
    quotes = {
        "AAPL": make_quote("AAPL", "180"),
        "BTC": QuoteUnavailableError("Market data request timed out", symbol="BTC", source="coingecko"),
    }

    snapshot = valuator.valuate(account, _positions(), quotes)

    btc = next(h for h in snapshot.holdings if h.symbol == "BTC")
    assert btc.market_value is None
    assert btc.latest_price is None
    assert btc.error == "Market data request timed out"
    assert not btc.priced
    assert snapshot.unpriced_symbols == ["BTC"]
    assert snapshot.portfolio_value == Decimal("2160")
    assert snapshot.total_equity == Decimal("3160")


def test_missing_quote_is_reported_not_zeroed():
    valuator = PortfolioValuator(TradingSettings())
    snapshot = valuator.valuate(Account(cash=Decimal("10")), _positions()[:1], {})

    assert snapshot.holdings[0].market_value is None
    assert snapshot.holdings[0].error == "No quote available"
    assert snapshot.unpriced_symbols == ["AAPL"]
    assert snapshot.total_equity == Decimal("10")


def test_empty_portfolio():
    valuator = PortfolioValuator(TradingSettings())
    snapshot = valuator.valuate(Account(cash=Decimal("25000")), [], {})

    assert snapshot.holdings == []
    assert snapshot.portfolio_value == Decimal("0")
    assert snapshot.total_equity == Decimal("25000")
    assert all(p.value == Decimal("25000") for p in snapshot.timeline)


def test_timeline_is_deterministic_and_increasing():
    valuator = PortfolioValuator(TradingSettings())
    account = Account(cash=Decimal("1000"))
    quotes = {"AAPL": make_quote("AAPL", "100")}
    positions = [Position(symbol="AAPL", quantity=Decimal("10"), average_price=Decimal("90"))]

    snapshot = valuator.valuate(account, positions, quotes)

    assert len(snapshot.timeline) == 10
    assert snapshot.timeline[0].date == "Day 1"
    assert snapshot.timeline[-1].date == "Day 10"
    assert snapshot.timeline[0].value == Decimal("1900")   # 1000 + 1000 * 0.9
    assert snapshot.timeline[-1].value == Decimal("2080")  # 1000 + 1000 * 1.08
    values = [p.value for p in snapshot.timeline]
    assert values == sorted(values)
    assert len(set(values)) == len(values)
    assert valuator.valuate(account, positions, quotes).timeline == snapshot.timeline


def test_timeline_length_is_configurable():
    valuator = PortfolioValuator(TradingSettings(timeline_points=3))
    snapshot = valuator.valuate(Account(cash=Decimal("0")), [], {})
    assert [p.date for p in snapshot.timeline] == ["Day 1", "Day 2", "Day 3"]
