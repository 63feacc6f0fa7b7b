import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest
from prometheus_client import CollectorRegistry

from core.config.settings import MarketDataSettings, Settings
from core.monitoring.prometheus_metrics import PrometheusMetricsCollector
from core.utils.exceptions import QuoteUnavailableError
from services.market_data.provider import QuoteProvider, StaticQuoteProvider
from services.market_data.sources import (
    AssetClass,
    CryptoQuoteSource,
    EquityQuoteSource,
    build_quote,
    classify_symbol,
    format_history_date,
)

OCT_18 = datetime(2024, 10, 18, tzinfo=timezone.utc)
OCT_19 = datetime(2024, 10, 19, tzinfo=timezone.utc)


def _coingecko_payload():
    return {"prices": [
        [OCT_18.timestamp() * 1000, 67000.5],
        [OCT_19.timestamp() * 1000, 68123.25],
    ]}


def _yahoo_payload(closes):
    return {"chart": {"result": [{
        "timestamp": [int(OCT_18.timestamp()), int(OCT_19.timestamp())],
        "indicators": {"quote": [{"close": closes}]},
    }], "error": None}}


def _provider(handler, timeout_seconds=10.0, metrics=None):
    settings = Settings(market_data=MarketDataSettings(timeout_seconds=timeout_seconds))
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return QuoteProvider(settings, metrics=metrics, client=client)


def test_classify_symbol():
    crypto_map = MarketDataSettings().crypto_map
    assert classify_symbol("btc", crypto_map) == AssetClass.CRYPTO
    assert classify_symbol("ETH", crypto_map) == AssetClass.CRYPTO
    assert classify_symbol("AAPL", crypto_map) == AssetClass.EQUITY


def test_crypto_map_keys_are_uppercased():
    settings = MarketDataSettings(crypto_map={"doge": "dogecoin"})
    assert settings.crypto_map == {"DOGE": "dogecoin"}


def test_format_history_date():
    assert format_history_date(OCT_19) == "Oct 19"
    assert format_history_date(datetime(2024, 3, 5)) == "Mar 5"


def test_build_quote_skips_missing_prices():
    quote = build_quote("AAPL", "yahoo", [(OCT_18, None), (OCT_19, 231.5)])
    assert quote.latest_price == Decimal("231.5")
    assert [p.date for p in quote.history] == ["Oct 19"]


def test_build_quote_rejects_empty_series():
    with pytest.raises(QuoteUnavailableError):
        build_quote("AAPL", "yahoo", [(OCT_18, None)])


def test_build_quote_rejects_zero_latest_price():
    with pytest.raises(QuoteUnavailableError):
        build_quote("AAPL", "yahoo", [(OCT_18, 10), (OCT_19, 0)])


def test_crypto_request_shape():
    url, params = CryptoQuoteSource(MarketDataSettings()).build_request("BTC")
    assert url == "https://api.coingecko.com/api/v3/coins/bitcoin/market_chart"
    assert params == {"vs_currency": "usd", "days": 30}


def test_equity_request_shape():
    url, params = EquityQuoteSource(MarketDataSettings()).build_request("aapl")
    assert url == "https://query1.finance.yahoo.com/v8/finance/chart/AAPL"
    assert params == {"range": "1mo", "interval": "1d"}


def test_yahoo_error_payload():
    payload = {"chart": {"result": None, "error": {"code": "Not Found"}}}
    with pytest.raises(QuoteUnavailableError):
        EquityQuoteSource(MarketDataSettings()).parse("NOPE", payload)


@pytest.mark.asyncio
async def test_crypto_quote_via_provider():
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url)
        return httpx.Response(200, json=_coingecko_payload())

    provider = _provider(handler)
    quote = await provider.quote("btc")

    assert requested[0].path == "/api/v3/coins/bitcoin/market_chart"
    assert quote.symbol == "BTC"
    assert quote.source == "coingecko"
    assert quote.latest_price == Decimal("68123.25")
    assert [p.date for p in quote.history] == ["Oct 18", "Oct 19"]


@pytest.mark.asyncio
async def test_equity_quote_via_provider():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v8/finance/chart/AAPL"
        return httpx.Response(200, json=_yahoo_payload([228.1, 231.5]))

    quote = await _provider(handler).quote("AAPL")
    assert quote.source == "yahoo"
    assert quote.latest_price == Decimal("231.5")
    assert len(quote.history) == 2


@pytest.mark.asyncio
async def test_upstream_error_status_raises():
    provider = _provider(lambda request: httpx.Response(503, json={}))
    with pytest.raises(QuoteUnavailableError) as exc_info:
        await provider.quote("AAPL")
    assert exc_info.value.details["status_code"] == 503
    assert exc_info.value.source == "yahoo"


@pytest.mark.asyncio
async def test_non_json_body_raises():
    provider = _provider(lambda request: httpx.Response(200, content=b"<html>"))
    with pytest.raises(QuoteUnavailableError):
        await provider.quote("AAPL")


@pytest.mark.asyncio
async def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(QuoteUnavailableError):
        await _provider(handler).quote("BTC")


@pytest.mark.asyncio
async def test_slow_upstream_times_out():
    async def handler(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json=_coingecko_payload())

    metrics = PrometheusMetricsCollector(registry=CollectorRegistry())
    provider = _provider(handler, timeout_seconds=0.05, metrics=metrics)
    with pytest.raises(QuoteUnavailableError) as exc_info:
        await provider.quote("BTC")

    assert "timed out" in exc_info.value.message
    assert metrics.registry.get_sample_value(
        "simutrade_quote_fetches_total", {"source": "coingecko", "outcome": "timeout"}
    ) == 1.0


@pytest.mark.asyncio
async def test_quotes_isolates_failures_per_symbol():
    def handler(request: httpx.Request) -> httpx.Response:
        if "bitcoin" in request.url.path:
            return httpx.Response(500)
        return httpx.Response(200, json=_yahoo_payload([100.0, 101.0]))

    results = await _provider(handler).quotes(["AAPL", "btc", "AAPL"])

    assert set(results) == {"AAPL", "BTC"}
    assert results["AAPL"].latest_price == Decimal("101.0")
    assert isinstance(results["BTC"], QuoteUnavailableError)


@pytest.mark.asyncio
async def test_static_provider():
    provider = StaticQuoteProvider({"aapl": 180})
    quote = await provider.quote("AAPL")
    assert quote.latest_price == Decimal("180")

    with pytest.raises(QuoteUnavailableError):
        await provider.quote("MSFT")
    results = await provider.quotes(["AAPL", "MSFT"])
    assert isinstance(results["MSFT"], QuoteUnavailableError)
