import pytest
from dependency_injector import providers

from api.main import BANNER, create_app
from app.containers import AppContainer
from core.config.settings import Settings
from core.utils.exceptions import ConfigurationError
from services.trading_engine.service import TradingService


class ExplodingTradingService(TradingService):
    async def place_order(self, order):
        raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_root_and_health(api):
    client, _, _ = api
    root = await client.get("/")
    assert root.status_code == 200
    assert root.text == BANNER

    health = await client.get("/api/health")
    assert health.json() == {"status": "ok"}
    assert health.headers["X-Request-ID"]
    assert health.headers["X-Correlation-ID"]


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(api):
    client, _, _ = api
    response = await client.get("/api/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"


@pytest.mark.asyncio
async def test_stocks_defaults_to_aapl(api):
    client, _, _ = api
    response = await client.get("/api/stocks")

    assert response.status_code == 200
    assert response.json() == {
        "latestPrice": 180.0,
        "history": [{"date": "Oct 18", "price": 178.0}, {"date": "Oct 19", "price": 180.0}],
    }


@pytest.mark.asyncio
async def test_stocks_quote_failure_is_server_fault(api):
    client, _, _ = api
    response = await client.get("/api/stocks", params={"symbol": "NOPE"})

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Failed to fetch market data."
    assert body["kind"] == "QuoteUnavailable"


@pytest.mark.asyncio
async def test_portfolio_shape(api):
    client, _, _ = api
    response = await client.get("/api/portfolio")

    assert response.status_code == 200
    body = response.json()
    assert body["cash"] == 25000.0
    assert body["currency"] == "USD"
    assert body["portfolioValue"] == pytest.approx(12 * 180 + 0.4 * 28000)
    assert body["totalEquity"] == pytest.approx(25000 + 12 * 180 + 0.4 * 28000)
    assert body["unpricedSymbols"] == []
    assert len(body["timeline"]) == 10
    aapl = body["holdings"][0]
    assert aapl == {
        "symbol": "AAPL",
        "quantity": 12.0,
        "averagePrice": 170.12,
        "marketValue": 2160.0,
        "latestPrice": 180.0,
        "error": None,
    }


@pytest.mark.asyncio
async def test_portfolio_with_unpriced_holding(api, quotes):
    client, _, _ = api
    del quotes.prices["BTC"]

    body = (await client.get("/api/portfolio")).json()

    assert body["unpricedSymbols"] == ["BTC"]
    btc = body["holdings"][1]
    assert btc["marketValue"] is None
    assert btc["error"]
    assert body["portfolioValue"] == 2160.0


@pytest.mark.asyncio
async def test_market_buy_then_history(api):
    client, store, _ = api
    response = await client.post("/api/trade", json={
        "symbol": "btc", "side": "buy", "quantity": 0.1, "orderType": "market",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["trade"]["symbol"] == "BTC"
    assert body["trade"]["type"] == "buy"
    assert body["trade"]["price"] == pytest.approx(28056.0)
    assert float((await store.get_position("BTC")).quantity) == pytest.approx(0.5)

    history = (await client.get("/api/history")).json()
    assert history[0]["id"] == body["trade"]["id"]
    assert history[0]["symbol"] == "BTC"
    assert len(history) == 2

    limited = (await client.get("/api/history", params={"limit": 1})).json()
    assert len(limited) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("payload,status,kind", [
    ({}, 400, "InvalidRequest"),
    ({"symbol": "AAPL", "side": "buy", "quantity": 0}, 400, "InvalidRequest"),
    ({"symbol": "AAPL", "side": "buy", "quantity": 1, "orderType": "limit"}, 400, "InvalidRequest"),
    ({"symbol": "AAPL", "side": "hold", "quantity": 1}, 400, "InvalidRequest"),
    ({"symbol": "AAPL", "side": "buy", "quantity": "lots"}, 400, "InvalidRequest"),
    ({"symbol": "TSLA", "side": "buy", "quantity": 1000}, 400, "InsufficientCash"),
    ({"symbol": "AAPL", "side": "sell", "quantity": 13}, 400, "InsufficientHoldings"),
    ({"symbol": "AAPL", "side": "buy", "quantity": 1, "orderType": "limit", "limitPrice": 170}, 409,
     "LimitNotFilled"),
])
async def test_trade_rejections(api, payload, status, kind):
    client, store, _ = api
    before = (await store.get_account(), await store.get_positions(), await store.list_trades())

    response = await client.post("/api/trade", json=payload)

    assert response.status_code == status
    body = response.json()
    assert body["kind"] == kind
    assert body["error"]
    assert (await store.get_account(), await store.get_positions(), await store.list_trades()) == before


@pytest.mark.asyncio
async def test_trade_with_quote_failure_is_server_fault(api):
    client, _, _ = api
    response = await client.post("/api/trade", json={"symbol": "NOPE", "side": "buy", "quantity": 1})
    assert response.status_code == 500
    assert response.json()["kind"] == "QuoteUnavailable"


@pytest.mark.asyncio
async def test_unexpected_error_is_structured_500(api):
    client, _, container = api
    container.trading_service.override(providers.Object(ExplodingTradingService(
        container.execution_engine(), container.account_store(), container.quote_provider(),
    )))

    response = await client.post("/api/trade", json={"symbol": "AAPL", "side": "buy", "quantity": 1})

    assert response.status_code == 500
    assert response.json()["kind"] == "InternalError"


@pytest.mark.asyncio
async def test_metrics_exposition(api):
    client, _, _ = api
    await client.post("/api/trade", json={"symbol": "AAPL", "side": "buy", "quantity": 1})

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "simutrade_orders_total" in response.text


@pytest.mark.asyncio
async def test_server_fault_carries_correlation_id(api):
    client, _, _ = api
    response = await client.get("/api/stocks", params={"symbol": "NOPE"},
                                headers={"X-Correlation-ID": "corr-500"})

    assert response.status_code == 500
    assert response.json()["details"]["correlation_id"] == "corr-500"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload,field,fragment", [
    ({"symbol": "AAPL", "side": "hold", "quantity": 1}, "side", "'buy'"),
    ({"symbol": "AAPL", "side": "buy", "quantity": "lots"}, "quantity", "decimal"),
    ({"symbol": "AAPL", "side": "buy", "quantity": 1, "orderType": "stop"}, "order_type", "'market'"),
])
async def test_malformed_trade_values_explain_the_field(api, payload, field, fragment):
    client, _, _ = api
    response = await client.post("/api/trade", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["kind"] == "InvalidRequest"
    assert body["error"].startswith(f"{field}: ")
    assert fragment in body["error"]
    assert body["error"] != "Missing trade details."


@pytest.mark.asyncio
async def test_trade_without_body_is_missing_details(api):
    client, _, _ = api
    response = await client.post("/api/trade")

    assert response.status_code == 400
    assert response.json()["error"] == "Missing trade details."


@pytest.mark.asyncio
async def test_quantity_finer_than_storage_is_rejected(api):
    client, store, _ = api
    response = await client.post("/api/trade", json={
        "symbol": "TSLA", "side": "buy", "quantity": "0.00000000001",
    })

    assert response.status_code == 400
    assert response.json()["kind"] == "InvalidRequest"
    assert await store.get_position("TSLA") is None


def test_production_rejects_wildcard_cors():
    container = AppContainer()
    container.settings.override(providers.Object(Settings(environment="production")))
    try:
        with pytest.raises(ConfigurationError) as exc_info:
            create_app(container)
    finally:
        container.reset_override()

    assert exc_info.value.config_field == "api.cors_origins"
