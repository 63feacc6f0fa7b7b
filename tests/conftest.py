"""
Pytest configuration and shared fixtures for SimuTrade tests.
"""
from decimal import Decimal

import pytest
from prometheus_client import CollectorRegistry

from core.config.settings import AccountSettings, Settings, TradingSettings
from core.monitoring.prometheus_metrics import PrometheusMetricsCollector
from core.trading.models import Account, Position
from services.account_store.memory_store import InMemoryAccountStore
from services.market_data.provider import StaticQuoteProvider
from services.trading_engine.execution_engine import ExecutionEngine
from tests.factories import FIXED_NOW


@pytest.fixture
def test_settings():
    """Test settings configuration."""
    return Settings(
        environment="testing",
        account=AccountSettings(seed_demo_data=False),
    )


@pytest.fixture
def trading_settings():
    return TradingSettings()


@pytest.fixture
def engine(trading_settings):
    return ExecutionEngine(trading_settings, clock=lambda: FIXED_NOW)


@pytest.fixture
def account():
    return Account(cash=Decimal("25000"), currency="USD")


@pytest.fixture
def aapl_position():
    return Position(symbol="AAPL", quantity=Decimal("12"), average_price=Decimal("170.12"))


@pytest.fixture
def metrics():
    return PrometheusMetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def static_quotes():
    return StaticQuoteProvider({"AAPL": "180", "BTC": "28000", "TSLA": "50"})


@pytest.fixture
async def memory_store(test_settings):
    store = InMemoryAccountStore(test_settings)
    await store.initialize()
    return store


@pytest.fixture
async def demo_store(test_settings):
    store = InMemoryAccountStore(test_settings, seed_demo_data=True)
    await store.initialize()
    return store
