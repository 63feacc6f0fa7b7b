"""
Fixtures for exercising the FastAPI app in-process over httpx.ASGITransport.
"""
from decimal import Decimal

import httpx
import pytest
from dependency_injector import providers

from api.main import create_app
from app.containers import AppContainer
from core.config.settings import AccountSettings, LoggingSettings, Settings
from core.trading.models import PricePoint
from services.account_store.memory_store import InMemoryAccountStore
from services.market_data.provider import StaticQuoteProvider


@pytest.fixture
def api_settings():
    return Settings(
        environment="testing",
        account=AccountSettings(seed_demo_data=True),
        logging=LoggingSettings(console_enabled=False),
    )


@pytest.fixture
def quotes():
    history = {"AAPL": [PricePoint(date="Oct 18", price=Decimal("178")),
                        PricePoint(date="Oct 19", price=Decimal("180"))]}
    return StaticQuoteProvider({"AAPL": "180", "BTC": "28000", "TSLA": "50"}, history=history)


@pytest.fixture
async def api(api_settings, quotes):
    # Lifespan does not run under ASGITransport, so the store is initialized here
    container = AppContainer()
    container.settings.override(providers.Object(api_settings))
    store = InMemoryAccountStore(api_settings)
    await store.initialize()
    container.account_store.override(providers.Object(store))
    container.quote_provider.override(providers.Object(quotes))

    app = create_app(container)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client, store, container
    container.unwire()
    container.reset_override()
