from decimal import Decimal

import pytest
from pydantic import ValidationError

from core.config.settings import DECIMAL_SCALE, Settings, TradingSettings


def test_defaults():
    settings = Settings()
    assert settings.trading.fee_rate == Decimal("0.001")
    assert settings.trading.slippage_rate == Decimal("0.002")
    assert settings.trading.timeline_points == 10
    assert settings.account.starting_cash == Decimal("25000")
    assert settings.api.port == 4000
    assert settings.market_data.crypto_map["BTC"] == "bitcoin"


def test_nested_environment_overrides(monkeypatch):
    monkeypatch.setenv("TRADING__FEE_RATE", "0.0025")
    monkeypatch.setenv("DATABASE__URL", "sqlite+aiosqlite:///./simutrade.db")
    monkeypatch.setenv("MARKET_DATA__TIMEOUT_SECONDS", "3")

    settings = Settings()

    assert settings.trading.fee_rate == Decimal("0.0025")
    assert settings.uses_persistent_store
    assert settings.market_data.timeout_seconds == 3.0


def test_memory_store_when_no_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE__URL", raising=False)
    assert not Settings().uses_persistent_store


@pytest.mark.parametrize("field", ["fee_rate", "slippage_rate"])
def test_rates_must_be_fractions(field):
    with pytest.raises(ValidationError):
        TradingSettings(**{field: Decimal("1.5")})
    with pytest.raises(ValidationError):
        TradingSettings(**{field: Decimal("-0.1")})


def test_timeline_step_must_be_positive():
    with pytest.raises(ValidationError):
        TradingSettings(timeline_step=Decimal("0"))


def test_decimal_places_cannot_exceed_storage_scale():
    assert TradingSettings().decimal_places == DECIMAL_SCALE
    with pytest.raises(ValidationError):
        TradingSettings(decimal_places=DECIMAL_SCALE + 1)
