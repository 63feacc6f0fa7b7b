from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx

from core.config.settings import MarketDataSettings
from core.trading.models import PricePoint, Quote
from core.utils.exceptions import QuoteUnavailableError


class AssetClass(str, Enum):
    CRYPTO = "crypto"
    EQUITY = "equity"


def classify_symbol(symbol: str, crypto_map: Dict[str, str]) -> AssetClass:
    """Crypto when the ticker is in the configured CoinGecko map, else equity."""
    return AssetClass.CRYPTO if symbol.upper() in crypto_map else AssetClass.EQUITY


def format_history_date(moment: datetime) -> str:
    """Short month and day, e.g. 'Oct 19'."""
    return f"{moment:%b} {moment.day}"


def build_quote(symbol: str, source: str, points: Iterable[Tuple[datetime, Any]]) -> Quote:
    """Turn (timestamp, price) pairs into a Quote.

    Missing prices are skipped rather than treated as zero; an empty series
    or a non-positive latest price is not a usable quote.
    """
    history: List[PricePoint] = []
    for moment, raw_price in points:
        if raw_price is None:
            continue
        try:
            price = Decimal(str(raw_price))
        except (InvalidOperation, ValueError) as e:
            raise QuoteUnavailableError("Unparseable price in market data", symbol=symbol,
                                        source=source, details={"price": repr(raw_price)}) from e
        if not price.is_finite():
            continue
        history.append(PricePoint(date=format_history_date(moment), price=price))

    if not history:
        raise QuoteUnavailableError("Market data contained no prices", symbol=symbol, source=source)
    latest_price = history[-1].price
    if latest_price <= 0:
        raise QuoteUnavailableError("Market data latest price is not positive", symbol=symbol,
                                    source=source, details={"latest_price": str(latest_price)})
    return Quote(symbol=symbol, latest_price=latest_price, history=history, source=source)


class QuoteSource(ABC):
    """One upstream market-data API."""

    name: str = "unknown"

    def __init__(self, settings: MarketDataSettings):
        self.settings = settings

    @abstractmethod
    def build_request(self, symbol: str) -> Tuple[str, Dict[str, Any]]:
        """Return (url, query params) for `symbol`."""
        pass

    @abstractmethod
    def parse(self, symbol: str, payload: Any) -> Quote:
        pass

    async def fetch(self, client: httpx.AsyncClient, symbol: str) -> Quote:
        url, params = self.build_request(symbol)
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise QuoteUnavailableError("Market data request rejected", symbol=symbol, source=self.name,
                                        details={"status_code": e.response.status_code}) from e
        except httpx.TimeoutException as e:
            raise QuoteUnavailableError("Market data request timed out", symbol=symbol,
                                        source=self.name) from e
        except httpx.HTTPError as e:
            raise QuoteUnavailableError("Market data request failed", symbol=symbol, source=self.name,
                                        details={"error": str(e)}) from e
        except ValueError as e:
            raise QuoteUnavailableError("Market data response is not JSON", symbol=symbol,
                                        source=self.name) from e
        return self.parse(symbol, payload)


class CryptoQuoteSource(QuoteSource):
    """CoinGecko market_chart endpoint."""

    name = "coingecko"

    def coin_id(self, symbol: str) -> str:
        try:
            return self.settings.crypto_map[symbol.upper()]
        except KeyError:
            raise QuoteUnavailableError("Symbol is not a supported crypto asset", symbol=symbol,
                                        source=self.name) from None

    def build_request(self, symbol: str) -> Tuple[str, Dict[str, Any]]:
        url = f"{self.settings.coingecko_base_url.rstrip('/')}/coins/{self.coin_id(symbol)}/market_chart"
        return url, {"vs_currency": "usd", "days": self.settings.history_days}

    def parse(self, symbol: str, payload: Any) -> Quote:
        try:
            prices = payload["prices"]
            points = [
                (datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc), price)
                for ts_ms, price in prices
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise QuoteUnavailableError("Unexpected CoinGecko payload", symbol=symbol,
                                        source=self.name) from e
        return build_quote(symbol, self.name, points)


class EquityQuoteSource(QuoteSource):
    """Yahoo Finance v8 chart endpoint."""

    name = "yahoo"

    def build_request(self, symbol: str) -> Tuple[str, Dict[str, Any]]:
        url = f"{self.settings.yahoo_base_url.rstrip('/')}/v8/finance/chart/{symbol.upper()}"
        return url, {"range": self.settings.equity_range, "interval": self.settings.equity_interval}

    def parse(self, symbol: str, payload: Any) -> Quote:
        try:
            chart = payload["chart"]
            results: Optional[list] = chart.get("result")
            if not results:
                error = chart.get("error") or {}
                raise QuoteUnavailableError("Yahoo returned no chart result", symbol=symbol,
                                            source=self.name, details={"error": error})
            result = results[0]
            timestamps = result.get("timestamp") or []
            closes = result["indicators"]["quote"][0].get("close") or []
            points = [
                (datetime.fromtimestamp(ts, tz=timezone.utc), closes[index] if index < len(closes) else None)
                for index, ts in enumerate(timestamps)
            ]
        except QuoteUnavailableError:
            raise
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise QuoteUnavailableError("Unexpected Yahoo chart payload", symbol=symbol,
                                        source=self.name) from e
        return build_quote(symbol, self.name, points)
