import asyncio
import time
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Union

import httpx

from core.config.settings import Settings
from core.logging import get_market_data_logger_safe
from core.monitoring.prometheus_metrics import PrometheusMetricsCollector
from core.trading.models import PricePoint, Quote, normalize_symbol
from core.utils.exceptions import QuoteUnavailableError
from .sources import AssetClass, CryptoQuoteSource, EquityQuoteSource, QuoteSource, classify_symbol

QuoteResult = Union[Quote, QuoteUnavailableError]


class QuoteProvider:
    """Fetches quotes from the crypto or equity source chosen by symbol.

    Every fetch is bounded by `market_data.timeout_seconds`; a timeout or
    any upstream problem raises QuoteUnavailableError. No price is ever
    defaulted to zero.
    """

    def __init__(
        self,
        settings: Settings,
        metrics: Optional[PrometheusMetricsCollector] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings
        self.market_settings = settings.market_data
        self.metrics = metrics
        self.logger = get_market_data_logger_safe("quote_provider")
        self._client = client
        self._owns_client = client is None
        self._sources: Dict[AssetClass, QuoteSource] = {
            AssetClass.CRYPTO: CryptoQuoteSource(self.market_settings),
            AssetClass.EQUITY: EquityQuoteSource(self.market_settings),
        }

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.market_settings.timeout_seconds),
                headers={"User-Agent": self.market_settings.user_agent},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def classify(self, symbol: str) -> AssetClass:
        return classify_symbol(symbol, self.market_settings.crypto_map)

    def source_for(self, symbol: str) -> QuoteSource:
        return self._sources[self.classify(symbol)]

    async def quote(self, symbol: str) -> Quote:
        symbol = normalize_symbol(symbol)
        if not symbol:
            raise QuoteUnavailableError("Symbol is required", symbol="")
        source = self.source_for(symbol)
        started = time.perf_counter()
        try:
            quote = await asyncio.wait_for(
                source.fetch(self._get_client(), symbol),
                timeout=self.market_settings.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            self._record(source.name, "timeout", started)
            self.logger.warning("Quote fetch timed out", symbol=symbol, source=source.name,
                                timeout_seconds=self.market_settings.timeout_seconds)
            raise QuoteUnavailableError("Market data request timed out", symbol=symbol,
                                        source=source.name) from e
        except QuoteUnavailableError as e:
            self._record(source.name, "error", started)
            self.logger.warning("Quote unavailable", symbol=symbol, source=source.name,
                                reason=e.message, **e.details)
            raise

        self._record(source.name, "success", started)
        self.logger.debug("Quote fetched", symbol=symbol, source=source.name,
                          latest_price=str(quote.latest_price), points=len(quote.history))
        return quote

    async def quotes(self, symbols: Iterable[str]) -> Dict[str, QuoteResult]:
        """Fetch distinct symbols concurrently; failures are returned per symbol."""
        unique: List[str] = list(dict.fromkeys(s for s in (normalize_symbol(x) for x in symbols) if s))
        results = await asyncio.gather(*(self.quote(symbol) for symbol in unique), return_exceptions=True)
        resolved: Dict[str, QuoteResult] = {}
        for symbol, result in zip(unique, results):
            if isinstance(result, QuoteUnavailableError):
                resolved[symbol] = result
            elif isinstance(result, BaseException):
                raise result
            else:
                resolved[symbol] = result
        return resolved

    def _record(self, source: str, outcome: str, started: float) -> None:
        if self.metrics:
            self.metrics.record_quote_fetch(source, outcome, time.perf_counter() - started)


class StaticQuoteProvider:
    """Fixed prices, for tests and offline runs. Unknown symbols are unavailable."""

    def __init__(self, prices: Mapping[str, Union[Decimal, str, int, float]],
                 history: Optional[Mapping[str, List[PricePoint]]] = None):
        self.prices = {symbol.upper(): Decimal(str(price)) for symbol, price in prices.items()}
        self.history = {symbol.upper(): points for symbol, points in (history or {}).items()}
        self.requested: List[str] = []

    async def close(self) -> None:
        pass

    async def quote(self, symbol: str) -> Quote:
        symbol = normalize_symbol(symbol) or ""
        self.requested.append(symbol)
        price = self.prices.get(symbol)
        if price is None or price <= 0:
            raise QuoteUnavailableError("No static price configured", symbol=symbol, source="static")
        history = self.history.get(symbol) or [PricePoint(date="Today", price=price)]
        return Quote(symbol=symbol, latest_price=price, history=history, source="static")

    async def quotes(self, symbols: Iterable[str]) -> Dict[str, QuoteResult]:
        resolved: Dict[str, QuoteResult] = {}
        for symbol in dict.fromkeys(normalize_symbol(s) for s in symbols):
            if not symbol:
                continue
            try:
                resolved[symbol] = await self.quote(symbol)
            except QuoteUnavailableError as e:
                resolved[symbol] = e
        return resolved
