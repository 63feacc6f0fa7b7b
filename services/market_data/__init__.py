from .provider import QuoteProvider, QuoteResult, StaticQuoteProvider
from .sources import (
    AssetClass,
    CryptoQuoteSource,
    EquityQuoteSource,
    QuoteSource,
    build_quote,
    classify_symbol,
    format_history_date,
)

__all__ = [
    "AssetClass",
    "CryptoQuoteSource",
    "EquityQuoteSource",
    "QuoteProvider",
    "QuoteResult",
    "QuoteSource",
    "StaticQuoteProvider",
    "build_quote",
    "classify_symbol",
    "format_history_date",
]
