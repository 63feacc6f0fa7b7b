# Application DI container
from dependency_injector import containers, providers
from prometheus_client import CollectorRegistry

from core.config.settings import Settings
from core.monitoring.prometheus_metrics import PrometheusMetricsCollector
from services.account_store.factory import create_account_store
from services.market_data.provider import QuoteProvider
from services.portfolio.service import PortfolioService
from services.portfolio.valuator import PortfolioValuator
from services.trading_engine.execution_engine import ExecutionEngine
from services.trading_engine.service import TradingService


class AppContainer(containers.DeclarativeContainer):
    """Application dependency injection container"""

    # Configuration
    settings = providers.Singleton(Settings)

    # --- Observability: Prometheus ---
    # Shared registry used by API /metrics endpoint and collectors
    prometheus_registry = providers.Singleton(CollectorRegistry)
    prometheus_metrics = providers.Singleton(
        PrometheusMetricsCollector,
        registry=prometheus_registry,
    )

    # Account store backend is chosen once from settings.database.url
    account_store = providers.Singleton(
        create_account_store,
        settings=settings,
    )

    # Market data
    quote_provider = providers.Singleton(
        QuoteProvider,
        settings=settings,
        metrics=prometheus_metrics,
    )

    # Core engines (stateless)
    execution_engine = providers.Singleton(
        ExecutionEngine,
        settings=settings.provided.trading,
    )
    portfolio_valuator = providers.Singleton(
        PortfolioValuator,
        settings=settings.provided.trading,
    )

    # Application services
    trading_service = providers.Singleton(
        TradingService,
        engine=execution_engine,
        store=account_store,
        quote_provider=quote_provider,
        metrics=prometheus_metrics,
    )
    portfolio_service = providers.Singleton(
        PortfolioService,
        valuator=portfolio_valuator,
        store=account_store,
        quote_provider=quote_provider,
    )
