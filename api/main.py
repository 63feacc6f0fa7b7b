import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from contextlib import asynccontextmanager
from typing import Optional

from core.logging import get_api_logger_safe, configure_logging
from core.utils.exceptions import ConfigurationError
from app.containers import AppContainer
from api.middleware.request_ids import RequestIdMiddleware
from api.middleware.error_handling import ErrorHandlingMiddleware, register_exception_handlers
from api.routers import market, portfolio, trading
from api.schemas.responses import HealthResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

logger = get_api_logger_safe("api.main")

BANNER = "SimuTrade API is running."


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    container = app.state.container
    settings = container.settings()
    logger.info("Starting SimuTrade API server",
                store="sql" if settings.uses_persistent_store else "memory")

    try:
        await container.account_store().initialize()
        logger.info("Account store initialized")
    except Exception as e:
        logger.error("Failed to initialize account store", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("Shutting down SimuTrade API server")
    try:
        await container.quote_provider().close()
        await container.account_store().close()
        logger.info("API resources released")
    except Exception as e:
        logger.error("Error during API shutdown", error=str(e))


def _build_uvicorn_log_config() -> dict:
    """Return a minimal log config that cooperates with our structlog handlers.

    No handler lists here: uvicorn applies this dictConfig at startup and
    would otherwise clear the handlers configure_logging attached. Only
    levels and propagation are set.
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "loggers": {
            "uvicorn": {"level": "INFO", "propagate": True},
            "uvicorn.error": {"level": "INFO", "propagate": True},
            "uvicorn.access": {"level": "INFO", "propagate": True},
            "fastapi": {"level": "INFO", "propagate": True},
        },
    }


def create_app(container: Optional[AppContainer] = None) -> FastAPI:
    """Creates and configures the FastAPI application"""
    container = container or AppContainer()
    settings = container.settings()

    app = FastAPI(
        title="SimuTrade API",
        version=settings.version,
        description="""
        # SimuTrade API

        Paper trading for a single simulated account.

        - **Market data**: latest price and 30-day history (CoinGecko for
          configured crypto tickers, Yahoo Finance otherwise)
        - **Portfolio**: cash, holdings marked to market, total equity
        - **Trading**: market and limit orders with slippage and fees
        - **History**: executed trades, most recent first
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    cors_origins = settings.api.cors_origins

    # Security check for production
    if settings.environment == "production" and "*" in cors_origins:
        raise ConfigurationError(
            "CORS wildcard (*) not allowed in production. "
            "Specify exact origins in API__CORS_ORIGINS environment variable.",
            config_field="api.cors_origins",
            config_value=cors_origins,
        )

    app.state.container = container

    # Configure logging for API context (idempotent)
    configure_logging(settings)

    # Use DI: shared Prometheus registry from container
    app.state.prom_registry = container.prometheus_registry()

    # Wire dependency injection
    container.wire(modules=[
        "api.dependencies",
        "api.routers.market",
        "api.routers.portfolio",
        "api.routers.trading",
    ])

    register_exception_handlers(app)

    # Add middleware (last added is outermost)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.api.cors_credentials,
        allow_methods=settings.api.cors_methods,
        allow_headers=settings.api.cors_headers,
        expose_headers=["X-Request-ID", "X-Correlation-ID"],
    )

    app.include_router(market.router, prefix="/api")
    app.include_router(portfolio.router, prefix="/api")
    app.include_router(trading.router, prefix="/api")

    # Health check endpoint
    @app.get("/api/health", tags=["Health"], response_model=HealthResponse)
    def health_check():
        return HealthResponse(status="ok")

    # Prometheus metrics endpoint
    @app.get("/metrics", tags=["Monitoring"])  # Exposed for Prometheus scraping
    def metrics():
        try:
            data = generate_latest(app.state.prom_registry)
            return Response(content=data, media_type=CONTENT_TYPE_LATEST)
        except Exception as e:
            logger.error("Failed to generate Prometheus metrics", error=str(e))
            # Minimal failure response to prevent scraper from crashing
            return Response(content=b"", media_type=CONTENT_TYPE_LATEST)

    # Root endpoint
    @app.get("/", tags=["Root"], response_class=PlainTextResponse)
    def root():
        return BANNER

    return app


def run(host: Optional[str] = None, port: Optional[int] = None):
    """Main function to run the API server"""
    app = create_app()
    settings = app.state.container.settings()

    uvicorn.run(
        app,
        host=host or settings.api.host,
        port=port or settings.api.port,
        log_level=settings.logging.level.lower(),
        access_log=True,
        log_config=_build_uvicorn_log_config(),
        reload=False
    )


if __name__ == "__main__":
    run()
