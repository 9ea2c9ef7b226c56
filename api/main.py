import uvicorn
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.containers import AppContainer
from api.error_handlers import http_exception_handler, ledger_exception_handler
from api.middleware.error_handling import ErrorHandlingMiddleware
from api.middleware.request_ids import RequestIdMiddleware
from api.routers import account, favorites, stocks, trades
from api.schemas.responses import HealthResponse
from core.config.settings import Environment
from core.logging import configure_logging, get_api_logger_safe, get_monitoring_logger_safe
from core.utils.exceptions import LedgerException

logger = get_api_logger_safe("api.main")
monitoring_logger = get_monitoring_logger_safe("api.metrics")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    container = app.state.container
    settings = container.settings()
    logger.info("Starting Marketplace Ledger API server", environment=settings.environment.value)

    try:
        await container.db_manager().init()
        if settings.market_feed.enabled:
            await container.quote_feed().start()
        logger.info("API services initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize API services", error=str(e), exc_info=True)
        raise

    yield

    # Shutdown
    logger.info("Shutting down Marketplace Ledger API server")
    try:
        if settings.market_feed.enabled:
            await container.quote_feed().stop()
        await container.db_manager().shutdown()
        logger.info("API services stopped successfully")
    except Exception as e:
        logger.error("Error during API shutdown", error=str(e), exc_info=True)


def _build_uvicorn_log_config() -> dict:
    """Minimal log config that leaves our structlog handlers in place.

    Uvicorn applies this dictConfig at startup; explicit handler lists here
    would replace the ones enhanced logging attached to the root logger.
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "loggers": {
            "uvicorn": {"level": "INFO"},
            "uvicorn.error": {"level": "INFO"},
            "uvicorn.access": {"level": "INFO"},
            "fastapi": {"level": "INFO"},
        },
    }


def create_app(container: Optional[AppContainer] = None) -> FastAPI:
    """Creates and configures the FastAPI application"""
    container = container or AppContainer()
    settings = container.settings()

    # Configure logging for API context (idempotent)
    configure_logging(settings)

    app = FastAPI(
        title=f"{settings.app_name} API",
        version=settings.version,
        description="""
        # Marketplace Ledger API

        Simulated brokerage: cash balances, share positions and an append-only
        trade log, priced from a live quote feed.

        ## Authentication
        The caller's user id is read from the `X-User-Id` header (configurable),
        set by the authenticating proxy in front of this service.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.container = container

    # Use DI: shared Prometheus registry from container
    app.state.prom_registry = container.prometheus_registry()

    # Wire dependency injection
    container.wire(modules=["api.dependencies"])

    # Add middleware (last added is outermost)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    cors_origins = settings.api.cors_origins
    if settings.environment == Environment.PRODUCTION and "*" in cors_origins:
        raise ValueError(
            "CORS wildcard (*) not allowed in production. "
            "Specify exact origins in API__CORS_ORIGINS environment variable."
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.api.cors_credentials,
        allow_methods=settings.api.cors_methods,
        allow_headers=settings.api.cors_headers,
    )

    app.add_exception_handler(LedgerException, ledger_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)

    app.include_router(trades.router, prefix="/api/v1")
    app.include_router(account.router, prefix="/api/v1")
    app.include_router(stocks.router, prefix="/api/v1")
    app.include_router(favorites.router, prefix="/api/v1")

    # Health check endpoint
    @app.get("/health", tags=["Health"], response_model=HealthResponse)
    async def health_check():
        database_ok = await container.db_manager().verify_connection()
        quote_book = container.quote_book()
        return HealthResponse(
            status="healthy" if database_ok else "unhealthy",
            service="marketplace-ledger",
            version=settings.version,
            timestamp=datetime.now(timezone.utc),
            database=database_ok,
            quotes_available=quote_book.available_count(),
            symbols=len(quote_book.symbols),
        )

    # Prometheus metrics endpoint
    @app.get("/metrics", tags=["Monitoring"])
    def metrics():
        try:
            data = generate_latest(app.state.prom_registry)
            return Response(content=data, media_type=CONTENT_TYPE_LATEST)
        except Exception as e:
            monitoring_logger.error("Failed to generate Prometheus metrics", error=str(e))
            # Minimal failure response to prevent scraper from crashing
            return Response(content=b"", media_type=CONTENT_TYPE_LATEST)

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
