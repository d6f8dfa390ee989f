"""FastAPI application factory"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.responses import Response

from transaction_service.api.errors import register_exception_handlers
from transaction_service.api.middleware import RequestIDMiddleware, MetricsMiddleware
from transaction_service.api.v1 import accounts, api_keys, transactions, webhooks
from transaction_service.infrastructure.clients.webhooks import WebhookDispatcher
from transaction_service.infrastructure.database.session import SessionLocal, engine, init_db
from transaction_service.infrastructure.observability.logging import setup_logging
from transaction_service.infrastructure.rate_limit import RateLimiter
from transaction_service.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        await init_db(engine)
    yield
    # In-flight deliveries are abandoned here; their events stay undelivered
    await app.state.webhook_dispatcher.aclose()


def create_app(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    rate_limiter: RateLimiter | None = None,
    webhook_dispatcher: WebhookDispatcher | None = None,
) -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Transaction Service",
        description="Accounts, atomic ledger transactions and signed webhook notifications",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Shared state lives for the app's lifetime
    app.state.rate_limiter = rate_limiter or RateLimiter(
        settings.rate_limit_per_min, window_seconds=settings.rate_limit_window_seconds
    )
    app.state.webhook_dispatcher = webhook_dispatcher or WebhookDispatcher(session_factory or SessionLocal)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(accounts.public_router, prefix="/v1", tags=["accounts"])
    app.include_router(api_keys.router, prefix="/v1", tags=["api-keys"])
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(webhooks.router, prefix="/v1", tags=["webhooks"])

    return app


app = create_app()
