"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from transaction_service.config import settings
from transaction_service.domain.models import Principal
from transaction_service.infrastructure.clients.webhooks import WebhookDispatcher
from transaction_service.infrastructure.database.session import get_db
from transaction_service.infrastructure.rate_limit import RateLimiter
from transaction_service.services.auth import AuthenticationGate


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_rate_limiter(request: Request) -> RateLimiter:
    """Limiter created with the app; shared by every request"""
    return request.app.state.rate_limiter


def get_dispatcher(request: Request) -> WebhookDispatcher:
    """Provide the app-wide webhook dispatcher"""
    return request.app.state.webhook_dispatcher


async def require_api_key(
    request: Request,
    db: AsyncSession = Depends(get_db),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> Principal:
    """Authenticate the caller from the API key header"""
    gate = AuthenticationGate(db, rate_limiter)
    principal = await gate.authenticate(request.headers.get(settings.api_key_header))
    request.state.principal = principal
    return principal
