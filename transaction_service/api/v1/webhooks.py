"""Webhook registration endpoints"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from transaction_service.api.dependencies import require_api_key
from transaction_service.api.v1.schemas import CreateWebhookRequest, WebhookResponse
from transaction_service.domain.exceptions import AccountNotFoundError, StorageError
from transaction_service.domain.keys import generate_webhook_secret
from transaction_service.domain.models import Principal
from transaction_service.infrastructure.database.repositories import AccountRepository, WebhookRepository
from transaction_service.infrastructure.database.session import get_db

router = APIRouter()


@router.post("/webhooks", response_model=WebhookResponse)
async def create_webhook(
    request_body: CreateWebhookRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api_key),
):
    """
    Register a delivery URL for an account.

    The generated secret is the HMAC-SHA256 key for the X-Signature header
    on every delivery; receivers recompute it over the raw request body.
    """
    try:
        if not await AccountRepository(db).exists(request_body.account_id):
            raise AccountNotFoundError()
        webhook = await WebhookRepository(db).create_webhook(
            account_id=request_body.account_id,
            url=str(request_body.url),
            secret=generate_webhook_secret(),
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logging.error(f"Failed to create webhook: {e}", extra={"account_id": str(request_body.account_id)})
        raise StorageError("Failed to create webhook") from e

    return webhook


@router.get("/webhooks", response_model=List[WebhookResponse])
async def list_webhooks(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_api_key),
):
    """Webhooks of the caller's account; responses include secrets"""
    try:
        return await WebhookRepository(db).list_for_account(principal.account_id)
    except SQLAlchemyError as e:
        logging.error(f"Failed to fetch webhooks: {e}")
        raise StorageError("Failed to fetch webhooks") from e
