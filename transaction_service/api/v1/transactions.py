"""Transaction endpoints - create, list, fetch and delivery audit"""

import time
import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from transaction_service.api.dependencies import get_dispatcher, get_request_id, require_api_key
from transaction_service.api.v1.schemas import (
    CreateTransactionRequest,
    TransactionResponse,
    WebhookEventResponse,
)
from transaction_service.domain.exceptions import StorageError, TransactionNotFoundError
from transaction_service.domain.models import TransactionRequest
from transaction_service.infrastructure.clients.webhooks import WebhookDispatcher
from transaction_service.infrastructure.database.repositories import (
    TransactionRepository,
    WebhookEventRepository,
)
from transaction_service.infrastructure.database.session import get_db
from transaction_service.infrastructure.observability.logging import log_transaction
from transaction_service.services.ledger import TransactionEngine

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.post("/transactions", response_model=TransactionResponse)
async def create_transaction(
    request_body: CreateTransactionRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
):
    """
    Move money and notify webhooks.

    Flow:
    1. Validate (from, to) against the transaction type
    2. Apply balance changes and insert the record atomically
    3. Hand the committed transaction to the webhook dispatcher
    4. Return the record; delivery continues in the background
    """
    start_time = time.time()
    request_id = get_request_id(request)

    transaction = await TransactionEngine(db).create_transaction(
        TransactionRequest(
            txn_type=request_body.txn_type,
            amount=request_body.amount,
            from_account_id=request_body.from_account_id,
            to_account_id=request_body.to_account_id,
        )
    )

    # Fire-and-forget; delivery outcome never affects this response
    dispatcher.dispatch(transaction)

    duration_ms = (time.time() - start_time) * 1000
    log_transaction(request_id, str(transaction.id), transaction.txn_type, str(transaction.amount), duration_ms)

    return TransactionResponse.model_validate(transaction)


@router.get("/transactions", response_model=List[TransactionResponse])
async def list_transactions(
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    db: AsyncSession = Depends(get_db),
):
    """List transactions, newest first"""
    try:
        return await TransactionRepository(db).list_transactions(limit=limit)
    except SQLAlchemyError as e:
        logging.error(f"Failed to fetch transactions: {e}")
        raise StorageError("Failed to fetch transactions") from e


@router.get("/transactions/{txn_id}", response_model=TransactionResponse)
async def get_transaction(txn_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    try:
        txn = await TransactionRepository(db).get_transaction(txn_id)
    except SQLAlchemyError as e:
        logging.error(f"Failed to fetch transaction: {e}")
        raise StorageError("Failed to fetch transaction") from e

    if txn is None:
        raise TransactionNotFoundError()
    return txn


@router.get("/transactions/{txn_id}/webhook-events", response_model=List[WebhookEventResponse])
async def list_webhook_events(txn_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """Delivery audit trail: one event per webhook notified about this transaction"""
    try:
        if await TransactionRepository(db).get_transaction(txn_id) is None:
            raise TransactionNotFoundError()
        return await WebhookEventRepository(db).list_for_transaction(txn_id)
    except SQLAlchemyError as e:
        logging.error(f"Failed to fetch webhook events: {e}")
        raise StorageError("Failed to fetch webhook events") from e
