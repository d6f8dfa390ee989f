"""Account endpoints - creation is public, reads require an API key"""

import logging
import uuid
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from transaction_service.api.dependencies import require_api_key
from transaction_service.api.v1.schemas import (
    AccountBalanceResponse,
    AccountResponse,
    CreateAccountRequest,
)
from transaction_service.domain.exceptions import AccountNotFoundError, StorageError
from transaction_service.infrastructure.database.repositories import AccountRepository
from transaction_service.infrastructure.database.session import get_db

public_router = APIRouter()
router = APIRouter(dependencies=[Depends(require_api_key)])


@public_router.post("/accounts", response_model=AccountResponse)
async def create_account(request_body: CreateAccountRequest, db: AsyncSession = Depends(get_db)):
    """Open an account with an optional starting balance"""
    try:
        account = await AccountRepository(db).create_account(
            business_name=request_body.business_name,
            initial_balance=request_body.initial_balance or Decimal("0"),
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logging.error(f"Failed to create account: {e}")
        raise StorageError("Failed to create account") from e

    return account


@router.get("/accounts", response_model=List[AccountResponse])
async def list_accounts(db: AsyncSession = Depends(get_db)):
    """List all accounts, newest first"""
    try:
        return await AccountRepository(db).list_accounts()
    except SQLAlchemyError as e:
        logging.error(f"Failed to fetch accounts: {e}")
        raise StorageError("Failed to fetch accounts") from e


@router.get("/accounts/{account_id}", response_model=AccountResponse)
async def get_account(account_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    try:
        account = await AccountRepository(db).get_account(account_id)
    except SQLAlchemyError as e:
        logging.error(f"Failed to fetch account: {e}")
        raise StorageError("Failed to fetch account") from e

    if account is None:
        raise AccountNotFoundError()
    return account


@router.get("/accounts/{account_id}/balance", response_model=AccountBalanceResponse)
async def get_account_balance(account_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    try:
        balance = await AccountRepository(db).get_balance(account_id)
    except SQLAlchemyError as e:
        logging.error(f"Failed to fetch account balance: {e}")
        raise StorageError("Failed to fetch balance") from e

    if balance is None:
        raise AccountNotFoundError()
    return AccountBalanceResponse(account_id=account_id, balance=balance)
