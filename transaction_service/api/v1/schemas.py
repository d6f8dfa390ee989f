"""Pydantic schemas for API request/response validation"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import UUID4, BaseModel, ConfigDict, Field, HttpUrl


class CreateAccountRequest(BaseModel):
    """Request body for POST /v1/accounts"""

    business_name: str = Field(..., min_length=1, description="Display name of the business")
    initial_balance: Optional[Decimal] = Field(
        None, ge=0, max_digits=18, decimal_places=2, description="Opening balance, defaults to 0"
    )


class AccountResponse(BaseModel):
    """Account record"""

    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    business_name: str
    balance: Decimal
    created_at: datetime
    updated_at: datetime


class AccountBalanceResponse(BaseModel):
    """Response for GET /v1/accounts/{id}/balance"""

    account_id: UUID4
    balance: Decimal


class CreateTransactionRequest(BaseModel):
    """Request body for POST /v1/transactions; type rules are checked by the engine"""

    txn_type: str = Field(..., description="credit, debit or transfer")
    from_account_id: Optional[uuid.UUID] = None
    to_account_id: Optional[uuid.UUID] = None
    amount: Decimal = Field(..., max_digits=18, decimal_places=2, description="Positive amount")


class TransactionResponse(BaseModel):
    """Transaction record"""

    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    from_account: Optional[UUID4] = None
    to_account: Optional[UUID4] = None
    amount: Decimal
    txn_type: str
    status: str
    created_at: datetime


class CreateApiKeyRequest(BaseModel):
    """Request body for POST /v1/api-keys"""

    account_id: uuid.UUID


class ApiKeyCreatedResponse(BaseModel):
    """Returned exactly once; ``key`` is not stored and cannot be fetched again"""

    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    account_id: UUID4
    key: str
    created_at: datetime
    last_used: Optional[datetime] = None


class CreateWebhookRequest(BaseModel):
    """Request body for POST /v1/webhooks"""

    account_id: uuid.UUID
    url: HttpUrl


class WebhookResponse(BaseModel):
    """Webhook registration including the shared signing secret"""

    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    account_id: UUID4
    url: str
    secret: str
    created_at: datetime


class WebhookEventResponse(BaseModel):
    """Delivery audit record for one webhook and transaction"""

    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    webhook_id: UUID4
    txn_id: UUID4
    delivered: bool
    retry_count: int
    last_attempt: Optional[datetime] = None
    created_at: datetime


class ErrorResponse(BaseModel):
    """Error body; ``error`` duplicates ``code`` for older clients"""

    code: str
    message: str
    error: str
