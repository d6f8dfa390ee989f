"""POST /v1/api-keys - issue an API key for an account"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from transaction_service.api.v1.schemas import ApiKeyCreatedResponse, CreateApiKeyRequest
from transaction_service.infrastructure.database.session import get_db
from transaction_service.services.auth import issue_api_key

router = APIRouter()


@router.post("/api-keys", response_model=ApiKeyCreatedResponse)
async def create_api_key(request_body: CreateApiKeyRequest, db: AsyncSession = Depends(get_db)):
    """
    Create an API key.

    The raw key is in this response only. Only its fingerprint and Argon2
    hash are stored, so a lost key has to be replaced, not recovered.
    """
    issued = await issue_api_key(db, request_body.account_id)
    return ApiKeyCreatedResponse.model_validate(issued)
