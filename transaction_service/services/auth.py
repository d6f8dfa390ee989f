"""API key issuance and the authentication gate for protected routes"""

import asyncio
import logging
import uuid
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from transaction_service.domain.exceptions import (
    AccountNotFoundError,
    AuthenticationError,
    InvalidApiKeyError,
    MalformedKeyHashError,
    MissingApiKeyError,
    RateLimitedError,
    StorageError,
)
from transaction_service.domain.keys import compute_fingerprint, generate_api_key, hash_key, verify_key
from transaction_service.domain.models import IssuedApiKey, Principal
from transaction_service.infrastructure.database.repositories import AccountRepository, ApiKeyRepository
from transaction_service.infrastructure.observability.metrics import auth_rejection_counter
from transaction_service.infrastructure.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


async def issue_api_key(db: AsyncSession, account_id: uuid.UUID) -> IssuedApiKey:
    """
    Generate a raw key, persist only its fingerprint and Argon2 hash.

    The returned ``key`` is the only copy; it cannot be recovered later.
    """
    try:
        if not await AccountRepository(db).exists(account_id):
            raise AccountNotFoundError()
    except SQLAlchemyError as e:
        logger.error(f"Failed to look up account for API key: {e}", extra={"account_id": str(account_id)})
        raise StorageError("Failed to create API key") from e

    raw_key = generate_api_key()
    fingerprint = compute_fingerprint(raw_key)
    # Argon2 hashing runs in a worker thread
    key_hash = await asyncio.to_thread(hash_key, raw_key)

    try:
        record = await ApiKeyRepository(db).create_api_key(account_id, fingerprint, key_hash)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to insert API key: {e}", extra={"account_id": str(account_id)})
        raise StorageError("Failed to create API key") from e

    return IssuedApiKey(
        id=record.id,
        account_id=record.account_id,
        key=raw_key,
        created_at=record.created_at,
        last_used=record.last_used,
    )


class AuthenticationGate:
    """
    Resolve a presented API key to a principal.

    Order of checks:
    1. key present
    2. fingerprint lookup
    3. Argon2 verification
    4. best-effort last_used update
    5. per-fingerprint rate limit

    Unknown fingerprint and hash mismatch raise the same InvalidApiKeyError
    so callers cannot enumerate keys.
    """

    def __init__(self, db: AsyncSession, rate_limiter: RateLimiter):
        self.db = db
        self.keys = ApiKeyRepository(db)
        self.rate_limiter = rate_limiter

    async def authenticate(self, raw_key: Optional[str]) -> Principal:
        try:
            return await self._authenticate(raw_key)
        except (AuthenticationError, MalformedKeyHashError) as e:
            auth_rejection_counter.labels(code=e.code).inc()
            raise

    async def _authenticate(self, raw_key: Optional[str]) -> Principal:
        if not raw_key:
            raise MissingApiKeyError()

        fingerprint = compute_fingerprint(raw_key)

        try:
            record = await self.keys.get_by_fingerprint(fingerprint)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to look up API key: {e}", extra={"fingerprint": fingerprint})
            raise StorageError("Failed to validate API key") from e

        if record is None:
            raise InvalidApiKeyError()

        key_id, account_id, key_hash = record.id, record.account_id, record.key_hash

        try:
            verified = await asyncio.to_thread(verify_key, raw_key, key_hash)
        except MalformedKeyHashError:
            logger.error("Stored API key hash is malformed", extra={"key_id": str(key_id)})
            raise

        if not verified:
            raise InvalidApiKeyError()

        await self._touch_last_used(key_id)

        if not self.rate_limiter.allow(fingerprint):
            raise RateLimitedError()

        return Principal(account_id=account_id, key_id=key_id, fingerprint=fingerprint)

    async def _touch_last_used(self, key_id: uuid.UUID) -> None:
        """Failure here is logged and ignored; it must not fail the request"""
        try:
            await self.keys.touch_last_used(key_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning(f"Failed to update API key last_used: {e}", extra={"key_id": str(key_id)})
