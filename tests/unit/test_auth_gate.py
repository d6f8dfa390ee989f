"""Unit tests for API key issuance and the authentication gate"""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from transaction_service.domain.exceptions import (
    AccountNotFoundError,
    InvalidApiKeyError,
    MalformedKeyHashError,
    MissingApiKeyError,
    RateLimitedError,
)
from transaction_service.domain.keys import compute_fingerprint, hash_key
from transaction_service.infrastructure.database.models import ApiKey
from transaction_service.infrastructure.database.repositories import AccountRepository, ApiKeyRepository
from transaction_service.infrastructure.rate_limit import RateLimiter
from transaction_service.services.auth import AuthenticationGate, issue_api_key


@pytest.fixture
async def account_id(session_factory) -> uuid.UUID:
    async with session_factory() as db:
        account = await AccountRepository(db).create_account("Key Holder", Decimal("0"))
        await db.commit()
        return account.id


async def _authenticate(session_factory, raw_key, limiter=None):
    async with session_factory() as db:
        return await AuthenticationGate(db, limiter or RateLimiter(100)).authenticate(raw_key)


async def _stored_key(session_factory, key_id) -> ApiKey:
    async with session_factory() as db:
        return await db.get(ApiKey, key_id)


async def test_issued_key_is_stored_only_as_fingerprint_and_hash(session_factory, account_id):
    async with session_factory() as db:
        issued = await issue_api_key(db, account_id)

    stored = await _stored_key(session_factory, issued.id)
    assert stored.key_fingerprint == compute_fingerprint(issued.key)
    assert stored.key_hash.startswith("$argon2id$")
    assert issued.key not in stored.key_hash
    assert stored.last_used is None


async def test_issue_key_for_unknown_account(session_factory):
    async with session_factory() as db:
        with pytest.raises(AccountNotFoundError):
            await issue_api_key(db, uuid.uuid4())


async def test_valid_key_resolves_principal_and_touches_last_used(session_factory, account_id):
    async with session_factory() as db:
        issued = await issue_api_key(db, account_id)

    principal = await _authenticate(session_factory, issued.key)

    assert principal.account_id == account_id
    assert principal.key_id == issued.id
    assert principal.fingerprint == compute_fingerprint(issued.key)
    assert (await _stored_key(session_factory, issued.id)).last_used is not None


@pytest.mark.parametrize("raw_key", [None, ""])
async def test_missing_key(session_factory, raw_key):
    with pytest.raises(MissingApiKeyError) as exc_info:
        await _authenticate(session_factory, raw_key)
    assert exc_info.value.code == "missing_api_key"


async def test_unknown_fingerprint_is_invalid(session_factory, account_id):
    with pytest.raises(InvalidApiKeyError):
        await _authenticate(session_factory, "no-such-key")


async def test_hash_mismatch_is_the_same_invalid_error(session_factory, account_id):
    """A fingerprint hit with a non-matching hash looks exactly like an unknown key"""
    raw_key = "presented-key"
    async with session_factory() as db:
        await ApiKeyRepository(db).create_api_key(account_id, compute_fingerprint(raw_key), hash_key("other-key"))
        await db.commit()

    with pytest.raises(InvalidApiKeyError) as mismatch:
        await _authenticate(session_factory, raw_key)
    with pytest.raises(InvalidApiKeyError) as unknown:
        await _authenticate(session_factory, "never-issued")

    assert (mismatch.value.code, mismatch.value.message) == (unknown.value.code, unknown.value.message)


async def test_malformed_stored_hash_is_integrity_error(session_factory, account_id):
    raw_key = "key-with-corrupt-hash"
    async with session_factory() as db:
        await ApiKeyRepository(db).create_api_key(account_id, compute_fingerprint(raw_key), "corrupted")
        await db.commit()

    with pytest.raises(MalformedKeyHashError):
        await _authenticate(session_factory, raw_key)


async def test_rate_limit_applies_after_verification(session_factory, account_id):
    async with session_factory() as db:
        issued = await issue_api_key(db, account_id)
    limiter = RateLimiter(2)

    await _authenticate(session_factory, issued.key, limiter)
    await _authenticate(session_factory, issued.key, limiter)
    with pytest.raises(RateLimitedError) as exc_info:
        await _authenticate(session_factory, issued.key, limiter)

    assert exc_info.value.code == "rate_limited"


async def test_invalid_keys_do_not_consume_rate_limit(session_factory, account_id):
    limiter = RateLimiter(1)

    for _ in range(3):
        with pytest.raises(InvalidApiKeyError):
            await _authenticate(session_factory, "bogus", limiter)

    assert limiter.allow(compute_fingerprint("bogus")) is True


async def test_last_used_failure_does_not_fail_request(session_factory, account_id):
    async with session_factory() as db:
        issued = await issue_api_key(db, account_id)
    failure = OperationalError("UPDATE api_keys", {}, Exception("database is locked"))

    with patch.object(ApiKeyRepository, "touch_last_used", AsyncMock(side_effect=failure)):
        principal = await _authenticate(session_factory, issued.key)

    assert principal.key_id == issued.id
