"""API key fingerprinting, hashing and generation

The fingerprint is a fast, non-secret digest used only as a lookup index.
The Argon2id hash is the verification secret; it is memory-hard and cannot
be used as an index, which is why both are stored.
"""

import hashlib
import secrets
import string
from functools import lru_cache

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from transaction_service.config import settings
from transaction_service.domain.exceptions import MalformedKeyHashError

FINGERPRINT_LEN = 16  # hex characters

_ALPHABET = string.ascii_letters + string.digits


@lru_cache(maxsize=1)
def _hasher() -> PasswordHasher:
    return PasswordHasher(
        time_cost=settings.argon2_time_cost,
        memory_cost=settings.argon2_memory_cost,
        parallelism=settings.argon2_parallelism,
        type=Type.ID,
    )


def compute_fingerprint(key: str) -> str:
    """First 16 hex characters of SHA-256 over the raw key"""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:FINGERPRINT_LEN]


def hash_key(key: str) -> str:
    """
    Hash a raw key with Argon2id and a random salt.

    Returns:
        PHC-format string carrying algorithm parameters and salt inline
    """
    return _hasher().hash(key)


def verify_key(key: str, stored_hash: str) -> bool:
    """
    Check a raw key against its stored Argon2 hash.

    Returns False on mismatch.

    Raises:
        MalformedKeyHashError: stored hash is not a parseable Argon2 string
    """
    try:
        return _hasher().verify(stored_hash, key)
    except VerifyMismatchError:
        return False
    except (InvalidHashError, VerificationError) as e:
        # Unknown prefix, or a known prefix whose body failed to decode
        raise MalformedKeyHashError() from e


def _random_token(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_api_key(length: int | None = None) -> str:
    """Random alphanumeric raw API key"""
    return _random_token(length or settings.api_key_length)


def generate_webhook_secret(length: int | None = None) -> str:
    """Random alphanumeric shared secret for webhook signatures"""
    return _random_token(length or settings.webhook_secret_length)
