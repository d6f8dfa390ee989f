"""Webhook payload serialization and HMAC signing"""

import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Any, Dict

from transaction_service.domain.exceptions import PayloadSerializationError
from transaction_service.domain.models import EVENT_TRANSACTION_CREATED, LedgerTransaction

SIGNATURE_PREFIX = "sha256="


def build_payload(transaction: LedgerTransaction, timestamp: datetime | None = None) -> Dict[str, Any]:
    """Event envelope sent to every webhook registered for the transaction's accounts"""
    timestamp = timestamp or datetime.now(timezone.utc)
    return {
        "event_type": EVENT_TRANSACTION_CREATED,
        "transaction": transaction.to_dict(),
        "timestamp": timestamp.isoformat(),
    }


def serialize_payload(payload: Dict[str, Any]) -> bytes:
    """
    Canonical JSON bytes: sorted keys, compact separators, UTF-8.

    Raises:
        PayloadSerializationError: payload contains values JSON cannot encode
    """
    try:
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise PayloadSerializationError(str(e)) from e


def sign_payload(secret: str, body: bytes) -> str:
    """Header value ``sha256=<hex hmac>`` over the exact body bytes"""
    mac = hmac.new(secret.encode("utf-8"), body, hashlib.sha256)
    return f"{SIGNATURE_PREFIX}{mac.hexdigest()}"


def verify_signature(secret: str, body: bytes, header_value: str) -> bool:
    """
    Receiver helper for webhook consumers verifying ``X-Signature``.

    The service itself only signs; comparison is constant time.
    """
    return hmac.compare_digest(sign_payload(secret, body), header_value)
