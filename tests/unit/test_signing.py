"""Unit tests for webhook payload serialization and signing"""

import hashlib
import hmac
import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from transaction_service.domain.exceptions import PayloadSerializationError
from transaction_service.domain.models import LedgerTransaction
from transaction_service.domain.signing import build_payload, serialize_payload, sign_payload, verify_signature


@pytest.fixture
def transaction() -> LedgerTransaction:
    return LedgerTransaction(
        id=uuid.UUID("11111111-1111-4111-8111-111111111111"),
        from_account=None,
        to_account=uuid.UUID("22222222-2222-4222-8222-222222222222"),
        amount=Decimal("12.50"),
        txn_type="credit",
        status="completed",
        created_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
    )


def test_build_payload_envelope(transaction):
    ts = datetime(2024, 1, 2, 3, 4, 6, tzinfo=timezone.utc)
    payload = build_payload(transaction, timestamp=ts)

    assert payload["event_type"] == "transaction.created"
    assert payload["timestamp"] == "2024-01-02T03:04:06+00:00"
    assert payload["transaction"] == {
        "id": "11111111-1111-4111-8111-111111111111",
        "from_account": None,
        "to_account": "22222222-2222-4222-8222-222222222222",
        "amount": "12.50",
        "txn_type": "credit",
        "status": "completed",
        "created_at": "2024-01-02T03:04:05+00:00",
    }


def test_serialization_is_canonical():
    body = serialize_payload({"b": 1, "a": {"d": 2, "c": 3}})
    assert body == b'{"a":{"c":3,"d":2},"b":1}'


def test_serialization_failure_raises():
    with pytest.raises(PayloadSerializationError):
        serialize_payload({"value": object()})


def test_signature_is_hmac_sha256_over_body(transaction):
    body = serialize_payload(build_payload(transaction))
    expected = hmac.new(b"shh", body, hashlib.sha256).hexdigest()

    assert sign_payload("shh", body) == f"sha256={expected}"
    assert verify_signature("shh", body, f"sha256={expected}")


def test_signature_detects_tampering(transaction):
    body = serialize_payload(build_payload(transaction))
    header = sign_payload("shh", body)

    tampered = json.dumps(json.loads(body) | {"event_type": "other"}).encode()
    assert not verify_signature("shh", tampered, header)
    assert not verify_signature("other-secret", body, header)
