"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

TXN_CREDIT = "credit"
TXN_DEBIT = "debit"
TXN_TRANSFER = "transfer"
TRANSACTION_TYPES = (TXN_CREDIT, TXN_DEBIT, TXN_TRANSFER)

STATUS_COMPLETED = "completed"

EVENT_TRANSACTION_CREATED = "transaction.created"


@dataclass
class TransactionRequest:
    """Inbound request to move money"""

    txn_type: str
    amount: Decimal
    from_account_id: Optional[uuid.UUID] = None
    to_account_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class LedgerTransaction:
    """Detached snapshot of a committed transaction, safe to hand to background tasks"""

    id: uuid.UUID
    from_account: Optional[uuid.UUID]
    to_account: Optional[uuid.UUID]
    amount: Decimal
    txn_type: str
    status: str
    created_at: datetime

    @property
    def involved_account_ids(self) -> list[uuid.UUID]:
        """Distinct account ids touched by this transaction, source first"""
        ids: list[uuid.UUID] = []
        for account_id in (self.from_account, self.to_account):
            if account_id is not None and account_id not in ids:
                ids.append(account_id)
        return ids

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "from_account": str(self.from_account) if self.from_account else None,
            "to_account": str(self.to_account) if self.to_account else None,
            "amount": str(self.amount),
            "txn_type": self.txn_type,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class WebhookTarget:
    """Registered endpoint a delivery task posts to"""

    id: uuid.UUID
    account_id: uuid.UUID
    url: str
    secret: str


@dataclass(frozen=True)
class Principal:
    """Caller identity established by the authentication gate"""

    account_id: uuid.UUID
    key_id: uuid.UUID
    fingerprint: str


@dataclass
class IssuedApiKey:
    """API key as returned at creation; ``key`` is never retrievable again"""

    id: uuid.UUID
    account_id: uuid.UUID
    key: str
    created_at: datetime
    last_used: Optional[datetime] = None
