"""Data access layer for ledger entities

Repositories never commit; the caller owns the unit of work.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from transaction_service.domain.ledger import CENTS
from transaction_service.domain.models import STATUS_COMPLETED
from transaction_service.infrastructure.database.models import (
    Account,
    ApiKey,
    Transaction,
    Webhook,
    WebhookEvent,
    utcnow,
)


class AccountRepository:
    """Repository for accounts and their balances"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_account(self, business_name: str, initial_balance: Decimal) -> Account:
        account = Account(business_name=business_name, balance=initial_balance.quantize(CENTS))
        self.db.add(account)
        await self.db.flush()
        return account

    async def get_account(self, account_id: uuid.UUID) -> Optional[Account]:
        return await self.db.get(Account, account_id)

    async def exists(self, account_id: uuid.UUID) -> bool:
        result = await self.db.execute(select(Account.id).where(Account.id == account_id))
        return result.scalar_one_or_none() is not None

    async def list_accounts(self) -> Sequence[Account]:
        result = await self.db.execute(select(Account).order_by(Account.created_at.desc()))
        return result.scalars().all()

    async def credit(self, account_id: uuid.UUID, amount: Decimal) -> bool:
        """Unconditional increment; False when the account does not exist"""
        result = await self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(balance=Account.balance + amount, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def debit_if_sufficient(self, account_id: uuid.UUID, amount: Decimal) -> bool:
        """
        Decrement only while balance >= amount, as one conditional UPDATE.

        The predicate and the write happen in the same statement, so two
        concurrent debits cannot both pass a stale balance check.

        Returns:
            True if a row was updated
        """
        result = await self.db.execute(
            update(Account)
            .where(Account.id == account_id, Account.balance >= amount)
            .values(balance=Account.balance - amount, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_balance(self, account_id: uuid.UUID) -> Optional[Decimal]:
        result = await self.db.execute(select(Account.balance).where(Account.id == account_id))
        return result.scalar_one_or_none()


class TransactionRepository:
    """Repository for immutable transaction records"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_transaction(
        self,
        txn_type: str,
        amount: Decimal,
        from_account: Optional[uuid.UUID],
        to_account: Optional[uuid.UUID],
    ) -> Transaction:
        txn = Transaction(
            from_account=from_account,
            to_account=to_account,
            amount=amount,
            txn_type=txn_type,
            status=STATUS_COMPLETED,
        )
        self.db.add(txn)
        await self.db.flush()
        return txn

    async def get_transaction(self, txn_id: uuid.UUID) -> Optional[Transaction]:
        return await self.db.get(Transaction, txn_id)

    async def list_transactions(self, limit: int = 100) -> Sequence[Transaction]:
        result = await self.db.execute(
            select(Transaction).order_by(Transaction.created_at.desc()).limit(limit)
        )
        return result.scalars().all()


class ApiKeyRepository:
    """Repository for hashed API keys"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_api_key(self, account_id: uuid.UUID, fingerprint: str, key_hash: str) -> ApiKey:
        api_key = ApiKey(account_id=account_id, key_fingerprint=fingerprint, key_hash=key_hash)
        self.db.add(api_key)
        await self.db.flush()
        return api_key

    async def get_by_fingerprint(self, fingerprint: str) -> Optional[ApiKey]:
        result = await self.db.execute(
            select(ApiKey).where(ApiKey.key_fingerprint == fingerprint).limit(1)
        )
        return result.scalars().first()

    async def touch_last_used(self, key_id: uuid.UUID, used_at: datetime | None = None) -> None:
        await self.db.execute(
            update(ApiKey)
            .where(ApiKey.id == key_id)
            .values(last_used=used_at or utcnow())
            .execution_options(synchronize_session=False)
        )


class WebhookRepository:
    """Repository for webhook registrations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_webhook(self, account_id: uuid.UUID, url: str, secret: str) -> Webhook:
        webhook = Webhook(account_id=account_id, url=url, secret=secret)
        self.db.add(webhook)
        await self.db.flush()
        return webhook

    async def list_for_account(self, account_id: uuid.UUID) -> Sequence[Webhook]:
        result = await self.db.execute(
            select(Webhook).where(Webhook.account_id == account_id).order_by(Webhook.created_at.desc())
        )
        return result.scalars().all()


class WebhookEventRepository:
    """Repository for the webhook delivery audit trail"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_event(self, webhook_id: uuid.UUID, txn_id: uuid.UUID) -> WebhookEvent:
        event = WebhookEvent(webhook_id=webhook_id, txn_id=txn_id, delivered=False, retry_count=0)
        self.db.add(event)
        await self.db.flush()
        return event

    async def record_attempt(
        self,
        event_id: uuid.UUID,
        delivered: bool,
        retry_count: int,
        attempted_at: datetime | None = None,
    ) -> None:
        await self.db.execute(
            update(WebhookEvent)
            .where(WebhookEvent.id == event_id)
            .values(delivered=delivered, retry_count=retry_count, last_attempt=attempted_at or utcnow())
            .execution_options(synchronize_session=False)
        )

    async def list_for_transaction(self, txn_id: uuid.UUID) -> List[WebhookEvent]:
        result = await self.db.execute(
            select(WebhookEvent).where(WebhookEvent.txn_id == txn_id).order_by(WebhookEvent.created_at)
        )
        return list(result.scalars().all())
