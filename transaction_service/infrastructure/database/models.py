"""SQLAlchemy ORM models for the ledger tables"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, Text, Uuid
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from transaction_service.domain.models import STATUS_COMPLETED, LedgerTransaction, WebhookTarget

Base = declarative_base()

# Fixed-point money: 18 digits, 2 after the point
Money = Numeric(18, 2, asdecimal=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Account(Base):
    """Business account holding a non-negative balance"""

    __tablename__ = "accounts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_name = Column(Text, nullable=False)
    balance = Column(Money, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    api_keys = relationship("ApiKey", back_populates="account", cascade="all, delete-orphan")
    webhooks = relationship("Webhook", back_populates="account", cascade="all, delete-orphan")


class Transaction(Base):
    """Immutable record of a completed balance movement"""

    __tablename__ = "transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    from_account = Column(Uuid, ForeignKey("accounts.id"), nullable=True, index=True)
    to_account = Column(Uuid, ForeignKey("accounts.id"), nullable=True, index=True)
    amount = Column(Money, nullable=False)
    txn_type = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default=STATUS_COMPLETED)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    def to_domain(self) -> LedgerTransaction:
        return LedgerTransaction(
            id=self.id,
            from_account=self.from_account,
            to_account=self.to_account,
            amount=self.amount,
            txn_type=self.txn_type,
            status=self.status,
            created_at=self.created_at,
        )


class ApiKey(Base):
    """Stored credential: lookup fingerprint plus Argon2 verification hash"""

    __tablename__ = "api_keys"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    key_fingerprint = Column(Text, nullable=False, index=True)
    key_hash = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    last_used = Column(DateTime(timezone=True), nullable=True)

    account = relationship("Account", back_populates="api_keys")


class Webhook(Base):
    """Delivery endpoint registered against an account"""

    __tablename__ = "webhooks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(Text, nullable=False)
    secret = Column(Text, nullable=False)  # HMAC key, plaintext
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    account = relationship("Account", back_populates="webhooks")
    events = relationship("WebhookEvent", back_populates="webhook", cascade="all, delete-orphan")

    def to_target(self) -> WebhookTarget:
        return WebhookTarget(id=self.id, account_id=self.account_id, url=self.url, secret=self.secret)


class WebhookEvent(Base):
    """Delivery audit trail for one (webhook, transaction) pair"""

    __tablename__ = "webhook_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    webhook_id = Column(Uuid, ForeignKey("webhooks.id", ondelete="CASCADE"), nullable=False)
    txn_id = Column(Uuid, ForeignKey("transactions.id"), nullable=False, index=True)
    delivered = Column(Boolean, nullable=False, default=False)
    retry_count = Column(Integer, nullable=False, default=0)
    last_attempt = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    webhook = relationship("Webhook", back_populates="events")
