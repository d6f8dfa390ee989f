"""Webhook dispatcher - signed fan-out delivery with exponential backoff"""

import asyncio
import logging
import uuid
from typing import Awaitable, Callable, List, Set

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transaction_service.config import settings
from transaction_service.domain.exceptions import PayloadSerializationError
from transaction_service.domain.models import LedgerTransaction, WebhookTarget
from transaction_service.domain.signing import build_payload, serialize_payload, sign_payload
from transaction_service.infrastructure.database.models import utcnow
from transaction_service.infrastructure.database.repositories import WebhookEventRepository, WebhookRepository
from transaction_service.infrastructure.observability.logging import log_webhook_attempt
from transaction_service.infrastructure.observability.metrics import (
    webhook_failure_counter,
    webhook_latency_histogram,
    webhook_outcome_counter,
)

logger = logging.getLogger(__name__)


class WebhookDispatcher:
    """
    Deliver completed transactions to every webhook of the involved accounts.

    Each (webhook, transaction) pair gets a WebhookEvent row before the first
    attempt and its own asyncio task, so one slow endpoint never delays
    another. Tasks are not cancelled; anything in flight at shutdown stays
    undelivered in storage.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        http_client: httpx.AsyncClient | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        timeout: float | None = None,
        signature_header: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.timeout = timeout if timeout is not None else settings.webhook_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.webhook_max_retries
        self.backoff_base = backoff_base if backoff_base is not None else settings.webhook_backoff_base
        self.signature_header = signature_header or settings.webhook_signature_header
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=self.timeout)
        self._sleep = sleep
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, transaction: LedgerTransaction) -> asyncio.Task:
        """Fire-and-forget fan-out; never raises into the caller"""
        return self._spawn(self.deliver_transaction(transaction), name=f"webhooks-{transaction.id}")

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        # Hold a strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def deliver_transaction(self, transaction: LedgerTransaction) -> List[uuid.UUID]:
        """
        Create one event per registered webhook and start its delivery task.

        Returns:
            Ids of the events created
        """
        logger.info("Starting webhook delivery", extra={"txn_id": str(transaction.id)})
        event_ids: List[uuid.UUID] = []

        for account_id in transaction.involved_account_ids:
            try:
                async with self.session_factory() as db:
                    webhooks = [w.to_target() for w in await WebhookRepository(db).list_for_account(account_id)]
            except SQLAlchemyError as e:
                logger.error(
                    f"Failed to load webhooks: {e}",
                    extra={"txn_id": str(transaction.id), "account_id": str(account_id)},
                )
                continue

            for webhook in webhooks:
                try:
                    async with self.session_factory() as db:
                        event = await WebhookEventRepository(db).create_event(webhook.id, transaction.id)
                        event_id = event.id
                        await db.commit()
                except SQLAlchemyError as e:
                    logger.error(
                        f"Failed to create webhook event: {e}",
                        extra={"txn_id": str(transaction.id), "webhook_id": str(webhook.id)},
                    )
                    continue

                event_ids.append(event_id)
                self._spawn(
                    self.deliver_event(event_id, webhook, transaction),
                    name=f"webhook-event-{event_id}",
                )

        return event_ids

    async def deliver_event(
        self,
        event_id: uuid.UUID,
        webhook: WebhookTarget,
        transaction: LedgerTransaction,
    ) -> bool:
        """
        Deliver one event with retries.

        Retry strategy:
        - Attempts 0..max_retries (4 total by default)
        - Backoff after failed attempt n: backoff_base * 2**n (1s, 2s, 4s)
        - Any 2xx is success; other statuses and transport errors are failures
        - The event row is updated after every attempt

        Returns:
            True if delivered
        """
        try:
            body = serialize_payload(build_payload(transaction))
        except PayloadSerializationError as e:
            # The same payload would fail again, so this is terminal
            logger.error(f"Failed to serialize webhook payload: {e}", extra={"event_id": str(event_id)})
            await self._record_attempt(event_id, delivered=False, attempt=0)
            webhook_outcome_counter.labels(outcome="serialization_error").inc()
            return False

        headers = {
            "Content-Type": "application/json",
            self.signature_header: sign_payload(webhook.secret, body),
        }

        for attempt in range(self.max_retries + 1):
            delivered, status_code, error = await self._post(webhook.url, body, headers)
            await self._record_attempt(event_id, delivered=delivered, attempt=attempt)
            log_webhook_attempt(
                event_id=str(event_id),
                webhook_id=str(webhook.id),
                txn_id=str(transaction.id),
                attempt=attempt,
                delivered=delivered,
                status_code=status_code,
                error=error,
            )

            if delivered:
                webhook_outcome_counter.labels(outcome="delivered").inc()
                return True

            webhook_failure_counter.inc()
            if attempt < self.max_retries:
                await self._sleep(self.backoff_base * (2 ** attempt))

        logger.error(
            f"Failed to deliver webhook after {self.max_retries + 1} attempts",
            extra={"event_id": str(event_id), "webhook_id": str(webhook.id)},
        )
        webhook_outcome_counter.labels(outcome="exhausted").inc()
        return False

    async def _post(self, url: str, body: bytes, headers: dict) -> tuple[bool, int | None, str | None]:
        try:
            with webhook_latency_histogram.time():
                response = await self.http_client.post(url, content=body, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            return False, None, f"{type(e).__name__}: {e}"
        return response.is_success, response.status_code, None

    async def _record_attempt(self, event_id: uuid.UUID, delivered: bool, attempt: int) -> None:
        try:
            async with self.session_factory() as db:
                await WebhookEventRepository(db).record_attempt(
                    event_id, delivered=delivered, retry_count=attempt, attempted_at=utcnow()
                )
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to record webhook attempt: {e}", extra={"event_id": str(event_id)})

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every spawned task, including ones spawned meanwhile, has finished"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Close the owned HTTP client; in-flight deliveries are abandoned"""
        if self.pending:
            logger.warning(f"Shutting down with {self.pending} webhook tasks in flight")
        if self._owns_client:
            await self.http_client.aclose()
