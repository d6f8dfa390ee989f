"""Transaction engine - atomic balance updates plus the transaction record"""

import logging
from dataclasses import replace

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from transaction_service.domain.exceptions import (
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidTransactionError,
    StorageError,
)
from transaction_service.domain.ledger import CENTS, validate_transaction_request
from transaction_service.domain.models import (
    TRANSACTION_TYPES,
    TXN_CREDIT,
    TXN_DEBIT,
    TXN_TRANSFER,
    LedgerTransaction,
    TransactionRequest,
)
from transaction_service.infrastructure.database.repositories import (
    AccountRepository,
    TransactionRepository,
)
from transaction_service.infrastructure.observability.metrics import record_transaction

logger = logging.getLogger(__name__)


class TransactionEngine:
    """Validates and executes credit/debit/transfer requests"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.accounts = AccountRepository(db)
        self.transactions = TransactionRepository(db)

    async def create_transaction(self, request: TransactionRequest) -> LedgerTransaction:
        """
        Record a balance movement, all-or-nothing.

        Flow:
        1. Validate request shape (no storage access on failure)
        2. Conditional decrement of the source (debit, transfer)
        3. Unconditional increment of the destination (credit, transfer)
        4. Insert the transaction record with status "completed"
        5. Commit; any failure before this rolls everything back

        Raises:
            InvalidTransactionError: request shape violates the type rules
            InsufficientFundsError: source balance below amount
            AccountNotFoundError: an involved account does not exist
            StorageError: database failure, unit of work rolled back
        """
        metric_type = request.txn_type if request.txn_type in TRANSACTION_TYPES else "invalid"
        try:
            validate_transaction_request(request)
        except InvalidTransactionError:
            record_transaction(metric_type, "rejected")
            raise

        # At most two places after validation; quantize only normalizes the exponent
        request = replace(request, amount=request.amount.quantize(CENTS))

        try:
            if request.txn_type in (TXN_DEBIT, TXN_TRANSFER):
                await self._withdraw(request)
            if request.txn_type in (TXN_CREDIT, TXN_TRANSFER):
                await self._deposit(request)

            txn = await self.transactions.create_transaction(
                txn_type=request.txn_type,
                amount=request.amount,
                from_account=request.from_account_id,
                to_account=request.to_account_id,
            )
            await self.db.commit()

        except InsufficientFundsError:
            await self.db.rollback()
            record_transaction(metric_type, "insufficient_funds")
            raise

        except AccountNotFoundError:
            await self.db.rollback()
            record_transaction(metric_type, "rejected")
            raise

        except SQLAlchemyError as e:
            await self.db.rollback()
            record_transaction(metric_type, "error")
            logger.error(
                f"Failed to record transaction: {e}",
                extra={
                    "txn_type": request.txn_type,
                    "from_account": str(request.from_account_id),
                    "to_account": str(request.to_account_id),
                },
            )
            raise StorageError("Failed to create transaction") from e

        record_transaction(metric_type, "completed")
        return txn.to_domain()

    async def _withdraw(self, request: TransactionRequest) -> None:
        if await self.accounts.debit_if_sufficient(request.from_account_id, request.amount):
            return
        # No row matched: either the account is missing or the balance is short
        if not await self.accounts.exists(request.from_account_id):
            raise AccountNotFoundError(f"Account {request.from_account_id} not found")
        raise InsufficientFundsError()

    async def _deposit(self, request: TransactionRequest) -> None:
        if not await self.accounts.credit(request.to_account_id, request.amount):
            raise AccountNotFoundError(f"Account {request.to_account_id} not found")
