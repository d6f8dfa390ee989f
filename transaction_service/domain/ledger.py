"""Transaction shape validation - runs before any storage access"""

from decimal import Decimal

from transaction_service.domain.exceptions import (
    InvalidAmountError,
    InvalidCreditError,
    InvalidDebitError,
    InvalidTransactionTypeError,
    InvalidTransferError,
)
from transaction_service.domain.models import (
    TRANSACTION_TYPES,
    TXN_CREDIT,
    TXN_DEBIT,
    TXN_TRANSFER,
    TransactionRequest,
)

CENTS = Decimal("0.01")


def validate_transaction_request(request: TransactionRequest) -> None:
    """
    Check that the (from, to) pattern matches the transaction type.

    Rules:
    - credit:   no from_account_id, to_account_id required
    - debit:    from_account_id required, no to_account_id
    - transfer: both required
    - amount strictly positive, at most two decimal places

    Raises:
        InvalidTransactionError subclass naming the rule that failed
    """
    if request.txn_type not in TRANSACTION_TYPES:
        raise InvalidTransactionTypeError()

    has_from = request.from_account_id is not None
    has_to = request.to_account_id is not None

    if request.txn_type == TXN_CREDIT:
        if has_from:
            raise InvalidCreditError("Credit transactions should not have a from_account_id")
        if not has_to:
            raise InvalidCreditError("Credit transactions must have a to_account_id")

    elif request.txn_type == TXN_DEBIT:
        if not has_from:
            raise InvalidDebitError("Debit transactions must have a from_account_id")
        if has_to:
            raise InvalidDebitError("Debit transactions should not have a to_account_id")

    elif request.txn_type == TXN_TRANSFER:
        if not (has_from and has_to):
            raise InvalidTransferError()

    if not isinstance(request.amount, Decimal) or not request.amount.is_finite() or request.amount <= 0:
        raise InvalidAmountError()
    if request.amount.as_tuple().exponent < -2:
        raise InvalidAmountError("Amount must have at most two decimal places")
