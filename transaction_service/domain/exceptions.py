"""Domain-specific exceptions

Every exception carries a stable machine-readable ``code`` and a
human-readable message. HTTP status mapping lives in the API layer.
"""


class DomainException(Exception):
    """Base exception for domain layer"""

    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# Validation errors: raised before any storage access


class InvalidTransactionError(DomainException):
    """Transaction request has a contradictory or malformed shape"""

    code = "invalid_transaction"
    default_message = "Invalid transaction request"


class InvalidTransactionTypeError(InvalidTransactionError):
    code = "invalid_transaction_type"
    default_message = "Transaction type must be 'credit', 'debit', or 'transfer'"


class InvalidCreditError(InvalidTransactionError):
    code = "invalid_credit"


class InvalidDebitError(InvalidTransactionError):
    code = "invalid_debit"


class InvalidTransferError(InvalidTransactionError):
    code = "invalid_transfer"
    default_message = "Transfer transactions must have both from_account_id and to_account_id"


class InvalidAmountError(InvalidTransactionError):
    code = "invalid_amount"
    default_message = "Transaction amount must be positive"


# Authorization errors


class AuthenticationError(DomainException):
    """Presented credential was rejected"""

    code = "unauthorized"
    default_message = "Unauthorized"


class MissingApiKeyError(AuthenticationError):
    code = "missing_api_key"
    default_message = "Missing x-api-key header"


class InvalidApiKeyError(AuthenticationError):
    """Unknown fingerprint and hash mismatch both map here"""

    code = "invalid_api_key"
    default_message = "Invalid API key"


class RateLimitedError(AuthenticationError):
    code = "rate_limited"
    default_message = "Too many requests"


# Business-rule errors


class InsufficientFundsError(DomainException):
    """Conditional debit matched no row"""

    code = "insufficient_funds"
    default_message = "Insufficient funds"


class NotFoundError(DomainException):
    code = "not_found"
    default_message = "Resource not found"


class AccountNotFoundError(NotFoundError):
    default_message = "Account not found"


class TransactionNotFoundError(NotFoundError):
    default_message = "Transaction not found"


# Integrity / internal errors


class StorageError(DomainException):
    """Storage call failed; the in-flight unit of work was rolled back"""

    code = "database_error"
    default_message = "Database operation failed"


class MalformedKeyHashError(DomainException):
    """Stored API key hash could not be parsed"""

    code = "crypto_error"
    default_message = "Invalid key hash format"


class PayloadSerializationError(DomainException):
    """Webhook payload could not be serialized"""

    code = "serialization_error"
    default_message = "Failed to serialize webhook payload"
