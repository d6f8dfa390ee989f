"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from transaction_service.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_transaction(
    request_id: str,
    txn_id: str,
    txn_type: str,
    amount: str,
    duration_ms: float,
) -> None:
    """Log structured transaction outcome for analysis"""
    logging.getLogger("transaction_service.ledger").info(
        "Transaction completed",
        extra={
            "request_id": request_id,
            "txn_id": txn_id,
            "txn_type": txn_type,
            "amount": amount,
            "step": "transaction_complete",
            "duration_ms": duration_ms,
        },
    )


def log_webhook_attempt(
    event_id: str,
    webhook_id: str,
    txn_id: str,
    attempt: int,
    delivered: bool,
    status_code: int | None = None,
    error: str | None = None,
) -> None:
    """Log one delivery attempt; failures at WARNING"""
    logger = logging.getLogger("transaction_service.webhooks")
    level = logging.INFO if delivered else logging.WARNING
    logger.log(
        level,
        "Webhook delivered" if delivered else "Webhook delivery attempt failed",
        extra={
            "event_id": event_id,
            "webhook_id": webhook_id,
            "txn_id": txn_id,
            "attempt": attempt,
            "delivered": delivered,
            "status_code": status_code,
            "error": error,
        },
    )
