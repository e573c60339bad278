"""
Transactional write paths.

- executor: TransactionExecutor (retry, timeout, isolation)
- retry_policy: transient vs fatal error classification, backoff
- booking_transaction / sensor_transaction / report_transaction: the three
  multi-row writes built on the executor
"""

from parking.transactions.booking_transaction import create_booking_transaction
from parking.transactions.executor import (
    IsolationLevel,
    TransactionError,
    TransactionExecutor,
    TransactionOptions,
)
from parking.transactions.report_transaction import create_report_transaction
from parking.transactions.retry_policy import backoff_delay, is_retryable_error
from parking.transactions.sensor_transaction import update_spots_from_sensors

__all__ = [
    "IsolationLevel",
    "TransactionError",
    "TransactionExecutor",
    "TransactionOptions",
    "backoff_delay",
    "create_booking_transaction",
    "create_report_transaction",
    "is_retryable_error",
    "update_spots_from_sensors",
]
