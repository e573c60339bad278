"""
Retry policy for database transactions.

Pure classification of errors into retryable (transient contention or
connectivity problems) and fatal (everything else), plus the exponential
backoff schedule. No I/O, no sleeping: the executor does that.
"""

from sqlalchemy.exc import DBAPIError, IntegrityError

from parking.errors import ParkingError

# PostgreSQL SQLSTATE codes worth another attempt
RETRYABLE_SQLSTATES = {
    "40P01",  # deadlock_detected
    "40001",  # serialization_failure
    "55P03",  # lock_not_available (lock_timeout / NOWAIT)
    "57014",  # query_canceled (statement_timeout)
}
# Class 08: connection exceptions
RETRYABLE_SQLSTATE_CLASSES = {"08"}

# MySQL/MariaDB error numbers
RETRYABLE_MYSQL_ERRNOS = {
    1213,  # ER_LOCK_DEADLOCK
    1205,  # ER_LOCK_WAIT_TIMEOUT
}

# Integrity violations that point at bad caller input, by SQLSTATE or MySQL errno
INTEGRITY_VIOLATIONS = {
    "23503": "FOREIGN_KEY_VIOLATION",
    "23505": "UNIQUE_VIOLATION",
    1452: "FOREIGN_KEY_VIOLATION",  # ER_NO_REFERENCED_ROW_2
    1062: "UNIQUE_VIOLATION",  # ER_DUP_ENTRY
}

# Last-resort message matching for drivers that expose no codes
RETRYABLE_MESSAGE_PATTERNS = (
    "deadlock",
    "lock timeout",
    "lock wait timeout",
    "could not serialize",
    "serialization failure",
    "connection reset",
    "econnreset",
    "etimedout",
)


def driver_error_code(error: DBAPIError) -> str | int | None:
    """SQLSTATE (PostgreSQL) or errno (MySQL) reported by the driver, if any."""
    orig = error.orig
    if orig is None:
        return None
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code:
        return str(code)
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def is_retryable_error(error: BaseException) -> bool:
    """
    Determine if a failed transaction attempt may be retried.

    Args:
        error: Exception raised by the attempt

    Returns:
        bool: True if error is retryable, False otherwise

    Retryable errors:
    - Deadlock, serialization failure, lock-wait/statement timeout
    - Dropped or invalidated connections
    - Attempt timeouts (TimeoutError)

    Always fatal:
    - Business errors (ParkingError): spot not found, spot unavailable, ...
    - Integrity/constraint violations
    """
    if isinstance(error, ParkingError):
        return False

    if isinstance(error, IntegrityError):
        return False

    if isinstance(error, DBAPIError):
        if error.connection_invalidated:
            return True

        code = driver_error_code(error)
        if isinstance(code, int):
            if code in RETRYABLE_MYSQL_ERRNOS:
                return True
        elif code:
            if code in RETRYABLE_SQLSTATES or code[:2] in RETRYABLE_SQLSTATE_CLASSES:
                return True

    # Generic network/timeout errors (asyncio.TimeoutError is TimeoutError)
    if isinstance(error, (ConnectionError, TimeoutError)):
        return True

    message = str(error).lower()
    return any(pattern in message for pattern in RETRYABLE_MESSAGE_PATTERNS)


def integrity_violation(error: BaseException) -> str | None:
    """
    Name the constraint class an IntegrityError violated.

    Returns "FOREIGN_KEY_VIOLATION" or "UNIQUE_VIOLATION", or None for any
    other error (including other integrity violations such as NOT NULL).
    """
    if not isinstance(error, IntegrityError):
        return None
    return INTEGRITY_VIOLATIONS.get(driver_error_code(error))

def backoff_delay(attempt: int, base_delay: float) -> float:
    """
    Delay before retrying after failed attempt number `attempt` (1-indexed).

    base_delay * 2^(attempt - 1): base, 2*base, 4*base, ... No jitter.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return base_delay * (2 ** (attempt - 1))
