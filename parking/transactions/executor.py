"""
Transaction executor with retry, timeout and isolation control.

Every multi-row write in ParkPulse goes through TransactionExecutor. A unit of
work is an async callable taking an AsyncSession; the executor opens a fresh
session and transaction for each attempt, commits on success, rolls back on
any exception, and re-runs the whole unit of work after a backoff when the
failure is transient (see retry_policy).

Units of work must therefore be re-runnable: they may not rely on state left
behind by a previous attempt.

Usage:
    executor = TransactionExecutor(engine)

    async def work(session: AsyncSession) -> int:
        ...

    result = await executor.execute_transaction(
        work,
        TransactionOptions(isolation_level=IsolationLevel.SERIALIZABLE),
    )
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from parking.errors import ParkingError
from parking.transactions.retry_policy import backoff_delay, integrity_violation, is_retryable_error
from shared.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")
ItemT = TypeVar("ItemT")

UnitOfWork = Callable[[AsyncSession], Awaitable[T]]


class IsolationLevel(str, Enum):
    """Transaction isolation levels, valued as SQLAlchemy expects them."""

    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"

    @classmethod
    def parse(cls, value: "str | IsolationLevel") -> "IsolationLevel":
        """Accept 'read-committed', 'READ_COMMITTED', 'ReadCommitted', 'READ COMMITTED'..."""
        if isinstance(value, IsolationLevel):
            return value
        normalized = value.strip().replace("-", " ").replace("_", " ")
        if " " not in normalized and not normalized.isupper() and not normalized.islower():
            # CamelCase form: ReadCommitted -> Read Committed
            normalized = "".join(
                f" {c}" if c.isupper() and i else c for i, c in enumerate(normalized)
            )
        normalized = " ".join(normalized.upper().split())
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown isolation level: {value!r}") from None


def _default_max_retries() -> int:
    return get_settings().TRANSACTION_MAX_RETRIES


def _default_retry_delay() -> int:
    return get_settings().TRANSACTION_RETRY_DELAY_MS


def _default_timeout() -> int:
    return get_settings().TRANSACTION_TIMEOUT_MS


def _default_isolation_level() -> IsolationLevel:
    return IsolationLevel.parse(get_settings().TRANSACTION_ISOLATION_LEVEL)


@dataclass(frozen=True)
class TransactionOptions:
    """
    Attributes:
        max_retries: Total attempts allowed (including the first)
        retry_delay: Base backoff in milliseconds
        timeout: Upper bound for one attempt in milliseconds
        isolation_level: Isolation for every attempt
    """

    max_retries: int = field(default_factory=_default_max_retries)
    retry_delay: int = field(default_factory=_default_retry_delay)
    timeout: int = field(default_factory=_default_timeout)
    isolation_level: IsolationLevel = field(default_factory=_default_isolation_level)

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        object.__setattr__(self, "isolation_level", IsolationLevel.parse(self.isolation_level))


class TransactionError(Exception):
    """
    Exception raised when a transaction gives up.

    Attributes:
        message: Error message
        cause: Exception raised by the final attempt
        attempt_count: Attempt number at which the executor gave up
    """

    def __init__(self, message: str, cause: BaseException, attempt_count: int):
        self.message = message
        self.cause = cause
        self.attempt_count = attempt_count
        super().__init__(self.message)

    @property
    def is_business_error(self) -> bool:
        """True when a business rule failed (permanent, e.g. spot taken)."""
        return isinstance(self.cause, ParkingError)

    @property
    def retries_exhausted(self) -> bool:
        """True when a transient failure outlasted every attempt (try again later)."""
        return not self.is_business_error and is_retryable_error(self.cause)

    @property
    def constraint_violation(self) -> str | None:
        """FOREIGN_KEY_VIOLATION / UNIQUE_VIOLATION when the cause is one, else None."""
        return integrity_violation(self.cause)

    @property
    def error_code(self) -> str:
        if isinstance(self.cause, ParkingError):
            return self.cause.error_code
        if self.constraint_violation:
            return self.constraint_violation
        if self.retries_exhausted:
            return "TRANSACTION_RETRIES_EXHAUSTED"
        return "TRANSACTION_FAILED"

    def __str__(self):
        return (
            f"{self.message} (failed after {self.attempt_count} attempt(s), "
            f"cause: {type(self.cause).__name__}: {self.cause})"
        )


class TransactionExecutor:
    """
    Runs units of work atomically against one engine.

    A sessionmaker is kept per isolation level; each is bound to an engine
    copy carrying that isolation_level execution option, so the level is set
    when the connection is checked out and reset when it returns to the pool.
    """

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._factories: dict[IsolationLevel, async_sessionmaker[AsyncSession]] = {}

    def session_factory(self, isolation_level: IsolationLevel) -> async_sessionmaker[AsyncSession]:
        factory = self._factories.get(isolation_level)
        if factory is None:
            bound = self._engine.execution_options(isolation_level=isolation_level.value)
            factory = async_sessionmaker(bound, class_=AsyncSession, expire_on_commit=False)
            self._factories[isolation_level] = factory
        return factory

    async def _run_attempt(self, unit_of_work: UnitOfWork[T], options: TransactionOptions) -> T:
        factory = self.session_factory(options.isolation_level)
        async with asyncio.timeout(options.timeout / 1000):
            async with factory() as session:
                async with session.begin():
                    return await unit_of_work(session)

    async def execute_transaction(
        self,
        unit_of_work: UnitOfWork[T],
        options: TransactionOptions | None = None,
    ) -> T:
        """
        Run unit_of_work in one transaction, retrying transient failures.

        Args:
            unit_of_work: async callable receiving the attempt's session
            options: retry/timeout/isolation settings (defaults from settings)

        Returns:
            Whatever unit_of_work returned on the committed attempt

        Raises:
            TransactionError: On a fatal error, or once max_retries attempts
                have failed. Every failed attempt has been rolled back.
        """
        options = options or TransactionOptions()

        for attempt in range(1, options.max_retries + 1):
            try:
                return await self._run_attempt(unit_of_work, options)
            except Exception as e:
                retryable = is_retryable_error(e)

                if not retryable or attempt == options.max_retries:
                    caller_fault = isinstance(e, ParkingError) or integrity_violation(e) is not None
                    log = logger.warning if caller_fault else logger.error
                    log(
                        f"Transaction attempt {attempt}/{options.max_retries} failed, giving up: "
                        f"{type(e).__name__}: {e}",
                        extra={"attempt": attempt},
                    )
                    raise TransactionError(
                        f"Transaction failed after {attempt} attempt(s): {e}",
                        cause=e,
                        attempt_count=attempt,
                    ) from e

                delay_ms = backoff_delay(attempt, options.retry_delay)
                logger.warning(
                    f"Transaction attempt {attempt}/{options.max_retries} failed, "
                    f"retrying in {delay_ms}ms: {type(e).__name__}: {e}",
                    extra={"attempt": attempt},
                )
                await asyncio.sleep(delay_ms / 1000)

        # Unreachable: the last iteration either returns or raises
        raise AssertionError("retry loop exited without result")

    async def batch_operation(
        self,
        items: Sequence[ItemT],
        batch_size: int,
        operation: Callable[[list[ItemT], AsyncSession], Awaitable[T]],
        options: TransactionOptions | None = None,
    ) -> list[T]:
        """
        Apply operation to consecutive chunks of items inside ONE transaction.

        Batches run in input order; the result list holds one entry per batch.
        A failing batch rolls back all earlier batches too.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        batches = [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]

        async def run_batches(session: AsyncSession) -> list[T]:
            # Fresh list per attempt so a retried attempt never sees stale results
            results: list[T] = []
            for batch in batches:
                results.append(await operation(batch, session))
            return results

        return await self.execute_transaction(run_batches, options)

    async def atomic_operation(
        self,
        operations: Sequence[Callable[[AsyncSession], Awaitable[Any]]],
        options: TransactionOptions | None = None,
    ) -> list[Any]:
        """Run operations in order inside one transaction; results in the same order."""

        async def run_all(session: AsyncSession) -> list[Any]:
            results: list[Any] = []
            for operation in operations:
                results.append(await operation(session))
            return results

        return await self.execute_transaction(run_all, options)

