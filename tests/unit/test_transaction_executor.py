"""
Unit tests for executor.py - TransactionExecutor retry, timeout and isolation.

Tests coverage:
- execute_transaction() success: result returned, transaction committed
- Retryable failures: retried with exponential backoff, fresh session per attempt
- Fatal failures: no retry, attempt_count == 1, rolled back
- Exhausted retries: attempt_count == max_retries
- Per-attempt timeout
- batch_operation() / atomic_operation()
- TransactionOptions defaults and isolation level parsing
- session_factory() caching per isolation level
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from parking.errors import SpotUnavailableError
from parking.transactions.executor import (
    IsolationLevel,
    TransactionError,
    TransactionExecutor,
    TransactionOptions,
)


class DriverError(Exception):
    def __init__(self, message, sqlstate):
        super().__init__(message)
        self.sqlstate = sqlstate


def deadlock():
    return OperationalError("UPDATE parking_spots", {}, DriverError("deadlock detected", "40P01"))


def integrity_error(sqlstate="23505", message="duplicate key"):
    return IntegrityError("INSERT INTO bookings", {}, DriverError(message, sqlstate))


@pytest.fixture
def options():
    return TransactionOptions(
        max_retries=3,
        retry_delay=1000,
        timeout=10000,
        isolation_level=IsolationLevel.READ_COMMITTED,
    )


# ============================================================================
# Test execute_transaction()
# ============================================================================


class TestExecuteTransactionSuccess:
    """Test successful transactions."""

    @pytest.mark.asyncio
    async def test_returns_unit_of_work_result_and_commits(self, executor, session_factory, options):
        unit_of_work = AsyncMock(return_value="booked")

        with patch("parking.transactions.executor.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await executor.execute_transaction(unit_of_work, options)

        assert result == "booked"
        assert len(session_factory.sessions) == 1
        session = session_factory.sessions[0]
        unit_of_work.assert_awaited_once_with(session)
        assert session.committed is True
        assert session.rolled_back is False
        assert session.closed is True
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_success_after_transient_failures(self, executor, session_factory, options):
        """Deadlocks on attempts 1 and 2, success on attempt 3."""
        call_count = [0]

        async def unit_of_work(session):
            call_count[0] += 1
            if call_count[0] < 3:
                raise deadlock()
            return call_count[0]

        with patch("parking.transactions.executor.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await executor.execute_transaction(unit_of_work, options)

        assert result == 3
        assert [s.rolled_back for s in session_factory.sessions] == [True, True, False]
        assert [s.committed for s in session_factory.sessions] == [False, False, True]
        assert mock_sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_each_attempt_gets_a_fresh_session(self, executor, session_factory, options):
        seen = []

        async def unit_of_work(session):
            seen.append(session)
            if len(seen) == 1:
                raise ConnectionResetError("Connection reset by peer")
            return "ok"

        with patch("parking.transactions.executor.asyncio.sleep", new_callable=AsyncMock):
            await executor.execute_transaction(unit_of_work, options)

        assert len(seen) == 2
        assert seen[0] is not seen[1]

    @pytest.mark.asyncio
    async def test_success_is_not_logged(self, executor, options, caplog):
        with caplog.at_level("DEBUG", logger="parking.transactions.executor"):
            await executor.execute_transaction(AsyncMock(return_value=1), options)

        assert [r for r in caplog.records if r.name.startswith("parking")] == []


class TestExecuteTransactionFailure:
    """Test failing transactions."""

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, executor, session_factory, options):
        """Deadlock on every attempt: exactly max_retries attempts, delays base, 2*base."""
        unit_of_work = AsyncMock(side_effect=deadlock())

        with patch("parking.transactions.executor.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(TransactionError) as exc_info:
                await executor.execute_transaction(unit_of_work, options)

        error = exc_info.value
        assert error.attempt_count == 3
        assert isinstance(error.cause, OperationalError)
        assert error.retries_exhausted is True
        assert error.is_business_error is False
        assert error.error_code == "TRANSACTION_RETRIES_EXHAUSTED"
        assert unit_of_work.await_count == 3
        assert all(s.rolled_back for s in session_factory.sessions)
        assert not any(s.committed for s in session_factory.sessions)
        # No sleep after the final attempt
        assert mock_sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_backoff_follows_retry_delay(self, executor):
        options = TransactionOptions(max_retries=5, retry_delay=100, timeout=1000)

        with patch("parking.transactions.executor.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(TransactionError) as exc_info:
                await executor.execute_transaction(AsyncMock(side_effect=deadlock()), options)

        assert exc_info.value.attempt_count == 5
        assert mock_sleep.await_args_list == [call(0.1), call(0.2), call(0.4), call(0.8)]

    @pytest.mark.asyncio
    async def test_business_error_is_not_retried(self, executor, session_factory, options):
        unit_of_work = AsyncMock(side_effect=SpotUnavailableError(spot_id="abc"))

        with patch("parking.transactions.executor.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(TransactionError) as exc_info:
                await executor.execute_transaction(unit_of_work, options)

        error = exc_info.value
        assert error.attempt_count == 1
        assert error.is_business_error is True
        assert error.retries_exhausted is False
        assert error.error_code == "SPOT_UNAVAILABLE"
        assert isinstance(error.__cause__, SpotUnavailableError)
        assert session_factory.sessions[0].rolled_back is True
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_integrity_error_is_not_retried(self, executor, options):
        with patch("parking.transactions.executor.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(TransactionError) as exc_info:
                await executor.execute_transaction(AsyncMock(side_effect=integrity_error()), options)

        assert exc_info.value.attempt_count == 1
        assert exc_info.value.retries_exhausted is False
        assert exc_info.value.error_code == "UNIQUE_VIOLATION"
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "sqlstate,error_code",
        [("23503", "FOREIGN_KEY_VIOLATION"), ("23505", "UNIQUE_VIOLATION"), ("23502", "TRANSACTION_FAILED")],
    )
    async def test_integrity_error_codes(self, executor, options, sqlstate, error_code):
        with pytest.raises(TransactionError) as exc_info:
            await executor.execute_transaction(AsyncMock(side_effect=integrity_error(sqlstate)), options)

        assert exc_info.value.error_code == error_code
        assert exc_info.value.is_business_error is False

    @pytest.mark.asyncio
    async def test_caller_caused_violation_logged_as_warning(self, executor, options, caplog):
        with caplog.at_level("WARNING", logger="parking.transactions.executor"):
            with pytest.raises(TransactionError):
                await executor.execute_transaction(
                    AsyncMock(side_effect=integrity_error("23503", "bookings_user_id_fkey")), options
                )

        records = [r for r in caplog.records if r.name == "parking.transactions.executor"]
        assert [r.levelname for r in records] == ["WARNING"]

    @pytest.mark.asyncio
    async def test_fatal_error_after_retry_reports_its_attempt(self, executor, options):
        """Transient on attempt 1, fatal on attempt 2: stops at 2."""
        unit_of_work = AsyncMock(side_effect=[deadlock(), ValueError("bad data")])

        with patch("parking.transactions.executor.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(TransactionError) as exc_info:
                await executor.execute_transaction(unit_of_work, options)

        assert exc_info.value.attempt_count == 2
        assert isinstance(exc_info.value.cause, ValueError)

    @pytest.mark.asyncio
    async def test_single_attempt_budget(self, executor):
        options = TransactionOptions(max_retries=1, retry_delay=1000, timeout=1000)

        with patch("parking.transactions.executor.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(TransactionError) as exc_info:
                await executor.execute_transaction(AsyncMock(side_effect=deadlock()), options)

        assert exc_info.value.attempt_count == 1
        assert exc_info.value.retries_exhausted is True
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_each_failed_attempt_is_logged(self, executor, options, caplog):
        with patch("parking.transactions.executor.asyncio.sleep", new_callable=AsyncMock):
            with caplog.at_level("WARNING", logger="parking.transactions.executor"):
                with pytest.raises(TransactionError):
                    await executor.execute_transaction(AsyncMock(side_effect=deadlock()), options)

        records = [r for r in caplog.records if r.name == "parking.transactions.executor"]
        assert [r.attempt for r in records] == [1, 2, 3]
        assert "deadlock" in records[0].getMessage()
        assert records[-1].levelname == "ERROR"


class TestAttemptTimeout:
    """Test the per-attempt timeout."""

    @pytest.mark.asyncio
    async def test_hanging_attempt_times_out_and_rolls_back(self, executor, session_factory):
        options = TransactionOptions(max_retries=1, retry_delay=0, timeout=20)

        async def hang(session):
            await asyncio.Event().wait()

        with pytest.raises(TransactionError) as exc_info:
            await executor.execute_transaction(hang, options)

        assert isinstance(exc_info.value.cause, TimeoutError)
        assert exc_info.value.retries_exhausted is True
        assert session_factory.sessions[0].rolled_back is True

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, executor, session_factory):
        options = TransactionOptions(max_retries=2, retry_delay=0, timeout=20)
        call_count = [0]

        async def hang_once(session):
            call_count[0] += 1
            if call_count[0] == 1:
                await asyncio.Event().wait()
            return "second try"

        assert await executor.execute_transaction(hang_once, options) == "second try"
        assert len(session_factory.sessions) == 2


# ============================================================================
# Test batch_operation() / atomic_operation()
# ============================================================================


class TestBatchOperation:
    """Test chunked work inside one transaction."""

    @pytest.mark.asyncio
    async def test_batches_in_order_in_one_transaction(self, executor, session_factory, options):
        seen = []

        async def operation(batch, session):
            seen.append((tuple(batch), session))
            return sum(batch)

        result = await executor.batch_operation([1, 2, 3, 4, 5], 2, operation, options)

        assert result == [3, 7, 5]
        assert [batch for batch, _ in seen] == [(1, 2), (3, 4), (5,)]
        assert len(session_factory.sessions) == 1
        assert all(session is session_factory.sessions[0] for _, session in seen)
        assert session_factory.sessions[0].committed is True

    @pytest.mark.asyncio
    async def test_failing_batch_rolls_back_everything(self, executor, session_factory, options):
        async def operation(batch, session):
            if 5 in batch:
                raise ValueError("bad item")
            return len(batch)

        with pytest.raises(TransactionError):
            await executor.batch_operation([1, 2, 3, 4, 5], 2, operation, options)

        assert session_factory.sessions[0].rolled_back is True
        assert session_factory.sessions[0].committed is False

    @pytest.mark.asyncio
    async def test_retry_restarts_all_batches(self, executor, session_factory, options):
        calls = []

        async def operation(batch, session):
            calls.append(tuple(batch))
            if len(calls) == 2 and len(session_factory.sessions) == 1:
                raise deadlock()
            return tuple(batch)

        with patch("parking.transactions.executor.asyncio.sleep", new_callable=AsyncMock):
            result = await executor.batch_operation([1, 2, 3], 2, operation, options)

        assert result == [(1, 2), (3,)]
        assert calls == [(1, 2), (3,), (1, 2), (3,)]

    @pytest.mark.asyncio
    async def test_empty_items(self, executor, options):
        operation = AsyncMock()
        assert await executor.batch_operation([], 10, operation, options) == []
        operation.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_batch_size(self, executor, options):
        with pytest.raises(ValueError):
            await executor.batch_operation([1], 0, AsyncMock(), options)


class TestAtomicOperation:
    """Test ordered operations inside one transaction."""

    @pytest.mark.asyncio
    async def test_results_in_order(self, executor, session_factory, options):
        order = []

        def make(name):
            async def operation(session):
                order.append(name)
                return name.upper()
            return operation

        result = await executor.atomic_operation([make("a"), make("b"), make("c")], options)

        assert result == ["A", "B", "C"]
        assert order == ["a", "b", "c"]
        assert session_factory.sessions[0].committed is True

    @pytest.mark.asyncio
    async def test_failure_stops_and_rolls_back(self, executor, session_factory, options):
        third = AsyncMock()
        operations = [AsyncMock(return_value=1), AsyncMock(side_effect=SpotUnavailableError()), third]

        with pytest.raises(TransactionError) as exc_info:
            await executor.atomic_operation(operations, options)

        assert exc_info.value.is_business_error is True
        third.assert_not_called()
        assert session_factory.sessions[0].rolled_back is True


# ============================================================================
# Test options, isolation levels and session factories
# ============================================================================


class TestTransactionOptions:
    """Test option defaults and validation."""

    def test_defaults_come_from_settings(self):
        opts = TransactionOptions()
        assert opts.max_retries == 3
        assert opts.retry_delay == 1000
        assert opts.timeout == 10000
        assert opts.isolation_level is IsolationLevel.READ_COMMITTED

    def test_isolation_level_string_is_parsed(self):
        assert TransactionOptions(isolation_level="serializable").isolation_level is IsolationLevel.SERIALIZABLE

    @pytest.mark.parametrize("field,value", [("max_retries", 0), ("retry_delay", -1), ("timeout", 0)])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValueError):
            TransactionOptions(**{field: value})


class TestIsolationLevel:
    """Test isolation level parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("read-committed", IsolationLevel.READ_COMMITTED),
            ("READ_COMMITTED", IsolationLevel.READ_COMMITTED),
            ("ReadCommitted", IsolationLevel.READ_COMMITTED),
            ("read uncommitted", IsolationLevel.READ_UNCOMMITTED),
            ("repeatable-read", IsolationLevel.REPEATABLE_READ),
            ("Serializable", IsolationLevel.SERIALIZABLE),
            ("SERIALIZABLE", IsolationLevel.SERIALIZABLE),
            ("serializable", IsolationLevel.SERIALIZABLE),
            ("READ COMMITTED", IsolationLevel.READ_COMMITTED),
        ],
    )
    def test_aliases(self, raw, expected):
        assert IsolationLevel.parse(raw) is expected

    @pytest.mark.parametrize("level", list(IsolationLevel))
    def test_value_parses_back(self, level):
        assert IsolationLevel.parse(level.value) is level

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown isolation level"):
            IsolationLevel.parse("snapshot")


class TestSessionFactory:
    """Test per-isolation-level session factories."""

    def test_factory_bound_to_engine_with_isolation_level(self):
        engine = MagicMock()
        executor = TransactionExecutor(engine)

        executor.session_factory(IsolationLevel.SERIALIZABLE)

        engine.execution_options.assert_called_once_with(isolation_level="SERIALIZABLE")

    def test_factory_cached_per_level(self):
        engine = MagicMock()
        executor = TransactionExecutor(engine)

        first = executor.session_factory(IsolationLevel.REPEATABLE_READ)
        second = executor.session_factory(IsolationLevel.REPEATABLE_READ)
        other = executor.session_factory(IsolationLevel.READ_COMMITTED)

        assert first is second
        assert other is not first
        assert engine.execution_options.call_count == 2


class TestTransactionError:
    """Test TransactionError formatting."""

    def test_str_includes_attempts_and_cause(self):
        error = TransactionError("Transaction failed", cause=deadlock(), attempt_count=3)
        text = str(error)
        assert "3 attempt(s)" in text
        assert "OperationalError" in text
