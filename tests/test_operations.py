"""Tests for deadlines, cancellation and long-running operation polling."""

import asyncio

import pytest
from azure_mock import MockPoller

from arm_provider.errors import (
    OperationCancelledError,
    OperationFailedError,
    OperationTimeoutError,
)
from arm_provider.operations import (
    DEFAULT_READ_TIMEOUT_SECONDS,
    CompletedOperation,
    Deadline,
    OperationKind,
    OperationTimeouts,
    wait_for_operation,
)


class TestOperationTimeouts:
    """Tests for per-operation time limits."""

    def test_import_uses_read_time_limit(self) -> None:
        """Test import shares the read timeout."""
        timeouts = OperationTimeouts(read_seconds=30)
        assert timeouts.for_kind(OperationKind.IMPORT) == 30
        assert timeouts.for_kind(OperationKind.READ) == 30

    def test_defaults(self) -> None:
        """Test default time limits per kind."""
        timeouts = OperationTimeouts()
        assert timeouts.for_kind(OperationKind.CREATE) == 30 * 60
        assert timeouts.for_kind(OperationKind.READ) == DEFAULT_READ_TIMEOUT_SECONDS


class TestDeadline:
    """Tests for Deadline checks and guarded calls."""

    @pytest.mark.asyncio
    async def test_check_raises_after_expiry(self) -> None:
        """Test an expired deadline raises a timeout."""
        deadline = Deadline.after(0)
        with pytest.raises(OperationTimeoutError):
            deadline.check("GET x")

    @pytest.mark.asyncio
    async def test_cancel_wins_over_timeout(self) -> None:
        """Test cancellation is reported even once the deadline has passed."""
        deadline = Deadline.after(0)
        deadline.cancel()
        with pytest.raises(OperationCancelledError):
            deadline.check("GET x")

    @pytest.mark.asyncio
    async def test_guard_returns_result(self) -> None:
        """Test a call finishing in time returns its value."""

        async def call() -> str:
            return "ok"

        assert await Deadline.after(5).guard(call(), "GET x") == "ok"

    @pytest.mark.asyncio
    async def test_guard_times_out_hanging_call(self) -> None:
        """Test a call that never returns is abandoned at the deadline."""
        with pytest.raises(OperationTimeoutError):
            await Deadline.after(0.05).guard(asyncio.Event().wait(), "GET x")

    @pytest.mark.asyncio
    async def test_guard_cancelled_mid_call(self) -> None:
        """Test cancelling while a call is in flight raises promptly."""
        deadline = Deadline.after(30)
        asyncio.get_running_loop().call_later(0.02, deadline.cancel)

        with pytest.raises(OperationCancelledError):
            await deadline.guard(asyncio.Event().wait(), "GET x")

    @pytest.mark.asyncio
    async def test_guard_propagates_call_errors(self) -> None:
        """Test exceptions raised by the call surface unchanged."""

        async def call() -> None:
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await Deadline.after(5).guard(call(), "GET x")


class TestWaitForOperation:
    """Tests for long-running operation polling."""

    @pytest.mark.asyncio
    async def test_polls_until_done(self) -> None:
        """Test polling continues until the operation reports done."""
        poller = MockPoller("result", polls=3)
        result = await wait_for_operation(poller, Deadline.after(5), poll_interval=0.01)

        assert result == "result"
        assert poller.done_calls == 4

    @pytest.mark.asyncio
    async def test_completed_operation(self) -> None:
        """Test a synchronously completed write needs no polling."""
        assert await wait_for_operation(CompletedOperation(42), Deadline.after(5)) == 42

    @pytest.mark.asyncio
    async def test_timeout_while_polling(self) -> None:
        """Test an operation that never finishes hits the deadline."""
        poller = MockPoller(never_done=True)
        with pytest.raises(OperationTimeoutError):
            await wait_for_operation(poller, Deadline.after(0.05), poll_interval=0.01)

    @pytest.mark.asyncio
    async def test_cancel_while_polling(self) -> None:
        """Test cancellation interrupts a long poll interval."""
        deadline = Deadline.after(30)
        asyncio.get_running_loop().call_later(0.02, deadline.cancel)

        with pytest.raises(OperationCancelledError):
            await wait_for_operation(MockPoller(never_done=True), deadline, poll_interval=10)

    @pytest.mark.asyncio
    async def test_failed_operation(self) -> None:
        """Test a terminal service failure is reported as OperationFailedError."""
        poller = MockPoller(error="Conflict")
        with pytest.raises(OperationFailedError) as exc_info:
            await wait_for_operation(poller, Deadline.after(5), poll_interval=0.01)
        assert "Conflict" in str(exc_info.value)
