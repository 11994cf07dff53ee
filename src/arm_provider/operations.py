"""Deadlines, cancellation and long-running operation polling.

Every handler call runs inside a bounded Deadline threaded down from the
caller. Network calls and polling loops are the only suspension points and
both observe the deadline and its cancellation signal.

The Azure SDK clients are synchronous; their calls run in the default
executor and are raced against the deadline here.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, TypeVar

from azure.core.exceptions import HttpResponseError

from .errors import OperationCancelledError, OperationFailedError, OperationTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default operation timeouts, matching what the ARM resource handlers declare
DEFAULT_CREATE_TIMEOUT_SECONDS = 30 * 60
DEFAULT_READ_TIMEOUT_SECONDS = 5 * 60
DEFAULT_UPDATE_TIMEOUT_SECONDS = 30 * 60
DEFAULT_DELETE_TIMEOUT_SECONDS = 30 * 60

DEFAULT_POLL_INTERVAL_SECONDS = 10


class OperationKind(str, Enum):
    """Lifecycle operations exposed to the orchestration framework."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    IMPORT = "import"


@dataclass(frozen=True)
class OperationTimeouts:
    """Per-operation time limits in seconds. Import shares the read time limit."""

    create_seconds: float = DEFAULT_CREATE_TIMEOUT_SECONDS
    read_seconds: float = DEFAULT_READ_TIMEOUT_SECONDS
    update_seconds: float = DEFAULT_UPDATE_TIMEOUT_SECONDS
    delete_seconds: float = DEFAULT_DELETE_TIMEOUT_SECONDS

    def for_kind(self, kind: OperationKind) -> float:
        match kind:
            case OperationKind.CREATE:
                return self.create_seconds
            case OperationKind.UPDATE:
                return self.update_seconds
            case OperationKind.DELETE:
                return self.delete_seconds
            case _:
                return self.read_seconds


class Deadline:
    """Absolute deadline plus a cancellation signal for one operation.

    Not thread-safe: cancel() must be called from the event loop running the
    operation.
    """

    def __init__(self, expires_at: float) -> None:
        """Create a deadline.

        Args:
            expires_at: Expiry on the time.monotonic() clock.
        """
        self._expires_at = expires_at
        self._cancel_event = asyncio.Event()

    @classmethod
    def after(cls, seconds: float) -> Deadline:
        """Deadline that expires the given number of seconds from now."""
        return cls(time.monotonic() + seconds)

    def remaining(self) -> float:
        """Seconds left before expiry, never negative."""
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Signal in-flight calls and polling loops to stop."""
        self._cancel_event.set()

    def check(self, what: str) -> None:
        """Raise if the operation was cancelled or ran out of time.

        Raises:
            OperationCancelledError: If cancel() was called.
            OperationTimeoutError: If the deadline has passed.
        """
        if self.cancelled:
            raise OperationCancelledError(f"{what} was cancelled")
        if self.expired:
            raise OperationTimeoutError(f"{what} exceeded its deadline")

    async def sleep(self, seconds: float, what: str) -> None:
        """Sleep up to `seconds`, waking early on cancellation."""
        self.check(what)
        try:
            await asyncio.wait_for(
                self._cancel_event.wait(),
                timeout=min(seconds, self.remaining()),
            )
        except TimeoutError:
            pass
        self.check(what)

    async def guard(self, awaitable: Awaitable[T], what: str) -> T:
        """Await a call, abandoning it on expiry or cancellation.

        Raises:
            OperationCancelledError: If cancelled while the call was in flight.
            OperationTimeoutError: If the deadline passed first.
        """
        self.check(what)
        task = asyncio.ensure_future(awaitable)
        cancel_wait = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, cancel_wait},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_wait.cancel()
            if not task.done():
                task.cancel()

        if task in done:
            return task.result()
        if self.cancelled:
            raise OperationCancelledError(f"{what} was cancelled")
        raise OperationTimeoutError(f"{what} exceeded its deadline")


class OperationHandle(Protocol):
    """Handle of a submitted write. azure.core LROPoller satisfies this."""

    def done(self) -> bool: ...

    def result(self, timeout: float | None = None) -> Any: ...


class CompletedOperation:
    """Handle for a write the service completed synchronously."""

    def __init__(self, result: Any = None) -> None:
        self._result = result

    def done(self) -> bool:
        return True

    def result(self, timeout: float | None = None) -> Any:
        return self._result


async def wait_for_operation(
    handle: OperationHandle,
    deadline: Deadline,
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    what: str = "operation",
) -> Any:
    """Block until a long-running operation reaches a terminal state.

    Returns:
        The operation result.

    Raises:
        OperationFailedError: If the service reports the operation failed.
        OperationTimeoutError: If the deadline passes first.
        OperationCancelledError: If the deadline is cancelled while polling.
    """
    try:
        while not handle.done():
            await deadline.sleep(poll_interval, what)
    except OperationTimeoutError:
        logger.error(f"{what} timed out", extra={"poll_interval_seconds": poll_interval})
        raise

    loop = asyncio.get_event_loop()
    try:
        return await loop.run_in_executor(None, handle.result)
    except HttpResponseError as e:
        raise OperationFailedError(f"{what} failed: {e.message}") from e
