"""Error taxonomy shared by every resource handler.

"Not found" has no exception type: handlers report an
absent remote object by returning ``None`` so the caller clears its tracked
state. Everything here is fatal for the current operation and surfaces to
the caller with the operation name and the originating identifier.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from azure.core.exceptions import AzureError
from pydantic import ValidationError

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Base class for handler failures.

    Attributes:
        operation: Operation that failed (create, read, update, delete, import).
        resource_id: Identifier (or natural key) the operation was working on.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        resource_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.resource_id = resource_id

    def annotate(self, operation: str, resource_id: str | None) -> None:
        """Fill in operation context without overwriting what is already set."""
        if self.operation is None:
            self.operation = operation
        if self.resource_id is None:
            self.resource_id = resource_id

    def __str__(self) -> str:
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.resource_id:
            context.append(f"id={self.resource_id}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class MalformedIdError(ProviderError):
    """Raised when an identifier string fails structural parsing."""

    pass


class AlreadyExistsError(ProviderError):
    """Raised on create when the object already exists and must be imported."""

    def __init__(self, type_name: str, existing_id: str) -> None:
        super().__init__(
            f"A resource with the ID {existing_id!r} already exists - to be managed "
            f"it needs to be imported into state as {type_name!r}",
            resource_id=existing_id,
        )
        self.type_name = type_name
        self.existing_id = existing_id


class TransientFailureError(ProviderError):
    """Raised when a synchronous service call fails.

    Retrying is left to the caller's own policy.
    """

    pass


class PostCreateReadError(ProviderError):
    """Raised when a write was accepted but the follow-up read found no identifier.

    Not retryable: replaying the write risks duplicate side effects.
    """

    pass


class OperationTimeoutError(ProviderError):
    """Raised when the operation deadline passes while waiting on the service."""

    pass


class OperationCancelledError(ProviderError):
    """Raised when the caller cancels an in-flight operation."""

    pass


class OperationFailedError(ProviderError):
    """Raised when a long-running operation reports a terminal failure."""

    pass


class MissingResourceError(ProviderError):
    """Raised when an object the operation depends on does not exist.

    Covers importing an absent object and creating under an absent parent.
    """

    pass


class UnknownResourceTypeError(ProviderError):
    """Raised when no handler is registered for a resource type name."""

    pass


class UnexpectedResponseError(ProviderError):
    """Raised when the service returns an object missing fields the model requires."""

    pass


@contextmanager
def reported_as(operation: str, resource_id: str | None) -> Iterator[None]:
    """Attach operation context to errors escaping a handler operation.

    Provider errors are annotated and re-raised. Any other Azure SDK error
    that reaches this point came from a synchronous call and is surfaced as a
    TransientFailureError so the caller can apply its own retry policy. A
    model that fails validation while being built from service data becomes
    an UnexpectedResponseError.
    """
    try:
        yield
    except ProviderError as e:
        e.annotate(operation, resource_id)
        raise
    except AzureError as e:
        logger.warning(
            "Azure call failed",
            extra={
                "operation": operation,
                "resource_id": resource_id,
                "error_type": type(e).__name__,
            },
        )
        raise TransientFailureError(
            str(e), operation=operation, resource_id=resource_id
        ) from e
    except ValidationError as e:
        fields = ", ".join(".".join(str(loc) for loc in err["loc"]) for err in e.errors())
        raise UnexpectedResponseError(
            f"Service response is missing or has invalid fields: {fields}",
            operation=operation,
            resource_id=resource_id,
        ) from e
