"""Resource handler base classes.

A handler converges one remote object towards its declared state. The
orchestration framework calls create/read/update/delete/import_state; each
call runs to completion within one Deadline and operates on exactly one
identifier.

Results the framework acts on:
- read() returning None: the object (or its parent) is gone, clear state
- update() returning None: the parent is gone, clear state
- update() returning a different identifier: the object was replaced
- any ProviderError: fatal for this call, annotated with operation and id
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, TypeVar

from .client import DEFAULT_ARM_ENDPOINT, CloudResourceClient, Endpoint, RemoteObject
from .drift import DriftPolicy, FieldDiff
from .errors import AlreadyExistsError, MissingResourceError, PostCreateReadError, reported_as
from .models import ProviderModel
from .operations import Deadline, OperationKind, OperationTimeouts
from .reader import fetch

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=ProviderModel)


class ResourceHandler(ABC, Generic[ModelT]):
    """Lifecycle operations for one resource type.

    Subclasses implement the underscore methods; the public methods add the
    deadline, error annotation and logging shared by every type.
    """

    type_name: ClassVar[str]
    model: ClassVar[type[ProviderModel]]
    timeouts: ClassVar[OperationTimeouts] = OperationTimeouts()
    drift_policy: ClassVar[DriftPolicy] = DriftPolicy()

    def deadline_for(self, kind: OperationKind, deadline: Deadline | None) -> Deadline:
        """Use the caller's deadline, or start one from this type's timeouts."""
        if deadline is not None:
            return deadline
        return Deadline.after(self.timeouts.for_kind(kind))

    @abstractmethod
    def parse_identifier(self, raw: str) -> Any:
        """Parse a stored identifier, raising MalformedIdError if it is invalid."""

    def natural_key(self, desired: ModelT) -> str | None:
        """Human-readable key of a desired object that has no identifier yet."""
        return getattr(desired, "name", None)

    def diff(self, desired: ModelT, observed: ModelT | None) -> list[FieldDiff]:
        """Differences between desired and observed state under this type's drift policy."""
        return self.drift_policy.diff(desired, observed)

    async def create(self, desired: ModelT, deadline: Deadline | None = None) -> str:
        """Create the object and return its identifier."""
        deadline = self.deadline_for(OperationKind.CREATE, deadline)
        with reported_as(OperationKind.CREATE.value, None):
            key = self.natural_key(desired)
        with reported_as(OperationKind.CREATE.value, key):
            logger.info("Creating resource", extra={"type_name": self.type_name, "key": key})
            resource_id = await self._create(desired, deadline)
            logger.info(
                "Resource created",
                extra={"type_name": self.type_name, "resource_id": resource_id},
            )
            return resource_id

    async def read(
        self,
        identifier: str,
        deadline: Deadline | None = None,
        prior: ModelT | None = None,
    ) -> ModelT | None:
        """Current state of the object, or None if it no longer exists.

        Args:
            identifier: Stored identifier.
            deadline: Operation deadline; defaults to the type's read timeout.
            prior: Last known state, for values the service never returns.
        """
        deadline = self.deadline_for(OperationKind.READ, deadline)
        with reported_as(OperationKind.READ.value, identifier):
            resource_id = self.parse_identifier(identifier)
            state = await self._read(resource_id, deadline, prior)
            if state is None:
                logger.debug(
                    "Resource not found, removing from state",
                    extra={"type_name": self.type_name, "resource_id": identifier},
                )
            return state

    async def update(
        self,
        identifier: str,
        desired: ModelT,
        deadline: Deadline | None = None,
        prior: ModelT | None = None,
    ) -> str | None:
        """Converge an existing object.

        Returns:
            The identifier to track from now on (new if the object was
            replaced), or None if the parent container no longer exists.
        """
        deadline = self.deadline_for(OperationKind.UPDATE, deadline)
        with reported_as(OperationKind.UPDATE.value, identifier):
            resource_id = self.parse_identifier(identifier)
            logger.info(
                "Updating resource",
                extra={"type_name": self.type_name, "resource_id": identifier},
            )
            new_identifier = await self._update(resource_id, desired, deadline, prior)
            if new_identifier is None:
                logger.warning(
                    "Parent no longer exists, removing from state",
                    extra={"type_name": self.type_name, "resource_id": identifier},
                )
            elif new_identifier != identifier:
                logger.info(
                    "Resource replaced",
                    extra={
                        "type_name": self.type_name,
                        "previous_id": identifier,
                        "resource_id": new_identifier,
                    },
                )
            return new_identifier

    async def delete(self, identifier: str, deadline: Deadline | None = None) -> None:
        """Delete the object. Deleting an absent object succeeds."""
        deadline = self.deadline_for(OperationKind.DELETE, deadline)
        with reported_as(OperationKind.DELETE.value, identifier):
            resource_id = self.parse_identifier(identifier)
            logger.info(
                "Deleting resource",
                extra={"type_name": self.type_name, "resource_id": identifier},
            )
            await self._delete(resource_id, deadline)

    async def import_state(self, identifier: str, deadline: Deadline | None = None) -> ModelT:
        """Populate state from an existing object.

        Raises:
            MalformedIdError: If the identifier cannot be parsed.
            MissingResourceError: If the object does not exist.
        """
        deadline = self.deadline_for(OperationKind.IMPORT, deadline)
        with reported_as(OperationKind.IMPORT.value, identifier):
            resource_id = self.parse_identifier(identifier)
            state = await self._read(resource_id, deadline, None)
            if state is None:
                raise MissingResourceError(
                    f"Cannot import non-existent remote object as {self.type_name!r}"
                )
            return state

    @abstractmethod
    async def _create(self, desired: ModelT, deadline: Deadline) -> str: ...

    @abstractmethod
    async def _read(
        self, resource_id: Any, deadline: Deadline, prior: ModelT | None
    ) -> ModelT | None: ...

    @abstractmethod
    async def _update(
        self, resource_id: Any, desired: ModelT, deadline: Deadline, prior: ModelT | None
    ) -> str | None: ...

    @abstractmethod
    async def _delete(self, resource_id: Any, deadline: Deadline) -> None: ...


class ArmResourceHandler(ResourceHandler[ModelT]):
    """Handler for an object managed through ARM.

    Provides the shared create sequence: resolve the parent, refuse to
    adopt an existing object unless imported, submit, wait, read back.
    """

    api_version: ClassVar[str]

    def __init__(
        self,
        client: CloudResourceClient,
        *,
        endpoint_url: str = DEFAULT_ARM_ENDPOINT,
        require_import: bool = True,
    ) -> None:
        self._client = client
        self._endpoint_url = endpoint_url
        self._endpoint = Endpoint(endpoint_url, self.api_version)
        self._require_import = require_import

    def endpoint(self, api_version: str | None = None) -> Endpoint:
        if api_version is None:
            return self._endpoint
        return Endpoint(self._endpoint_url, api_version)

    async def _require_parent(
        self, parent_path: str, deadline: Deadline, api_version: str | None = None
    ) -> RemoteObject | None:
        """Fetch the containing object; None when it does not exist."""
        parent = await fetch(self._client, self.endpoint(api_version), parent_path, deadline)
        if parent is None:
            logger.debug("Parent not found", extra={"parent": parent_path})
        return parent

    async def _ensure_absent(self, path: str, deadline: Deadline) -> None:
        """Raise AlreadyExistsError if the object exists and import protection is on."""
        if not self._require_import:
            return
        existing = await fetch(self._client, self._endpoint, path, deadline)
        if existing is not None and existing.id:
            raise AlreadyExistsError(self.type_name, existing.id)

    async def _submit(self, path: str, body: dict[str, Any], deadline: Deadline) -> None:
        handle = await deadline.guard(
            self._client.create_or_update(self._endpoint, path, body), f"PUT {path}"
        )
        await self._client.await_completion(handle, deadline)

    async def _put_and_confirm(
        self, path: str, body: dict[str, Any], deadline: Deadline
    ) -> RemoteObject:
        """Submit a PUT, wait for it, and read the object back.

        Raises:
            PostCreateReadError: If the read-back finds no object or no identifier.
        """
        await self._submit(path, body, deadline)
        remote = await fetch(self._client, self._endpoint, path, deadline)
        if remote is None or not remote.id:
            raise PostCreateReadError(
                f"{self.type_name} at {path!r} was accepted but reading it back returned no ID"
            )
        return remote
