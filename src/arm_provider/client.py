"""Cloud client capability and its Azure SDK adapters.

Handlers depend only on the CloudResourceClient protocol. Two adapters
implement it:

- ArmResourceClient: control-plane objects addressed by ARM identifier,
  backed by azure.mgmt.resource.ResourceManagementClient's generic
  *_by_id operations.
- KeyVaultSecretsClient: data-plane secrets addressed by name within a
  vault URL, backed by azure.keyvault.secrets.SecretClient.

The SDK clients are synchronous; every call is pushed onto the default
executor so handlers can race it against their deadline.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, TypeVar

from azure.core.exceptions import ResourceNotFoundError
from azure.core.rest import HttpRequest
from azure.keyvault.secrets import SecretClient, SecretProperties
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import GenericResource

from .operations import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    CompletedOperation,
    Deadline,
    OperationHandle,
    wait_for_operation,
)
from .resource_id import normalize_vault_uri

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ARM_ENDPOINT = "https://management.azure.com"

KEY_VAULT_SECRET_TYPE = "Microsoft.KeyVault/vaults/secrets"


@dataclass(frozen=True)
class Endpoint:
    """Service base URL plus the API version a handler speaks."""

    url: str
    api_version: str


@dataclass
class RemoteObject:
    """Service-side representation of one object.

    Properties keep the service's camelCase keys.
    """

    id: str | None
    name: str | None
    type: str | None = None
    location: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> RemoteObject:
        """Build from an ARM JSON payload (or GenericResource.as_dict())."""
        return cls(
            id=payload.get("id"),
            name=payload.get("name"),
            type=payload.get("type"),
            location=payload.get("location"),
            properties=dict(payload.get("properties") or {}),
            tags=dict(payload.get("tags") or {}),
        )


@dataclass
class ListPage:
    """One page of a listing plus the token for the next page, if any."""

    items: list[RemoteObject] = field(default_factory=list)
    continuation_token: str | None = None


class CloudResourceClient(Protocol):
    """Minimal surface the handlers depend on.

    get() returns None when the object does not exist; list() returns None
    when the parent container does not exist.
    """

    async def get(self, endpoint: Endpoint, path: str) -> RemoteObject | None: ...

    async def list(
        self,
        endpoint: Endpoint,
        parent_path: str,
        collection: str,
        page_size: int | None = None,
        continuation_token: str | None = None,
    ) -> ListPage | None: ...

    async def create_or_update(
        self, endpoint: Endpoint, path: str, body: dict[str, Any]
    ) -> OperationHandle: ...

    async def update(
        self, endpoint: Endpoint, path: str, body: dict[str, Any]
    ) -> OperationHandle: ...

    async def delete(self, endpoint: Endpoint, path: str) -> OperationHandle: ...

    async def await_completion(self, handle: OperationHandle, deadline: Deadline) -> None: ...


async def _in_executor(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


class ArmResourceClient:
    """CloudResourceClient over the generic ARM resource operations."""

    def __init__(
        self,
        client: ResourceManagementClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._client = client
        self._poll_interval = poll_interval

    async def get(self, endpoint: Endpoint, path: str) -> RemoteObject | None:
        try:
            resource = await _in_executor(
                self._client.resources.get_by_id,
                resource_id=path,
                api_version=endpoint.api_version,
            )
        except ResourceNotFoundError:
            logger.debug("Resource not found", extra={"resource_id": path})
            return None
        return RemoteObject.from_payload(resource.as_dict())

    async def list(
        self,
        endpoint: Endpoint,
        parent_path: str,
        collection: str,
        page_size: int | None = None,
        continuation_token: str | None = None,
    ) -> ListPage | None:
        """List one page of a child collection.

        The continuation token is the service's nextLink, which already
        carries the api-version and paging parameters.
        """
        if continuation_token:
            request = HttpRequest("GET", continuation_token)
        else:
            params: dict[str, Any] = {"api-version": endpoint.api_version}
            if page_size:
                params["$top"] = page_size
            request = HttpRequest(
                "GET", f"{parent_path.rstrip('/')}/{collection}", params=params
            )

        response = await _in_executor(self._client.send_request, request)
        if response.status_code == 404:
            logger.debug("Parent not found while listing", extra={"parent": parent_path})
            return None
        response.raise_for_status()

        payload = response.json()
        return ListPage(
            items=[RemoteObject.from_payload(item) for item in payload.get("value", [])],
            continuation_token=payload.get("nextLink"),
        )

    async def create_or_update(
        self, endpoint: Endpoint, path: str, body: dict[str, Any]
    ) -> OperationHandle:
        return await _in_executor(
            self._client.resources.begin_create_or_update_by_id,
            resource_id=path,
            api_version=endpoint.api_version,
            parameters=_generic_resource(body),
        )

    async def update(
        self, endpoint: Endpoint, path: str, body: dict[str, Any]
    ) -> OperationHandle:
        return await _in_executor(
            self._client.resources.begin_update_by_id,
            resource_id=path,
            api_version=endpoint.api_version,
            parameters=_generic_resource(body),
        )

    async def delete(self, endpoint: Endpoint, path: str) -> OperationHandle:
        try:
            return await _in_executor(
                self._client.resources.begin_delete_by_id,
                resource_id=path,
                api_version=endpoint.api_version,
            )
        except ResourceNotFoundError:
            return CompletedOperation()

    async def await_completion(self, handle: OperationHandle, deadline: Deadline) -> None:
        await wait_for_operation(
            handle, deadline, poll_interval=self._poll_interval, what="ARM operation"
        )


def _generic_resource(body: dict[str, Any]) -> GenericResource:
    return GenericResource(
        location=body.get("location"),
        properties=body.get("properties"),
        tags=body.get("tags"),
        kind=body.get("kind"),
    )


class KeyVaultSecretsClient:
    """CloudResourceClient over Key Vault secrets.

    The endpoint URL selects the vault. Paths are the secret name, optionally
    followed by "/{version}". Request bodies use the REST shape:
    {"value", "contentType", "attributes": {"nbf", "exp"}, "tags"} with
    attribute times as datetimes.
    """

    def __init__(
        self,
        credential: Any,
        client_factory: Callable[..., SecretClient] = SecretClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._credential = credential
        self._client_factory = client_factory
        self._poll_interval = poll_interval
        self._clients: dict[str, SecretClient] = {}

    def _client_for(self, endpoint: Endpoint) -> SecretClient:
        key = normalize_vault_uri(endpoint.url)
        client = self._clients.get(key)
        if client is None:
            client = self._client_factory(
                vault_url=endpoint.url,
                credential=self._credential,
                api_version=endpoint.api_version,
            )
            self._clients[key] = client
        return client

    async def get(self, endpoint: Endpoint, path: str) -> RemoteObject | None:
        name, version = _split_secret_path(path)
        try:
            secret = await _in_executor(
                self._client_for(endpoint).get_secret, name, version
            )
        except ResourceNotFoundError:
            return None
        return _secret_object(secret.properties)

    async def list(
        self,
        endpoint: Endpoint,
        parent_path: str,
        collection: str,
        page_size: int | None = None,
        continuation_token: str | None = None,
    ) -> ListPage | None:
        """List one page of secret properties. Values are never returned."""
        client = self._client_for(endpoint)

        def fetch_page() -> ListPage:
            pages = client.list_properties_of_secrets(max_page_size=page_size).by_page(
                continuation_token=continuation_token
            )
            items = [_secret_object(props) for props in next(pages, [])]
            return ListPage(items=items, continuation_token=pages.continuation_token)

        try:
            return await _in_executor(fetch_page)
        except ResourceNotFoundError:
            return None

    async def create_or_update(
        self, endpoint: Endpoint, path: str, body: dict[str, Any]
    ) -> OperationHandle:
        name, _ = _split_secret_path(path)
        attributes = body.get("attributes") or {}
        secret = await _in_executor(
            self._client_for(endpoint).set_secret,
            name,
            body["value"],
            content_type=body.get("contentType"),
            not_before=attributes.get("nbf"),
            expires_on=attributes.get("exp"),
            tags=body.get("tags"),
        )
        return CompletedOperation(_secret_object(secret.properties))

    async def update(
        self, endpoint: Endpoint, path: str, body: dict[str, Any]
    ) -> OperationHandle:
        name, version = _split_secret_path(path)
        attributes = body.get("attributes") or {}
        properties = await _in_executor(
            self._client_for(endpoint).update_secret_properties,
            name,
            version,
            content_type=body.get("contentType"),
            not_before=attributes.get("nbf"),
            expires_on=attributes.get("exp"),
            tags=body.get("tags"),
        )
        return CompletedOperation(_secret_object(properties))

    async def delete(self, endpoint: Endpoint, path: str) -> OperationHandle:
        name, _ = _split_secret_path(path)
        try:
            return await _in_executor(self._client_for(endpoint).begin_delete_secret, name)
        except ResourceNotFoundError:
            return CompletedOperation()

    async def await_completion(self, handle: OperationHandle, deadline: Deadline) -> None:
        await wait_for_operation(
            handle, deadline, poll_interval=self._poll_interval, what="Key Vault operation"
        )


def _split_secret_path(path: str) -> tuple[str, str | None]:
    name, _, version = path.strip("/").partition("/")
    return name, version or None


def _rfc3339(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


def _secret_object(props: SecretProperties) -> RemoteObject:
    return RemoteObject(
        id=props.id,
        name=props.name,
        type=KEY_VAULT_SECRET_TYPE,
        properties={
            "contentType": props.content_type,
            "enabled": props.enabled,
            "notBefore": _rfc3339(props.not_before),
            "expires": _rfc3339(props.expires_on),
            "version": props.version,
        },
        tags=dict(props.tags or {}),
    )
