"""Extended auditing policy of a SQL server.

The policy is a singleton child of the server ("…/extendedAuditingSettings/
default") that always exists. An absent policy block in the desired state
means auditing is disabled; deleting the resource disables auditing.
"""

from __future__ import annotations

import logging
from typing import Any

from .drift import DriftPolicy, normalize_case
from .errors import MissingResourceError
from .handler import ArmResourceHandler
from .models import ExtendedAuditingPolicy, ServerExtendedAuditingPolicy
from .operations import Deadline
from .reader import fetch
from .resource_id import ResourceIdentifier, parse_resource_id

logger = logging.getLogger(__name__)

AUDITING_API_VERSION = "2017-03-01-preview"
SERVER_API_VERSION = "2019-06-01-preview"

AUDITING_COLLECTION = "extendedAuditingSettings"
AUDITING_NAME = "default"

STATE_ENABLED = "Enabled"
STATE_DISABLED = "Disabled"


def expand_auditing_policy(policy: ExtendedAuditingPolicy | None) -> dict[str, Any]:
    """Request properties for a declared policy block (None disables auditing)."""
    if policy is None:
        return {"state": STATE_DISABLED}

    properties: dict[str, Any] = {
        "state": STATE_ENABLED,
        "storageEndpoint": policy.storage_endpoint,
        "storageAccountAccessKey": policy.storage_account_access_key,
    }
    if policy.storage_account_access_key_is_secondary is not None:
        properties["isStorageSecondaryKeyInUse"] = policy.storage_account_access_key_is_secondary
    if policy.retention_in_days is not None:
        properties["retentionDays"] = policy.retention_in_days
    return properties


def flatten_auditing_policy(
    properties: dict[str, Any] | None,
    prior: ExtendedAuditingPolicy | None = None,
) -> ExtendedAuditingPolicy | None:
    """Policy block from service properties; a disabled policy has no block.

    The storage access key is never returned by the service and is carried
    over from `prior`.
    """
    if not properties or properties.get("state", STATE_DISABLED) == STATE_DISABLED:
        return None
    return ExtendedAuditingPolicy(
        storage_endpoint=properties.get("storageEndpoint") or "",
        storage_account_access_key=prior.storage_account_access_key if prior else None,
        storage_account_access_key_is_secondary=bool(
            properties.get("isStorageSecondaryKeyInUse", False)
        ),
        retention_in_days=int(properties.get("retentionDays") or 0),
    )


class ServerExtendedAuditingHandler(ArmResourceHandler[ServerExtendedAuditingPolicy]):
    type_name = "mssql_server_extended_auditing_policy"
    model = ServerExtendedAuditingPolicy
    api_version = AUDITING_API_VERSION
    drift_policy = DriftPolicy(
        normalizers={
            "server_id": normalize_case,
            "extended_auditing_policy.storage_endpoint": normalize_case,
        }
    )

    def parse_identifier(self, raw: str) -> ResourceIdentifier:
        return parse_resource_id(raw, "servers", AUDITING_COLLECTION)

    def natural_key(self, desired: ServerExtendedAuditingPolicy) -> str:
        return desired.server_id

    async def _apply(
        self,
        server_id: ResourceIdentifier,
        desired: ServerExtendedAuditingPolicy,
        deadline: Deadline,
    ) -> str:
        remote = await self._put_and_confirm(
            str(server_id.child(AUDITING_COLLECTION, AUDITING_NAME)),
            {"properties": expand_auditing_policy(desired.extended_auditing_policy)},
            deadline,
        )
        return remote.id

    async def _create(self, desired: ServerExtendedAuditingPolicy, deadline: Deadline) -> str:
        server_id = parse_resource_id(desired.server_id, "servers")
        if await self._require_parent(str(server_id), deadline, SERVER_API_VERSION) is None:
            raise MissingResourceError(
                f"SQL Server {server_id.name!r} (Resource Group {server_id.resource_group!r}) "
                "was not found",
                resource_id=str(server_id),
            )
        return await self._apply(server_id, desired, deadline)

    async def _update(
        self,
        resource_id: ResourceIdentifier,
        desired: ServerExtendedAuditingPolicy,
        deadline: Deadline,
        prior: ServerExtendedAuditingPolicy | None,
    ) -> str | None:
        server_id = resource_id.parent()
        if await self._require_parent(str(server_id), deadline, SERVER_API_VERSION) is None:
            return None
        return await self._apply(server_id, desired, deadline)

    async def _read(
        self,
        resource_id: ResourceIdentifier,
        deadline: Deadline,
        prior: ServerExtendedAuditingPolicy | None,
    ) -> ServerExtendedAuditingPolicy | None:
        remote = await fetch(self._client, self._endpoint, str(resource_id), deadline)
        if remote is None:
            return None
        return ServerExtendedAuditingPolicy(
            server_id=str(resource_id.parent()),
            extended_auditing_policy=flatten_auditing_policy(
                remote.properties,
                prior.extended_auditing_policy if prior is not None else None,
            ),
        )

    async def _delete(self, resource_id: ResourceIdentifier, deadline: Deadline) -> None:
        remote = await fetch(self._client, self._endpoint, str(resource_id), deadline)
        if remote is None:
            return
        if remote.properties.get("state", STATE_DISABLED) == STATE_DISABLED:
            logger.debug("Auditing already disabled", extra={"resource_id": str(resource_id)})
            return

        await self._submit(str(resource_id), {"properties": {"state": STATE_DISABLED}}, deadline)
