"""Transparent data encryption of a SQL database.

Only Read talks to the service. Create and update derive the identifier
from the declared database; delete leaves the database setting alone.
"""

from __future__ import annotations

import logging

from .drift import DriftPolicy, normalize_case
from .handler import ArmResourceHandler
from .models import TransparentDataEncryption
from .operations import Deadline
from .reader import fetch
from .resource_id import ResourceIdentifier, parse_resource_id

logger = logging.getLogger(__name__)

SQL_API_VERSION = "2014-04-01"

TDE_COLLECTION = "transparentDataEncryption"
TDE_NAME = "current"


class TransparentDataEncryptionHandler(ArmResourceHandler[TransparentDataEncryption]):
    type_name = "mssql_database_transparent_data_encryption"
    model = TransparentDataEncryption
    api_version = SQL_API_VERSION
    drift_policy = DriftPolicy(
        normalizers={"server_id": normalize_case, "database_id": normalize_case}
    )

    def parse_identifier(self, raw: str) -> ResourceIdentifier:
        return parse_resource_id(raw, "servers", "databases", TDE_COLLECTION)

    def natural_key(self, desired: TransparentDataEncryption) -> str:
        return desired.database_id

    @staticmethod
    def identifier_for(desired: TransparentDataEncryption) -> str:
        database_id = parse_resource_id(desired.database_id, "servers", "databases")
        return str(database_id.child(TDE_COLLECTION, TDE_NAME))

    async def _create(self, desired: TransparentDataEncryption, deadline: Deadline) -> str:
        return self.identifier_for(desired)

    async def _update(
        self,
        resource_id: ResourceIdentifier,
        desired: TransparentDataEncryption,
        deadline: Deadline,
        prior: TransparentDataEncryption | None,
    ) -> str | None:
        return self.identifier_for(desired)

    async def _read(
        self,
        resource_id: ResourceIdentifier,
        deadline: Deadline,
        prior: TransparentDataEncryption | None,
    ) -> TransparentDataEncryption | None:
        remote = await fetch(self._client, self._endpoint, str(resource_id), deadline)
        if remote is None:
            return None

        server_name = resource_id.segment("servers")
        database_name = resource_id.segment("databases")
        server_id = ResourceIdentifier.build(
            resource_id.subscription_id,
            resource_id.resource_group,
            resource_id.provider,
            [("servers", server_name)],
        )
        database_id = server_id.child("databases", database_name)

        # Older API versions report the state as "status"
        state = remote.properties.get("state") or remote.properties.get("status") or ""

        return TransparentDataEncryption(
            server_id=str(server_id),
            database_id=str(database_id),
            state=state,
        )

    async def _delete(self, resource_id: ResourceIdentifier, deadline: Deadline) -> None:
        logger.debug(
            "Transparent data encryption is left unchanged on delete",
            extra={"resource_id": str(resource_id)},
        )
