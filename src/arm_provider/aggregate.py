"""Configuration sets: virtual resources over a database server's settings.

A configuration set is the map of every configuration value of one MySQL or
PostgreSQL server, keyed by setting name. It is a projection with no
identity of its own: Read lists the server's configurations and rebuilds
the map each time, while Create, Update and Delete do not touch the service
because the set does not own the settings it reports.
"""

from __future__ import annotations

import logging
from typing import ClassVar

from .client import DEFAULT_ARM_ENDPOINT, CloudResourceClient, Endpoint
from .handler import ResourceHandler
from .models import ConfigurationSet
from .operations import Deadline, OperationTimeouts
from .reader import list_all
from .resource_id import ResourceIdentifier, parse_resource_id

logger = logging.getLogger(__name__)

CONFIGURATIONS_COLLECTION = "configurations"

# Default read time limit for PostgreSQL configuration listings
POSTGRESQL_READ_TIMEOUT_SECONDS = 30


class ConfigurationSetHandler(ResourceHandler[ConfigurationSet]):
    """Aggregates all configurations of a server into one map."""

    model = ConfigurationSet
    provider: ClassVar[str]
    api_version: ClassVar[str]

    def __init__(
        self,
        client: CloudResourceClient,
        subscription_id: str,
        *,
        endpoint_url: str = DEFAULT_ARM_ENDPOINT,
    ) -> None:
        self._client = client
        self._subscription_id = subscription_id
        self._endpoint = Endpoint(endpoint_url, self.api_version)

    def parse_identifier(self, raw: str) -> ResourceIdentifier:
        return parse_resource_id(raw, "servers")

    def natural_key(self, desired: ConfigurationSet) -> str:
        return f"{desired.resource_group_name}/{desired.server_name}"

    def server_id(self, desired: ConfigurationSet) -> ResourceIdentifier:
        return ResourceIdentifier.build(
            self._subscription_id,
            desired.resource_group_name,
            self.provider,
            [("servers", desired.server_name)],
        )

    async def read_aggregate(
        self, parent_id: ResourceIdentifier, deadline: Deadline
    ) -> dict[str, str] | None:
        """Map of configuration name to value; None when the server does not exist.

        Configurations reported without a name or value are skipped.
        """
        children = await list_all(
            self._client, self._endpoint, str(parent_id), CONFIGURATIONS_COLLECTION, deadline
        )
        if children is None:
            logger.warning(
                "Server was not found",
                extra={
                    "server_name": parent_id.name,
                    "resource_group": parent_id.resource_group,
                    "type_name": self.type_name,
                },
            )
            return None

        config_map: dict[str, str] = {}
        for child in children:
            value = child.properties.get("value")
            if not child.name or value is None:
                continue
            config_map[child.name] = str(value)
        return config_map

    async def _create(self, desired: ConfigurationSet, deadline: Deadline) -> str:
        return str(self.server_id(desired))

    async def _update(
        self,
        resource_id: ResourceIdentifier,
        desired: ConfigurationSet,
        deadline: Deadline,
        prior: ConfigurationSet | None,
    ) -> str | None:
        return str(self.server_id(desired))

    async def _read(
        self,
        resource_id: ResourceIdentifier,
        deadline: Deadline,
        prior: ConfigurationSet | None,
    ) -> ConfigurationSet | None:
        config_map = await self.read_aggregate(resource_id, deadline)
        if config_map is None:
            return None
        return ConfigurationSet(
            resource_group_name=resource_id.resource_group,
            server_name=resource_id.segment("servers"),
            config_map=config_map,
        )

    async def _delete(self, resource_id: ResourceIdentifier, deadline: Deadline) -> None:
        return None


class MySqlConfigurationSetHandler(ConfigurationSetHandler):
    type_name = "mysql_configuration_set"
    provider = "Microsoft.DBforMySQL"
    api_version = "2017-12-01"


class PostgreSqlConfigurationSetHandler(ConfigurationSetHandler):
    type_name = "postgresql_configuration_set"
    provider = "Microsoft.DBforPostgreSQL"
    api_version = "2017-12-01"
    timeouts = OperationTimeouts(read_seconds=POSTGRESQL_READ_TIMEOUT_SECONDS)
