"""Handler registry: resource type name to handler instance.

The registry is built once at start-up. Handlers receive the client
capabilities they need through their constructors.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from .aggregate import MySqlConfigurationSetHandler, PostgreSqlConfigurationSetHandler
from .client import CloudResourceClient
from .config import ProviderConfig
from .errors import UnknownResourceTypeError
from .flow_log import FlowLogHandler
from .handler import ResourceHandler
from .keyvault_secret import KeyVaultSecretHandler
from .pricing import SubscriptionPricingHandler
from .sql_auditing import ServerExtendedAuditingHandler
from .sql_encryption import TransparentDataEncryptionHandler

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Lookup of handlers by resource type name."""

    def __init__(self, handlers: list[ResourceHandler]) -> None:
        self._handlers: dict[str, ResourceHandler] = {}
        for handler in handlers:
            if handler.type_name in self._handlers:
                raise ValueError(f"Duplicate handler for resource type {handler.type_name!r}")
            self._handlers[handler.type_name] = handler

    def get(self, type_name: str) -> ResourceHandler:
        """Handler for a resource type.

        Raises:
            UnknownResourceTypeError: If no handler is registered under the name.
        """
        try:
            return self._handlers[type_name]
        except KeyError:
            raise UnknownResourceTypeError(
                f"Unknown resource type {type_name!r}; expected one of {self.type_names()}"
            ) from None

    def type_names(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._handlers

    def __iter__(self) -> Iterator[ResourceHandler]:
        return iter(self._handlers[name] for name in self.type_names())

    def __len__(self) -> int:
        return len(self._handlers)


def build_registry(
    config: ProviderConfig,
    arm_client: CloudResourceClient,
    secrets_client: CloudResourceClient,
) -> HandlerRegistry:
    """Create every handler with its clients and settings."""
    subscription_id = config.subscription_id
    endpoint_url = config.arm_endpoint

    registry = HandlerRegistry(
        [
            KeyVaultSecretHandler(
                arm_client,
                secrets_client,
                subscription_id,
                endpoint_url=endpoint_url,
                require_import=config.require_import,
                list_page_size=config.secret_list_page_size,
                list_max_pages=config.secret_list_max_pages,
            ),
            FlowLogHandler(
                arm_client,
                subscription_id,
                endpoint_url=endpoint_url,
                require_import=config.require_import,
            ),
            SubscriptionPricingHandler(arm_client, subscription_id, endpoint_url=endpoint_url),
            TransparentDataEncryptionHandler(
                arm_client, endpoint_url=endpoint_url, require_import=config.require_import
            ),
            ServerExtendedAuditingHandler(
                arm_client, endpoint_url=endpoint_url, require_import=config.require_import
            ),
            MySqlConfigurationSetHandler(arm_client, subscription_id, endpoint_url=endpoint_url),
            PostgreSqlConfigurationSetHandler(
                arm_client, subscription_id, endpoint_url=endpoint_url
            ),
        ]
    )

    logger.debug("Handler registry built", extra={"types": registry.type_names()})
    return registry
