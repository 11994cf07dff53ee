"""Security Center subscription pricing handler.

A pricing exists for every resource type of every subscription and cannot
be deleted; all the handler does is flip its tier. Create and update are
the same PUT, with no import check. Delete is a logged no-op.
"""

from __future__ import annotations

import logging

from .client import DEFAULT_ARM_ENDPOINT, CloudResourceClient
from .errors import ProviderError
from .handler import ArmResourceHandler
from .models import SubscriptionPricing
from .operations import Deadline, OperationTimeouts
from .reader import fetch
from .resource_id import ResourceIdentifier, parse_resource_id

logger = logging.getLogger(__name__)

SECURITY_API_VERSION = "2018-06-01"
SECURITY_PROVIDER = "Microsoft.Security"

PRICING_WRITE_TIMEOUT_SECONDS = 60 * 60


class SubscriptionPricingHandler(ArmResourceHandler[SubscriptionPricing]):
    type_name = "security_center_subscription_pricing"
    model = SubscriptionPricing
    api_version = SECURITY_API_VERSION
    timeouts = OperationTimeouts(
        create_seconds=PRICING_WRITE_TIMEOUT_SECONDS,
        update_seconds=PRICING_WRITE_TIMEOUT_SECONDS,
        delete_seconds=PRICING_WRITE_TIMEOUT_SECONDS,
    )

    def __init__(
        self,
        client: CloudResourceClient,
        subscription_id: str,
        *,
        endpoint_url: str = DEFAULT_ARM_ENDPOINT,
    ) -> None:
        # Pricings always exist, so there is nothing to import first
        super().__init__(client, endpoint_url=endpoint_url, require_import=False)
        self._subscription_id = subscription_id

    def parse_identifier(self, raw: str) -> ResourceIdentifier:
        return parse_resource_id(raw, "pricings", resource_group=False)

    def natural_key(self, desired: SubscriptionPricing) -> str:
        return desired.resource_type

    def _pricing_id(self, resource_type: str) -> ResourceIdentifier:
        return ResourceIdentifier.build(
            self._subscription_id, None, SECURITY_PROVIDER, [("pricings", resource_type)]
        )

    async def _set_tier(
        self, pricing_id: ResourceIdentifier, desired: SubscriptionPricing, deadline: Deadline
    ) -> str:
        remote = await self._put_and_confirm(
            str(pricing_id), {"properties": {"pricingTier": desired.tier}}, deadline
        )
        return remote.id

    async def _create(self, desired: SubscriptionPricing, deadline: Deadline) -> str:
        return await self._set_tier(self._pricing_id(desired.resource_type), desired, deadline)

    async def _update(
        self,
        resource_id: ResourceIdentifier,
        desired: SubscriptionPricing,
        deadline: Deadline,
        prior: SubscriptionPricing | None,
    ) -> str | None:
        tracked_type = resource_id.segment("pricings")
        if tracked_type.lower() != desired.resource_type.lower():
            raise ProviderError(
                f"resource_type cannot change from {tracked_type!r} to "
                f"{desired.resource_type!r}; manage the other pricing as a new resource"
            )
        return await self._set_tier(resource_id, desired, deadline)

    async def _read(
        self,
        resource_id: ResourceIdentifier,
        deadline: Deadline,
        prior: SubscriptionPricing | None,
    ) -> SubscriptionPricing | None:
        remote = await fetch(self._client, self._endpoint, str(resource_id), deadline)
        if remote is None:
            logger.debug(
                "Security Center Subscription pricing was not found",
                extra={"resource_type": resource_id.name},
            )
            return None
        return SubscriptionPricing(
            tier=remote.properties.get("pricingTier"),
            resource_type=resource_id.segment("pricings"),
        )

    async def _delete(self, resource_id: ResourceIdentifier, deadline: Deadline) -> None:
        logger.debug(
            "Security Center Subscription pricing cannot be deleted",
            extra={"resource_id": str(resource_id)},
        )
