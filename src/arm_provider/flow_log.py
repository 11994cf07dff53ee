"""Network watcher flow log handler.

A flow log belongs to a network watcher and targets one network security
group. Create and update share a single converge path; the watcher must
exist and its location is used for the flow log.

A disabled flow log is reported with placeholder retention settings and an
empty storage account ID, which the drift policy and read path account for.
"""

from __future__ import annotations

import logging
from typing import Any

from .client import DEFAULT_ARM_ENDPOINT, CloudResourceClient
from .drift import DriftPolicy, SuppressionRule, normalize_case, normalize_location
from .errors import MissingResourceError
from .handler import ArmResourceHandler
from .models import NetworkWatcherFlowLog, RetentionPolicy, TrafficAnalytics
from .operations import Deadline
from .reader import fetch
from .resource_id import ResourceIdentifier, parse_resource_id

logger = logging.getLogger(__name__)

NETWORK_API_VERSION = "2019-11-01"
NETWORK_PROVIDER = "Microsoft.Network"
FLOW_LOG_FORMAT_TYPE = "JSON"


class FlowLogHandler(ArmResourceHandler[NetworkWatcherFlowLog]):
    """Converges a network watcher flow log."""

    type_name = "network_watcher_flow_log"
    model = NetworkWatcherFlowLog
    api_version = NETWORK_API_VERSION
    drift_policy = DriftPolicy(
        suppressions=(
            SuppressionRule(
                field="retention_policy.enabled",
                toggle="enabled",
                reason="a disabled flow log reports retention enabled as false",
            ),
            SuppressionRule(
                field="retention_policy.days",
                toggle="enabled",
                reason="a disabled flow log reports retention days as 0",
            ),
        ),
        normalizers={
            "location": normalize_location,
            "traffic_analytics.workspace_region": normalize_location,
            "network_security_group_id": normalize_case,
            "storage_account_id": normalize_case,
        },
    )

    def __init__(
        self,
        client: CloudResourceClient,
        subscription_id: str,
        *,
        endpoint_url: str = DEFAULT_ARM_ENDPOINT,
        require_import: bool = True,
    ) -> None:
        super().__init__(client, endpoint_url=endpoint_url, require_import=require_import)
        self._subscription_id = subscription_id

    def parse_identifier(self, raw: str) -> ResourceIdentifier:
        return parse_resource_id(raw, "networkWatchers", "flowLogs")

    def natural_key(self, desired: NetworkWatcherFlowLog) -> str:
        return f"{desired.network_watcher_name}/{self.flow_log_name(desired)}"

    @staticmethod
    def flow_log_name(desired: NetworkWatcherFlowLog) -> str:
        """Declared name, or the name ARM assigns to flow logs configured per NSG."""
        if desired.name:
            return desired.name
        nsg_name = ResourceIdentifier.parse(desired.network_security_group_id).name
        return f"{NETWORK_PROVIDER}{desired.resource_group_name}{nsg_name}"

    def _flow_log_id(self, desired: NetworkWatcherFlowLog) -> ResourceIdentifier:
        watcher_id = ResourceIdentifier.build(
            self._subscription_id,
            desired.resource_group_name,
            NETWORK_PROVIDER,
            [("networkWatchers", desired.network_watcher_name)],
        )
        return watcher_id.child("flowLogs", self.flow_log_name(desired))

    @staticmethod
    def _body(desired: NetworkWatcherFlowLog, location: str | None) -> dict[str, Any]:
        properties: dict[str, Any] = {
            "targetResourceId": desired.network_security_group_id,
            "storageId": desired.storage_account_id,
            "enabled": desired.enabled,
            "retentionPolicy": {
                "enabled": desired.retention_policy.enabled,
                "days": desired.retention_policy.days,
            },
        }
        if desired.version is not None:
            properties["format"] = {"type": FLOW_LOG_FORMAT_TYPE, "version": desired.version}

        analytics = desired.traffic_analytics
        if analytics is not None:
            properties["flowAnalyticsConfiguration"] = {
                "networkWatcherFlowAnalyticsConfiguration": {
                    "enabled": analytics.enabled,
                    "workspaceId": analytics.workspace_id,
                    "workspaceRegion": analytics.workspace_region,
                    "workspaceResourceId": analytics.workspace_resource_id,
                }
            }

        return {"location": location, "properties": properties}

    async def _converge(
        self,
        flow_log_id: ResourceIdentifier,
        desired: NetworkWatcherFlowLog,
        watcher_location: str | None,
        deadline: Deadline,
    ) -> str:
        remote = await self._put_and_confirm(
            str(flow_log_id), self._body(desired, watcher_location), deadline
        )
        return remote.id

    async def _create(self, desired: NetworkWatcherFlowLog, deadline: Deadline) -> str:
        flow_log_id = self._flow_log_id(desired)
        watcher_id = flow_log_id.parent()
        watcher = await self._require_parent(str(watcher_id), deadline)
        if watcher is None:
            raise MissingResourceError(
                f"Network Watcher {watcher_id.name!r} "
                f"(Resource Group {watcher_id.resource_group!r}) was not found",
                resource_id=str(watcher_id),
            )

        await self._ensure_absent(str(flow_log_id), deadline)
        return await self._converge(flow_log_id, desired, watcher.location, deadline)

    async def _update(
        self,
        resource_id: ResourceIdentifier,
        desired: NetworkWatcherFlowLog,
        deadline: Deadline,
        prior: NetworkWatcherFlowLog | None,
    ) -> str | None:
        watcher = await self._require_parent(str(resource_id.parent()), deadline)
        if watcher is None:
            return None
        return await self._converge(resource_id, desired, watcher.location, deadline)

    async def _read(
        self,
        resource_id: ResourceIdentifier,
        deadline: Deadline,
        prior: NetworkWatcherFlowLog | None,
    ) -> NetworkWatcherFlowLog | None:
        remote = await fetch(self._client, self._endpoint, str(resource_id), deadline)
        if remote is None:
            return None

        props = remote.properties

        # The service reports "" while the flow log is disabled
        storage_id = props.get("storageId") or ""
        if not storage_id and prior is not None:
            storage_id = prior.storage_account_id

        retention = props.get("retentionPolicy") or {}
        flow_format = props.get("format") or {}

        return NetworkWatcherFlowLog(
            name=resource_id.name,
            network_watcher_name=resource_id.segment("networkWatchers"),
            resource_group_name=resource_id.resource_group,
            network_security_group_id=props.get("targetResourceId", ""),
            storage_account_id=storage_id,
            enabled=bool(props.get("enabled", False)),
            retention_policy=RetentionPolicy(
                enabled=bool(retention.get("enabled", False)),
                days=int(retention.get("days") or 0),
            ),
            traffic_analytics=_flatten_traffic_analytics(props.get("flowAnalyticsConfiguration")),
            version=flow_format.get("version") or None,
            location=normalize_location(remote.location),
        )

    async def _delete(self, resource_id: ResourceIdentifier, deadline: Deadline) -> None:
        remote = await fetch(self._client, self._endpoint, str(resource_id), deadline)
        if remote is None:
            return

        # A disabled flow log is already in the absent logical state
        if not remote.properties.get("enabled"):
            logger.debug(
                "Flow log is disabled, nothing to delete",
                extra={"resource_id": str(resource_id)},
            )
            return

        handle = await deadline.guard(
            self._client.delete(self._endpoint, str(resource_id)), f"DELETE {resource_id}"
        )
        await self._client.await_completion(handle, deadline)


def _flatten_traffic_analytics(config: dict[str, Any] | None) -> TrafficAnalytics | None:
    settings = (config or {}).get("networkWatcherFlowAnalyticsConfiguration")
    if not settings or not settings.get("workspaceId"):
        return None
    return TrafficAnalytics(
        enabled=bool(settings.get("enabled", False)),
        workspace_id=settings["workspaceId"],
        workspace_region=settings.get("workspaceRegion") or "",
        workspace_resource_id=settings.get("workspaceResourceId") or "",
    )
