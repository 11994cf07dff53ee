"""Pydantic models for the desired state of each resource type.

These models provide:
1. Type-safe parsing of declared configuration (snake_case or camelCase)
2. Validation at the boundary (fail fast, fail loudly)
3. The shape handlers report back from Read and Import

Optional attributes are ``X | None``: absent means "not declared" (or, on
the way back from Read, "the service did not report it").
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Annotated, ClassVar

from pydantic import BaseModel, Field, field_validator

# Key Vault object names: alphanumerics and dashes
VALID_SECRET_NAME_PATTERN = r"^[0-9a-zA-Z-]+$"

PRICING_TIERS = frozenset({"Free", "Standard"})
PRICING_RESOURCE_TYPES = frozenset(
    {
        "AppServices",
        "ContainerRegistry",
        "KeyVaults",
        "KubernetesService",
        "SqlServers",
        "SqlServerVirtualMachines",
        "StorageAccounts",
        "VirtualMachines",
        "Arm",
        "Dns",
    }
)
DEFAULT_PRICING_RESOURCE_TYPE = "VirtualMachines"

MAX_AUDIT_RETENTION_DAYS = 3285


def _validate_rfc3339(value: str | None) -> str | None:
    if value is None:
        return value
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"must be an RFC3339 timestamp: {value}") from e
    if parsed.tzinfo is None:
        raise ValueError(f"RFC3339 timestamp requires a UTC offset: {value}")
    return value


def _validate_resource_id(value: str) -> str:
    # Structural check only; the codec does full parsing where segments matter
    if not value.startswith("/subscriptions/"):
        raise ValueError(f"must be an Azure resource ID: {value}")
    return value


class ProviderModel(BaseModel):
    """Base for every desired-state model."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    # Fields the service never returns; Read carries them from prior state
    sensitive_fields: ClassVar[frozenset[str]] = frozenset()

    # Optional fields the service fills in when left undeclared
    computed_attributes: ClassVar[frozenset[str]] = frozenset()


# =============================================================================
# Key Vault
# =============================================================================


class KeyVaultSecret(ProviderModel):
    """Secret stored in an Azure Key Vault."""

    sensitive_fields: ClassVar[frozenset[str]] = frozenset({"value"})
    computed_attributes: ClassVar[frozenset[str]] = frozenset({"version"})

    name: Annotated[str, Field(min_length=1, max_length=127)]
    key_vault_id: str = Field(alias="keyVaultId")
    value: str | None = None
    content_type: str | None = Field(None, alias="contentType")
    not_before_date: str | None = Field(None, alias="notBeforeDate")
    expiration_date: str | None = Field(None, alias="expirationDate")
    tags: dict[str, str] = Field(default_factory=dict)

    # Computed: version suffix of the current identifier
    version: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not re.match(VALID_SECRET_NAME_PATTERN, v):
            raise ValueError("name may only contain alphanumeric characters and dashes")
        return v

    @field_validator("key_vault_id")
    @classmethod
    def validate_key_vault_id(cls, v: str) -> str:
        return _validate_resource_id(v)

    @field_validator("not_before_date", "expiration_date")
    @classmethod
    def validate_dates(cls, v: str | None) -> str | None:
        return _validate_rfc3339(v)


# =============================================================================
# Network Watcher
# =============================================================================


class RetentionPolicy(BaseModel):
    """Flow log retention settings."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    enabled: bool
    days: Annotated[int, Field(ge=0)]


class TrafficAnalytics(BaseModel):
    """Traffic analytics settings attached to a flow log."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    enabled: bool
    workspace_id: str = Field(alias="workspaceId")
    workspace_region: str = Field(alias="workspaceRegion")
    workspace_resource_id: str = Field("", alias="workspaceResourceId")

    @field_validator("workspace_id")
    @classmethod
    def validate_workspace_id(cls, v: str) -> str:
        try:
            uuid.UUID(v)
        except ValueError as e:
            raise ValueError(f"workspace_id must be a UUID: {v}") from e
        return v

    @field_validator("workspace_resource_id")
    @classmethod
    def validate_workspace_resource_id(cls, v: str) -> str:
        return _validate_resource_id(v) if v else v


class NetworkWatcherFlowLog(ProviderModel):
    """NSG flow log configured on a network watcher."""

    computed_attributes: ClassVar[frozenset[str]] = frozenset({"name", "location", "version"})

    name: str | None = None
    network_watcher_name: Annotated[str, Field(min_length=1, alias="networkWatcherName")]
    resource_group_name: Annotated[str, Field(min_length=1, max_length=90, alias="resourceGroupName")]
    network_security_group_id: str = Field(alias="networkSecurityGroupId")
    storage_account_id: str = Field(alias="storageAccountId")
    enabled: bool
    retention_policy: RetentionPolicy = Field(alias="retentionPolicy")
    traffic_analytics: TrafficAnalytics | None = Field(None, alias="trafficAnalytics")
    version: Annotated[int, Field(ge=1, le=2)] | None = None

    # Computed: taken from the network watcher
    location: str | None = None

    @field_validator("network_security_group_id")
    @classmethod
    def validate_nsg_id(cls, v: str) -> str:
        return _validate_resource_id(v)

    @field_validator("storage_account_id")
    @classmethod
    def validate_storage_account_id(cls, v: str) -> str:
        # A disabled flow log reports its storage account as ""
        return _validate_resource_id(v) if v else v


# =============================================================================
# Security Center
# =============================================================================


class SubscriptionPricing(ProviderModel):
    """Security Center pricing tier for one resource type of a subscription."""

    tier: str
    resource_type: str = Field(DEFAULT_PRICING_RESOURCE_TYPE, alias="resourceType")

    @field_validator("tier")
    @classmethod
    def validate_tier(cls, v: str) -> str:
        if v not in PRICING_TIERS:
            raise ValueError(f"tier must be one of {sorted(PRICING_TIERS)}")
        return v

    @field_validator("resource_type")
    @classmethod
    def validate_resource_type(cls, v: str) -> str:
        if v not in PRICING_RESOURCE_TYPES:
            raise ValueError(f"resource_type must be one of {sorted(PRICING_RESOURCE_TYPES)}")
        return v


# =============================================================================
# SQL
# =============================================================================


class TransparentDataEncryption(ProviderModel):
    """Transparent data encryption status of a SQL database."""

    server_id: str = Field(alias="serverId")
    database_id: str = Field(alias="databaseId")
    state: str = ""


class ExtendedAuditingPolicy(BaseModel):
    """Blob auditing settings; absence means auditing is disabled."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    storage_endpoint: str = Field(alias="storageEndpoint")
    storage_account_access_key: str | None = Field(None, alias="storageAccountAccessKey")
    storage_account_access_key_is_secondary: bool | None = Field(
        None, alias="storageAccountAccessKeyIsSecondary"
    )
    retention_in_days: Annotated[int, Field(ge=0, le=MAX_AUDIT_RETENTION_DAYS)] | None = Field(
        None, alias="retentionInDays"
    )


class ServerExtendedAuditingPolicy(ProviderModel):
    """Extended auditing policy of a SQL server."""

    sensitive_fields: ClassVar[frozenset[str]] = frozenset(
        {"extended_auditing_policy.storage_account_access_key"}
    )

    server_id: str = Field(alias="serverId")
    extended_auditing_policy: ExtendedAuditingPolicy | None = Field(
        None, alias="extendedAuditingPolicy"
    )

    @field_validator("server_id")
    @classmethod
    def validate_server_id(cls, v: str) -> str:
        return _validate_resource_id(v)


# =============================================================================
# MySQL / PostgreSQL
# =============================================================================


class ConfigurationSet(ProviderModel):
    """All configuration values of a database server, keyed by setting name."""

    resource_group_name: Annotated[str, Field(min_length=1, max_length=90, alias="resourceGroupName")]
    server_name: Annotated[str, Field(min_length=1, max_length=63, alias="serverName")]
    config_map: dict[str, str] = Field(default_factory=dict, alias="configMap")
