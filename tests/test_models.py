"""Tests for desired-state model validation."""

import pytest
from pydantic import ValidationError

from arm_provider.models import (
    DEFAULT_PRICING_RESOURCE_TYPE,
    ConfigurationSet,
    KeyVaultSecret,
    NetworkWatcherFlowLog,
    ServerExtendedAuditingPolicy,
    SubscriptionPricing,
    TrafficAnalytics,
)

SUB = "12345678-1234-1234-1234-123456789012"
RG = f"/subscriptions/{SUB}/resourceGroups/rg-app"
VAULT_ID = f"{RG}/providers/Microsoft.KeyVault/vaults/kv-app"
NSG_ID = f"{RG}/providers/Microsoft.Network/networkSecurityGroups/nsg-web"
STORAGE_ID = f"{RG}/providers/Microsoft.Storage/storageAccounts/stlogs"
SERVER_ID = f"{RG}/providers/Microsoft.Sql/servers/sql-app"


def flow_log_data(**overrides: object) -> dict:
    data = {
        "networkWatcherName": "nw-westeurope",
        "resourceGroupName": "rg-network",
        "networkSecurityGroupId": NSG_ID,
        "storageAccountId": STORAGE_ID,
        "enabled": True,
        "retentionPolicy": {"enabled": True, "days": 7},
    }
    data.update(overrides)
    return data


class TestKeyVaultSecret:
    """Tests for KeyVaultSecret."""

    def test_snake_and_camel_case(self) -> None:
        """Test both field spellings populate the same attribute."""
        camel = KeyVaultSecret.model_validate(
            {"name": "db-password", "keyVaultId": VAULT_ID, "contentType": "text/plain"}
        )
        snake = KeyVaultSecret(
            name="db-password", key_vault_id=VAULT_ID, content_type="text/plain"
        )

        assert camel == snake
        assert camel.value is None
        assert camel.tags == {}

    @pytest.mark.parametrize("name", ["db_password", "db password", ""])
    def test_invalid_names(self, name: str) -> None:
        with pytest.raises(ValidationError):
            KeyVaultSecret(name=name, key_vault_id=VAULT_ID)

    def test_vault_must_be_resource_id(self) -> None:
        with pytest.raises(ValidationError):
            KeyVaultSecret(name="db-password", key_vault_id="https://kv-app.vault.azure.net/")

    def test_dates_with_offset(self) -> None:
        secret = KeyVaultSecret(
            name="db-password",
            key_vault_id=VAULT_ID,
            not_before_date="2030-01-01T00:00:00+00:00",
            expiration_date="2031-01-01T00:00:00Z",
        )
        assert secret.expiration_date == "2031-01-01T00:00:00Z"

    def test_value_is_sensitive(self) -> None:
        assert KeyVaultSecret.sensitive_fields == frozenset({"value"})


class TestNetworkWatcherFlowLog:
    """Tests for NetworkWatcherFlowLog."""

    def test_defaults(self) -> None:
        flow_log = NetworkWatcherFlowLog.model_validate(flow_log_data())

        assert flow_log.name is None
        assert flow_log.traffic_analytics is None
        assert flow_log.version is None
        assert flow_log.retention_policy.days == 7

    def test_disabled_flow_log_accepts_empty_storage(self) -> None:
        """Test the empty storage id a disabled flow log reports is accepted."""
        flow_log = NetworkWatcherFlowLog.model_validate(
            flow_log_data(storageAccountId="", enabled=False)
        )
        assert flow_log.storage_account_id == ""

    @pytest.mark.parametrize("version", [0, 3])
    def test_version_range(self, version: int) -> None:
        with pytest.raises(ValidationError):
            NetworkWatcherFlowLog.model_validate(flow_log_data(version=version))

    def test_workspace_id_must_be_uuid(self) -> None:
        with pytest.raises(ValidationError):
            TrafficAnalytics(enabled=True, workspace_id="workspace", workspace_region="westeurope")


class TestSubscriptionPricing:
    """Tests for SubscriptionPricing."""

    def test_default_resource_type(self) -> None:
        pricing = SubscriptionPricing(tier="Standard")
        assert pricing.resource_type == DEFAULT_PRICING_RESOURCE_TYPE

    def test_unknown_tier(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            SubscriptionPricing(tier="Premium")
        assert "tier" in str(exc_info.value)

    def test_unknown_resource_type(self) -> None:
        with pytest.raises(ValidationError):
            SubscriptionPricing(tier="Free", resource_type="Printers")


class TestServerExtendedAuditingPolicy:
    """Tests for ServerExtendedAuditingPolicy."""

    def test_absent_policy_means_disabled(self) -> None:
        policy = ServerExtendedAuditingPolicy(server_id=SERVER_ID)
        assert policy.extended_auditing_policy is None

    def test_retention_upper_bound(self) -> None:
        with pytest.raises(ValidationError):
            ServerExtendedAuditingPolicy.model_validate(
                {
                    "serverId": SERVER_ID,
                    "extendedAuditingPolicy": {
                        "storageEndpoint": "https://stlogs.blob.core.windows.net/",
                        "retentionInDays": 3286,
                    },
                }
            )


class TestConfigurationSet:
    """Tests for ConfigurationSet."""

    def test_config_map_defaults_empty(self) -> None:
        config_set = ConfigurationSet(resource_group_name="rg-db", server_name="psql-app")
        assert config_set.config_map == {}

    def test_server_name_length(self) -> None:
        with pytest.raises(ValidationError):
            ConfigurationSet(resource_group_name="rg-db", server_name="x" * 64)
