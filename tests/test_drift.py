"""Tests for drift suppression and field-level diffing."""

import pytest

from arm_provider.drift import (
    DriftPolicy,
    SuppressionRule,
    lookup,
    normalize_location,
    normalize_timestamp,
)
from arm_provider.flow_log import FlowLogHandler
from arm_provider.models import (
    ExtendedAuditingPolicy,
    KeyVaultSecret,
    NetworkWatcherFlowLog,
    RetentionPolicy,
    ServerExtendedAuditingPolicy,
)

SUB = "12345678-1234-1234-1234-123456789012"
NSG_ID = f"/subscriptions/{SUB}/resourceGroups/rg-app/providers/Microsoft.Network/networkSecurityGroups/nsg-app"
STORAGE_ID = f"/subscriptions/{SUB}/resourceGroups/rg-logs/providers/Microsoft.Storage/storageAccounts/stlogs"
VAULT_ID = f"/subscriptions/{SUB}/resourceGroups/rg-app/providers/Microsoft.KeyVault/vaults/kv-app"


def make_flow_log(
    *,
    enabled: bool = True,
    retention_enabled: bool = True,
    days: int = 7,
    storage_id: str = STORAGE_ID,
    location: str | None = None,
) -> NetworkWatcherFlowLog:
    return NetworkWatcherFlowLog(
        name="fl-app",
        network_watcher_name="nw-westeurope",
        resource_group_name="rg-network",
        network_security_group_id=NSG_ID,
        storage_account_id=storage_id,
        enabled=enabled,
        retention_policy=RetentionPolicy(enabled=retention_enabled, days=days),
        location=location,
    )


class TestSuppress:
    """Tests for the suppression predicate."""

    @pytest.fixture
    def policy(self) -> DriftPolicy:
        return FlowLogHandler.drift_policy

    def test_suppressed_when_toggle_disabled(self, policy: DriftPolicy) -> None:
        """Test retention days drift is ignored while the flow log is disabled."""
        desired = make_flow_log(enabled=False, days=7)
        assert policy.suppress("retention_policy.days", 7, 0, desired) is True
        assert policy.suppress("retention_policy.enabled", True, False, desired) is True

    def test_not_suppressed_when_toggle_enabled(self, policy: DriftPolicy) -> None:
        """Test nothing is hidden while the feature is on."""
        desired = make_flow_log(enabled=True, days=7)
        assert policy.suppress("retention_policy.days", 7, 0, desired) is False

    def test_not_suppressed_for_empty_declared_value(self, policy: DriftPolicy) -> None:
        """Test an undeclared value is never suppressed."""
        desired = make_flow_log(enabled=False)
        assert policy.suppress("retention_policy.days", None, 0, desired) is False
        assert policy.suppress("retention_policy.days", "", 0, desired) is False

    def test_only_configured_fields_suppressed(self, policy: DriftPolicy) -> None:
        """Test fields without a rule are never suppressed."""
        desired = make_flow_log(enabled=False)
        assert policy.suppress("storage_account_id", STORAGE_ID, "", desired) is False

    def test_suppress_accepts_mapping(self) -> None:
        """Test the desired state can be a plain mapping."""
        policy = DriftPolicy(
            suppressions=(SuppressionRule(field="days", toggle="feature.on"),)
        )
        assert policy.suppress("days", 30, 0, {"feature": {"on": False}}) is True
        assert policy.suppress("days", 30, 0, {"feature": {"on": True}}) is False

    def test_custom_disabled_values(self) -> None:
        """Test toggles with string states."""
        policy = DriftPolicy(
            suppressions=(
                SuppressionRule(field="retention", toggle="state", disabled_values=("Disabled",)),
            )
        )
        assert policy.suppress("retention", 90, 0, {"state": "Disabled"}) is True
        assert policy.suppress("retention", 90, 0, {"state": "Enabled"}) is False


class TestDiff:
    """Tests for field-level diffs under a drift policy."""

    def test_disabled_flow_log_has_no_retention_drift(self) -> None:
        """Test placeholder retention settings of a disabled flow log are not drift."""
        desired = make_flow_log(enabled=False, retention_enabled=True, days=7)
        observed = make_flow_log(enabled=False, retention_enabled=False, days=0)

        assert FlowLogHandler.drift_policy.diff(desired, observed) == []

    def test_enabled_flow_log_reports_retention_drift(self) -> None:
        """Test retention drift is reported while the flow log is enabled."""
        desired = make_flow_log(days=7)
        observed = make_flow_log(days=30)

        diffs = FlowLogHandler.drift_policy.diff(desired, observed)
        assert [(d.path, d.declared, d.observed) for d in diffs] == [
            ("retention_policy.days", 7, 30)
        ]

    def test_location_normalized(self) -> None:
        """Test 'West Europe' and 'westeurope' are the same region."""
        desired = make_flow_log(location="West Europe")
        observed = make_flow_log(location="westeurope")
        assert FlowLogHandler.drift_policy.diff(desired, observed) == []

    def test_undeclared_computed_field_skipped(self) -> None:
        """Test computed fields left undeclared do not count as drift."""
        desired = make_flow_log(location=None)
        observed = make_flow_log(location="westeurope")
        assert FlowLogHandler.drift_policy.diff(desired, observed) == []

    def test_absent_observed_reports_every_declared_field(self) -> None:
        """Test diffing against a missing object reports declared fields."""
        desired = make_flow_log()
        paths = {d.path for d in FlowLogHandler.drift_policy.diff(desired, None)}
        assert "network_security_group_id" in paths
        assert "retention_policy.days" in paths

    def test_unreported_sensitive_field_skipped(self) -> None:
        """Test a secret value the service never returns is not drift."""
        desired = KeyVaultSecret(name="db-password", key_vault_id=VAULT_ID, value="s3cret")
        observed = KeyVaultSecret(name="db-password", key_vault_id=VAULT_ID, value=None)
        assert DriftPolicy().diff(desired, observed) == []

    def test_nested_sensitive_field_skipped(self) -> None:
        """Test a nested sensitive field the service never returns is not drift."""
        server_id = f"/subscriptions/{SUB}/resourceGroups/rg/providers/Microsoft.Sql/servers/sql1"
        desired = ServerExtendedAuditingPolicy(
            server_id=server_id,
            extended_auditing_policy=ExtendedAuditingPolicy(
                storage_endpoint="https://st.blob.core.windows.net/",
                storage_account_access_key="key",
            ),
        )
        observed = ServerExtendedAuditingPolicy(
            server_id=server_id,
            extended_auditing_policy=ExtendedAuditingPolicy(
                storage_endpoint="https://st.blob.core.windows.net/",
            ),
        )
        assert DriftPolicy().diff(desired, observed) == []

    def test_block_missing_remotely_reported_per_field(self) -> None:
        """Test a declared block absent on the service is diffed leaf by leaf."""
        server_id = f"/subscriptions/{SUB}/resourceGroups/rg/providers/Microsoft.Sql/servers/sql1"
        desired = ServerExtendedAuditingPolicy(
            server_id=server_id,
            extended_auditing_policy=ExtendedAuditingPolicy(
                storage_endpoint="https://st.blob.core.windows.net/",
                storage_account_access_key="key",
                retention_in_days=30,
            ),
        )
        observed = ServerExtendedAuditingPolicy(server_id=server_id)

        diffs = DriftPolicy().diff(desired, observed)

        assert [(d.path, d.declared, d.observed) for d in diffs] == [
            ("extended_auditing_policy.storage_endpoint", "https://st.blob.core.windows.net/", None),
            ("extended_auditing_policy.retention_in_days", 30, None),
        ]

    def test_tags_compared_per_key(self) -> None:
        """Test dict fields report each differing key."""
        desired = KeyVaultSecret(
            name="db-password", key_vault_id=VAULT_ID, tags={"env": "prod", "team": "a"}
        )
        observed = KeyVaultSecret(
            name="db-password", key_vault_id=VAULT_ID, tags={"env": "dev", "team": "a"}
        )
        diffs = DriftPolicy().diff(desired, observed)
        assert [(d.path, d.declared, d.observed) for d in diffs] == [("tags.env", "prod", "dev")]


class TestNormalizers:
    """Tests for value normalizers and path lookup."""

    def test_normalize_location(self) -> None:
        assert normalize_location("West Europe") == "westeurope"
        assert normalize_location(None) is None

    def test_normalize_timestamp(self) -> None:
        """Test 'Z' and '+00:00' denote the same instant."""
        assert normalize_timestamp("2030-01-01T00:00:00Z") == normalize_timestamp(
            "2030-01-01T00:00:00+00:00"
        )
        assert normalize_timestamp("not-a-date") == "not-a-date"

    def test_lookup(self) -> None:
        desired = make_flow_log(days=9)
        assert lookup(desired, "retention_policy.days") == 9
        assert lookup(desired, "traffic_analytics.enabled") is None
        assert lookup({"a": {"b": 1}}, "a.b") == 1
