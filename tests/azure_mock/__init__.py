"""Azure fakes for handler tests.

This module provides in-memory implementations of the client capability
the handlers depend on, so handler behavior can be tested without Azure
connectivity.

Key Features:
- ARM objects addressed by identifier, with child listings and paging
- Key Vault secrets with versions, listed without values
- Call counters per method (get, list, create_or_update, update, delete)
- Failure and hang injection, slow or failing long-running operations

Usage:
    from azure_mock import FakeArmClient, FakeSecretsClient

    arm = FakeArmClient()
    arm.state.put(watcher_id, location="westeurope")
    handler = FlowLogHandler(arm, SUBSCRIPTION_ID)
    resource_id = await handler.create(desired)

    assert arm.calls["create_or_update"] == 1
"""

from .faults import FaultInjector, MockPoller
from .resources import SUBSCRIPTION_ID, FakeArmClient, MockResource, MockResourceState
from .secrets import FakeSecretsClient, MockSecretVersion

__all__ = [
    "SUBSCRIPTION_ID",
    "FakeArmClient",
    "FakeSecretsClient",
    "FaultInjector",
    "MockPoller",
    "MockResource",
    "MockResourceState",
    "MockSecretVersion",
]
