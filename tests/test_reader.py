"""Tests for remote state reads: point lookups and list-and-filter."""

import pytest
from azure_mock import SUBSCRIPTION_ID, FakeArmClient, FakeSecretsClient

from arm_provider.client import Endpoint, ListPage, RemoteObject
from arm_provider.errors import MalformedIdError
from arm_provider.operations import Deadline
from arm_provider.reader import fetch, fetch_from_listing, list_all, name_from_item_id

VAULT_URL = "https://kv-app.vault.azure.net/"
SECRETS_ENDPOINT = Endpoint(VAULT_URL, "7.4")
ARM_ENDPOINT = Endpoint("https://management.azure.com", "2017-12-01")
SERVER_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg-db"
    "/providers/Microsoft.DBforMySQL/servers/mysql-app"
)


@pytest.fixture
def vault() -> FakeSecretsClient:
    secrets = FakeSecretsClient(VAULT_URL)
    for i in range(1, 26):
        secrets.seed(VAULT_URL, f"secret-{i:02d}", f"value-{i}")
    return secrets


class TestFetchFromListing:
    """Tests for finding an object by listing its siblings."""

    @pytest.mark.asyncio
    async def test_finds_tenth_of_twenty_five_without_point_lookup(
        self, vault: FakeSecretsClient
    ) -> None:
        """Test the match is found by listing alone."""
        item = await fetch_from_listing(
            vault, SECRETS_ENDPOINT, "", "secrets", "secret-10", Deadline.after(5)
        )

        assert item is not None
        assert item.name == "secret-10"
        assert item.id == f"{VAULT_URL}secrets/secret-10"
        assert vault.calls["get"] == 0
        assert vault.calls["list"] == 1

    @pytest.mark.asyncio
    async def test_missing_name_is_not_found(self, vault: FakeSecretsClient) -> None:
        """Test a name absent from the listing comes back as None."""
        item = await fetch_from_listing(
            vault, SECRETS_ENDPOINT, "", "secrets", "secret-99", Deadline.after(5)
        )
        assert item is None
        assert vault.calls["get"] == 0

    @pytest.mark.asyncio
    async def test_only_first_page_searched_by_default(self, vault: FakeSecretsClient) -> None:
        """Test objects beyond the first page are reported as absent."""
        vault.seed(VAULT_URL, "secret-26", "value-26")

        item = await fetch_from_listing(
            vault, SECRETS_ENDPOINT, "", "secrets", "secret-26", Deadline.after(5)
        )
        assert item is None
        assert vault.calls["list"] == 1

    @pytest.mark.asyncio
    async def test_more_pages_when_configured(self, vault: FakeSecretsClient) -> None:
        """Test continuation tokens are followed up to max_pages."""
        vault.seed(VAULT_URL, "secret-26", "value-26")

        item = await fetch_from_listing(
            vault,
            SECRETS_ENDPOINT,
            "",
            "secrets",
            "secret-26",
            Deadline.after(5),
            max_pages=2,
        )
        assert item is not None
        assert vault.calls["list"] == 2

    @pytest.mark.asyncio
    async def test_absent_parent_is_not_found(self) -> None:
        """Test listing a vault that does not exist yields None."""
        secrets = FakeSecretsClient()
        item = await fetch_from_listing(
            secrets, SECRETS_ENDPOINT, "", "secrets", "secret-01", Deadline.after(5)
        )
        assert item is None

    @pytest.mark.asyncio
    async def test_malformed_item_id_raises(self) -> None:
        """Test a listed identifier with too few parts is an error."""

        class BrokenListing:
            async def list(self, *args, **kwargs) -> ListPage:
                return ListPage(items=[RemoteObject(id="bad/id", name="bad")])

        with pytest.raises(MalformedIdError):
            await fetch_from_listing(
                BrokenListing(), SECRETS_ENDPOINT, "", "secrets", "x", Deadline.after(5)
            )


class TestFetchAndListAll:
    """Tests for point lookups and full listings."""

    @pytest.mark.asyncio
    async def test_fetch_absent_object(self) -> None:
        """Test NotFound is None, never an exception."""
        arm = FakeArmClient()
        assert await fetch(arm, ARM_ENDPOINT, SERVER_ID, Deadline.after(5)) is None

    @pytest.mark.asyncio
    async def test_list_all_follows_pages(self) -> None:
        """Test every page is read."""
        arm = FakeArmClient()
        arm.state.put(SERVER_ID, location="westeurope")
        for i in range(5):
            arm.state.put(f"{SERVER_ID}/configurations/setting{i}", properties={"value": str(i)})

        items = await list_all(
            arm, ARM_ENDPOINT, SERVER_ID, "configurations", Deadline.after(5), page_size=2
        )

        assert items is not None
        assert [item.name for item in items] == [f"setting{i}" for i in range(5)]
        assert arm.calls["list"] == 3

    @pytest.mark.asyncio
    async def test_list_all_absent_parent(self) -> None:
        """Test listing under a missing parent yields None."""
        arm = FakeArmClient()
        assert await list_all(arm, ARM_ENDPOINT, SERVER_ID, "configurations", Deadline.after(5)) is None


class TestNameFromItemId:
    """Tests for extracting the last identifier segment."""

    def test_arm_identifier(self) -> None:
        assert name_from_item_id(f"{SERVER_ID}/configurations/max_connections") == "max_connections"

    def test_key_vault_url(self) -> None:
        assert name_from_item_id("https://kv-app.vault.azure.net/secrets/db-password") == "db-password"

    def test_too_few_parts(self) -> None:
        with pytest.raises(MalformedIdError):
            name_from_item_id("a/b")
