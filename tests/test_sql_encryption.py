"""Tests for the transparent data encryption handler."""

import pytest
from azure_mock import SUBSCRIPTION_ID, FakeArmClient

from arm_provider.models import TransparentDataEncryption
from arm_provider.sql_encryption import TransparentDataEncryptionHandler

SERVER_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg-sql"
    "/providers/Microsoft.Sql/servers/sql-app"
)
DATABASE_ID = f"{SERVER_ID}/databases/db-app"
TDE_ID = f"{DATABASE_ID}/transparentDataEncryption/current"


@pytest.fixture
def arm() -> FakeArmClient:
    return FakeArmClient()


@pytest.fixture
def handler(arm: FakeArmClient) -> TransparentDataEncryptionHandler:
    return TransparentDataEncryptionHandler(arm)


def make_tde() -> TransparentDataEncryption:
    return TransparentDataEncryption(server_id=SERVER_ID, database_id=DATABASE_ID)


class TestTransparentDataEncryption:
    """Tests for the read-only encryption handler."""

    @pytest.mark.asyncio
    async def test_create_derives_id_without_remote_calls(
        self, handler: TransparentDataEncryptionHandler, arm: FakeArmClient
    ) -> None:
        """Test create only computes the identifier."""
        assert await handler.create(make_tde()) == TDE_ID
        assert sum(arm.calls.values()) == 0

    @pytest.mark.asyncio
    async def test_update_derives_id(self, handler: TransparentDataEncryptionHandler) -> None:
        assert await handler.update(TDE_ID, make_tde()) == TDE_ID

    @pytest.mark.asyncio
    async def test_read_reports_state(
        self, handler: TransparentDataEncryptionHandler, arm: FakeArmClient
    ) -> None:
        """Test read rebuilds server and database identifiers and the state."""
        arm.state.put(TDE_ID, properties={"status": "Enabled"})

        observed = await handler.read(TDE_ID)

        assert observed is not None
        assert observed.server_id == SERVER_ID
        assert observed.database_id == DATABASE_ID
        assert observed.state == "Enabled"

    @pytest.mark.asyncio
    async def test_read_is_case_insensitive_for_drift(
        self, handler: TransparentDataEncryptionHandler, arm: FakeArmClient
    ) -> None:
        """Test identifier casing differences are not drift."""
        arm.state.put(TDE_ID, properties={"state": "Enabled"})
        desired = TransparentDataEncryption(
            server_id=SERVER_ID.lower(), database_id=DATABASE_ID.lower(), state="Enabled"
        )

        observed = await handler.read(TDE_ID)
        assert handler.diff(desired, observed) == []

    @pytest.mark.asyncio
    async def test_read_absent(self, handler: TransparentDataEncryptionHandler) -> None:
        """Test a missing database reads as None."""
        assert await handler.read(TDE_ID) is None

    @pytest.mark.asyncio
    async def test_delete_is_noop(
        self, handler: TransparentDataEncryptionHandler, arm: FakeArmClient
    ) -> None:
        """Test delete leaves the database setting unchanged."""
        arm.state.put(TDE_ID, properties={"state": "Enabled"})

        await handler.delete(TDE_ID)
        await handler.delete(TDE_ID)

        assert arm.writes == 0
        assert arm.state.get(TDE_ID).properties["state"] == "Enabled"
