"""Key Vault secret handler.

Secrets live in the vault's data plane and are addressed by a versioned URL
(https://{vault}.vault.azure.net/secrets/{name}/{version}); the vault itself
is an ARM resource. Writing a new value creates a new version, so an update
that changes the value returns a new identifier.

Reads never fetch the secret by name: that needs the secrets/get
permission, which also grants access to the value. The secret's attributes
are found by listing the vault's secrets instead, which only needs
secrets/list.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from .client import DEFAULT_ARM_ENDPOINT, CloudResourceClient, Endpoint, RemoteObject
from .drift import DriftPolicy, normalize_timestamp
from .errors import AlreadyExistsError, MissingResourceError, PostCreateReadError, ProviderError
from .handler import ArmResourceHandler
from .models import KeyVaultSecret
from .operations import Deadline
from .reader import (
    DEFAULT_LIST_MAX_PAGES,
    DEFAULT_LIST_PAGE_SIZE,
    fetch,
    fetch_from_listing,
    list_all,
)
from .resource_id import KeyVaultChildId, normalize_vault_uri, parse_resource_id

logger = logging.getLogger(__name__)

VAULT_API_VERSION = "2019-09-01"
SECRETS_API_VERSION = "7.4"
SECRETS_COLLECTION = "secrets"


def _parse_timestamp(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class KeyVaultSecretHandler(ArmResourceHandler[KeyVaultSecret]):
    """Converges a secret in an existing vault."""

    type_name = "key_vault_secret"
    model = KeyVaultSecret
    api_version = VAULT_API_VERSION
    drift_policy = DriftPolicy(
        normalizers={
            "not_before_date": normalize_timestamp,
            "expiration_date": normalize_timestamp,
        }
    )

    def __init__(
        self,
        client: CloudResourceClient,
        secrets_client: CloudResourceClient,
        subscription_id: str,
        *,
        endpoint_url: str = DEFAULT_ARM_ENDPOINT,
        require_import: bool = True,
        list_page_size: int = DEFAULT_LIST_PAGE_SIZE,
        list_max_pages: int = DEFAULT_LIST_MAX_PAGES,
    ) -> None:
        super().__init__(client, endpoint_url=endpoint_url, require_import=require_import)
        self._secrets = secrets_client
        self._subscription_id = subscription_id
        self._list_page_size = list_page_size
        self._list_max_pages = list_max_pages

    def parse_identifier(self, raw: str) -> KeyVaultChildId:
        return KeyVaultChildId.parse(raw)

    def _secrets_endpoint(self, vault_base_url: str) -> Endpoint:
        return Endpoint(vault_base_url, SECRETS_API_VERSION)

    async def _vault_base_url(self, key_vault_id: str, deadline: Deadline) -> str:
        """Resolve a vault's data-plane URL from its ARM identifier.

        Raises:
            MissingResourceError: If the vault does not exist or reports no URL.
        """
        vault_id = parse_resource_id(key_vault_id, "vaults")
        vault = await self._require_parent(str(vault_id), deadline)
        vault_uri = vault.properties.get("vaultUri") if vault is not None else None
        if not vault_uri:
            raise MissingResourceError(
                f"Error looking up vault URL from Key Vault ID {key_vault_id!r}",
                resource_id=key_vault_id,
            )
        return vault_uri

    async def _vault_id(self, vault_base_url: str, deadline: Deadline) -> str | None:
        """Find the ARM identifier of the vault serving a data-plane URL.

        Returns:
            The vault's ARM identifier, or None if no vault in the subscription
            has this URL or the vault no longer exists.
        """
        vaults = await list_all(
            self._client,
            self._endpoint,
            f"/subscriptions/{self._subscription_id}/providers/Microsoft.KeyVault",
            "vaults",
            deadline,
        )
        wanted = normalize_vault_uri(vault_base_url)
        for vault in vaults or []:
            vault_uri = vault.properties.get("vaultUri")
            if vault.id and vault_uri and normalize_vault_uri(vault_uri) == wanted:
                break
        else:
            logger.debug(
                "Unable to determine the Resource ID for the Key Vault",
                extra={"vault_url": vault_base_url},
            )
            return None

        if await self._require_parent(vault.id, deadline) is None:
            logger.debug(
                "Key Vault was not found",
                extra={"vault_id": vault.id, "vault_url": vault_base_url},
            )
            return None
        return vault.id

    async def _find_secret(
        self, child_id: KeyVaultChildId, deadline: Deadline
    ) -> RemoteObject | None:
        return await fetch_from_listing(
            self._secrets,
            self._secrets_endpoint(child_id.vault_base_url),
            "",
            SECRETS_COLLECTION,
            child_id.name,
            deadline,
            page_size=self._list_page_size,
            max_pages=self._list_max_pages,
        )

    async def _write_new_version(
        self, endpoint: Endpoint, desired: KeyVaultSecret, deadline: Deadline
    ) -> str:
        """Set the secret value and return the identifier of the new latest version."""
        if desired.value is None:
            raise ProviderError(f"A value is required to write secret {desired.name!r}")

        handle = await deadline.guard(
            self._secrets.create_or_update(endpoint, desired.name, self._body(desired)),
            f"SET secret {desired.name}",
        )
        await self._secrets.await_completion(handle, deadline)

        # The unversioned lookup returns the latest version
        latest = await fetch(self._secrets, endpoint, desired.name, deadline)
        if latest is None or not latest.id:
            raise PostCreateReadError(
                f"Cannot read Key Vault Secret {desired.name!r} (in key vault {endpoint.url!r})"
            )
        return str(KeyVaultChildId.parse(latest.id))

    @staticmethod
    def _body(desired: KeyVaultSecret, include_value: bool = True) -> dict[str, Any]:
        body: dict[str, Any] = {
            "contentType": desired.content_type,
            "attributes": {
                "nbf": _parse_timestamp(desired.not_before_date),
                "exp": _parse_timestamp(desired.expiration_date),
            },
            "tags": dict(desired.tags),
        }
        if include_value:
            body["value"] = desired.value
        return body

    async def _create(self, desired: KeyVaultSecret, deadline: Deadline) -> str:
        vault_base_url = await self._vault_base_url(desired.key_vault_id, deadline)
        endpoint = self._secrets_endpoint(vault_base_url)

        if self._require_import:
            existing = await fetch(self._secrets, endpoint, desired.name, deadline)
            if existing is not None and existing.id:
                raise AlreadyExistsError(self.type_name, existing.id)

        return await self._write_new_version(endpoint, desired, deadline)

    async def _read(
        self,
        resource_id: KeyVaultChildId,
        deadline: Deadline,
        prior: KeyVaultSecret | None,
    ) -> KeyVaultSecret | None:
        vault_id = await self._vault_id(resource_id.vault_base_url, deadline)
        if vault_id is None:
            return None

        secret = await self._find_secret(resource_id, deadline)
        if secret is None:
            logger.debug("Unable to find secret", extra={"resource_id": str(resource_id)})
            return None

        return KeyVaultSecret(
            name=resource_id.name,
            key_vault_id=vault_id,
            value=prior.value if prior is not None else None,
            content_type=secret.properties.get("contentType"),
            not_before_date=secret.properties.get("notBefore"),
            expiration_date=secret.properties.get("expires"),
            tags=secret.tags,
            version=resource_id.version,
        )

    async def _update(
        self,
        resource_id: KeyVaultChildId,
        desired: KeyVaultSecret,
        deadline: Deadline,
        prior: KeyVaultSecret | None,
    ) -> str | None:
        if await self._vault_id(resource_id.vault_base_url, deadline) is None:
            return None

        endpoint = self._secrets_endpoint(resource_id.vault_base_url)
        value_changed = desired.value is not None and (
            prior is None or prior.value != desired.value
        )
        if value_changed:
            return await self._write_new_version(endpoint, desired, deadline)

        handle = await deadline.guard(
            self._secrets.update(
                endpoint,
                f"{resource_id.name}/{resource_id.version}",
                self._body(desired, include_value=False),
            ),
            f"UPDATE secret {resource_id.name}",
        )
        await self._secrets.await_completion(handle, deadline)
        return str(resource_id)

    async def _delete(self, resource_id: KeyVaultChildId, deadline: Deadline) -> None:
        if await self._vault_id(resource_id.vault_base_url, deadline) is None:
            return

        if await self._find_secret(resource_id, deadline) is None:
            logger.debug("Secret already absent", extra={"resource_id": str(resource_id)})
            return

        handle = await deadline.guard(
            self._secrets.delete(
                self._secrets_endpoint(resource_id.vault_base_url), resource_id.name
            ),
            f"DELETE secret {resource_id.name}",
        )
        await self._secrets.await_completion(handle, deadline)
