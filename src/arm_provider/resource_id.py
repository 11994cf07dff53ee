"""Azure resource identifier codec.

ARM identifiers follow the pattern:
/subscriptions/{sub}/resourceGroups/{rg}/providers/{namespace}/{type}/{name}[/{childType}/{childName}...]

Subscription-scoped resources (e.g. Security Center pricings) have no
resource group. Key Vault data-plane objects use a URL instead:
https://{vault}.vault.azure.net/{collection}/{name}/{version}
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import urlparse

from .errors import MalformedIdError

SUBSCRIPTIONS_KEY = "subscriptions"
RESOURCE_GROUPS_KEY = "resourceGroups"
PROVIDERS_KEY = "providers"

KEY_VAULT_CHILD_SEGMENTS = 3


@dataclass(frozen=True)
class ResourceIdentifier:
    """Structured ARM identifier.

    Immutable: derive related identifiers with parent() / child() / build()
    rather than mutating an instance.
    """

    subscription_id: str
    resource_group: str | None
    provider: str | None
    segments: tuple[tuple[str, str], ...] = ()

    @classmethod
    def parse(cls, raw: str) -> ResourceIdentifier:
        """Parse an opaque ARM identifier string.

        Raises:
            MalformedIdError: If the string is not a well-formed ARM path.
        """
        if not raw or not raw.startswith("/"):
            raise MalformedIdError(f"Cannot parse Azure ID {raw!r}: expected an absolute path")

        components = raw.strip("/").split("/")
        if len(components) % 2 != 0:
            raise MalformedIdError(
                f"The number of path segments is not divisible by 2 in {raw!r}"
            )

        subscription_id: str | None = None
        resource_group: str | None = None
        provider: str | None = None
        segments: list[tuple[str, str]] = []

        for i in range(0, len(components), 2):
            key, value = components[i], components[i + 1]
            if not key or not value:
                raise MalformedIdError(f"ID contains an empty path segment: {raw!r}")

            lowered = key.lower()
            if lowered == SUBSCRIPTIONS_KEY and subscription_id is None and not segments:
                subscription_id = value
            elif (
                lowered == RESOURCE_GROUPS_KEY.lower()
                and resource_group is None
                and provider is None
                and not segments
            ):
                resource_group = value
            elif lowered == PROVIDERS_KEY and provider is None:
                provider = value
            else:
                segments.append((key, value))

        if not subscription_id:
            raise MalformedIdError(f"ID was missing the 'subscriptions' element: {raw!r}")

        return cls(
            subscription_id=subscription_id,
            resource_group=resource_group,
            provider=provider,
            segments=tuple(segments),
        )

    @classmethod
    def build(
        cls,
        subscription_id: str,
        resource_group: str | None,
        provider: str | None,
        segments: Iterable[tuple[str, str]] = (),
    ) -> ResourceIdentifier:
        """Construct an identifier from its parts without a service round trip.

        Raises:
            MalformedIdError: If any supplied part is empty.
        """
        if not subscription_id:
            raise MalformedIdError("subscription_id is required to build an ID")
        if resource_group == "":
            raise MalformedIdError("resource_group must be omitted or non-empty")
        if provider == "":
            raise MalformedIdError("provider must be omitted or non-empty")

        reserved = {SUBSCRIPTIONS_KEY, RESOURCE_GROUPS_KEY.lower()}
        if provider is None:
            reserved.add(PROVIDERS_KEY)

        pairs = tuple((collection, name) for collection, name in segments)
        for collection, name in pairs:
            if not collection or not name:
                raise MalformedIdError(f"Empty segment in ({collection!r}, {name!r})")
            if "/" in collection or "/" in name:
                raise MalformedIdError(f"Segment contains '/': ({collection!r}, {name!r})")
            if collection.lower() in reserved:
                raise MalformedIdError(f"Reserved collection name in segments: {collection!r}")

        return cls(
            subscription_id=subscription_id,
            resource_group=resource_group,
            provider=provider,
            segments=pairs,
        )

    def __str__(self) -> str:
        parts = [f"/{SUBSCRIPTIONS_KEY}/{self.subscription_id}"]
        if self.resource_group:
            parts.append(f"/{RESOURCE_GROUPS_KEY}/{self.resource_group}")
        if self.provider:
            parts.append(f"/{PROVIDERS_KEY}/{self.provider}")
        parts.extend(f"/{collection}/{name}" for collection, name in self.segments)
        return "".join(parts)

    @property
    def name(self) -> str:
        """Name of the addressed object (last segment)."""
        if not self.segments:
            if self.resource_group:
                return self.resource_group
            return self.subscription_id
        return self.segments[-1][1]

    @property
    def resource_type(self) -> str:
        """Resource type such as Microsoft.Network/networkWatchers/flowLogs."""
        collections = "/".join(collection for collection, _ in self.segments)
        if self.provider:
            return f"{self.provider}/{collections}" if collections else self.provider
        return collections or "unknown"

    def has_segment(self, collection: str) -> bool:
        lowered = collection.lower()
        return any(key.lower() == lowered for key, _ in self.segments)

    def segment(self, collection: str) -> str:
        """Return the name for a collection key (case-insensitive).

        Raises:
            MalformedIdError: If the collection is not part of the identifier.
        """
        lowered = collection.lower()
        for key, value in self.segments:
            if key.lower() == lowered:
                return value
        raise MalformedIdError(f"ID was missing the {collection!r} element: {self}")

    def require(self, *collections: str) -> ResourceIdentifier:
        """Validate that every named collection is present, returning self."""
        for collection in collections:
            self.segment(collection)
        return self

    def parent(self) -> ResourceIdentifier:
        """Identifier of the containing object."""
        if not self.segments:
            raise MalformedIdError(f"ID has no parent segment: {self}")
        return ResourceIdentifier(
            subscription_id=self.subscription_id,
            resource_group=self.resource_group,
            provider=self.provider,
            segments=self.segments[:-1],
        )

    def child(self, collection: str, name: str) -> ResourceIdentifier:
        """Identifier of a nested object."""
        return ResourceIdentifier.build(
            self.subscription_id,
            self.resource_group,
            self.provider,
            (*self.segments, (collection, name)),
        )


def parse_resource_id(
    raw: str, *required: str, resource_group: bool = True
) -> ResourceIdentifier:
    """Parse an ARM identifier and require the named collections.

    Args:
        raw: Identifier string.
        *required: Collection keys that must be present (e.g. "servers").
        resource_group: Whether the identifier must be resource-group scoped.
    """
    resource_id = ResourceIdentifier.parse(raw)
    if resource_group and not resource_id.resource_group:
        raise MalformedIdError(f"ID was missing the 'resourceGroups' element: {raw!r}")
    resource_id.require(*required)
    return resource_id


def normalize_vault_uri(uri: str) -> str:
    """Normalize a vault URI for comparison: lower-case with a trailing slash."""
    parsed = urlparse(uri.strip())
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}/"


@dataclass(frozen=True)
class KeyVaultChildId:
    """Identifier of a Key Vault data-plane object (secret, key, certificate).

    The version is the mutable suffix: writing a new secret value creates a
    new version and therefore a new identifier.
    """

    vault_base_url: str
    collection: str
    name: str
    version: str

    @classmethod
    def parse(cls, raw: str) -> KeyVaultChildId:
        """Parse https://{vault}/{collection}/{name}/{version}.

        Raises:
            MalformedIdError: If the URL is not a versioned Key Vault child ID.
        """
        parsed = urlparse(raw or "")
        if parsed.scheme.lower() != "https" or not parsed.netloc:
            raise MalformedIdError(f"Key Vault child ID must be an https URL: {raw!r}")

        path = [part for part in parsed.path.split("/") if part]
        if len(path) != KEY_VAULT_CHILD_SEGMENTS:
            raise MalformedIdError(
                f"Key Vault Child ID should have {KEY_VAULT_CHILD_SEGMENTS} segments, "
                f"got {len(path)}: {raw!r}"
            )

        return cls.build(
            vault_base_url=f"{parsed.scheme}://{parsed.netloc}/",
            collection=path[0],
            name=path[1],
            version=path[2],
        )

    @classmethod
    def build(
        cls, vault_base_url: str, collection: str, name: str, version: str
    ) -> KeyVaultChildId:
        if not vault_base_url:
            raise MalformedIdError("vault_base_url is required")
        for label, value in (("collection", collection), ("name", name), ("version", version)):
            if not value:
                raise MalformedIdError(f"Key Vault child ID is missing its {label}")
            if "/" in value:
                raise MalformedIdError(f"Key Vault child {label} contains '/': {value!r}")
        parsed = urlparse(vault_base_url)
        if not parsed.scheme or not parsed.netloc:
            raise MalformedIdError(f"Invalid vault base URL: {vault_base_url!r}")
        return cls(
            vault_base_url=f"{parsed.scheme}://{parsed.netloc}/",
            collection=collection,
            name=name,
            version=version,
        )

    def __str__(self) -> str:
        return f"{self.versionless}/{self.version}"

    @property
    def versionless(self) -> str:
        return f"{self.vault_base_url.rstrip('/')}/{self.collection}/{self.name}"

    @property
    def vault_name(self) -> str:
        return urlparse(self.vault_base_url).netloc.split(".")[0]

    def with_version(self, version: str) -> KeyVaultChildId:
        return KeyVaultChildId.build(self.vault_base_url, self.collection, self.name, version)
