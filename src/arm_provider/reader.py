"""Remote state reads.

"Not found" is a valid outcome of every read here and comes back as None.
Nothing in this module writes to the service.

Some objects cannot be fetched by point lookup without a stronger
permission than reading their metadata needs (a secret's value needs
secrets/get, its attributes only secrets/list). fetch_from_listing() finds
such objects by listing siblings and matching on the identifier's last path
segment instead.
"""

from __future__ import annotations

import logging

from .client import CloudResourceClient, Endpoint, RemoteObject
from .errors import MalformedIdError
from .operations import Deadline

logger = logging.getLogger(__name__)

# Page size used by the list-and-filter lookup
DEFAULT_LIST_PAGE_SIZE = 25

# Pages followed by the list-and-filter lookup before giving up
DEFAULT_LIST_MAX_PAGES = 1

MIN_ID_PARTS = 4


async def fetch(
    client: CloudResourceClient,
    endpoint: Endpoint,
    path: str,
    deadline: Deadline,
) -> RemoteObject | None:
    """Point lookup of one object; None when it does not exist."""
    return await deadline.guard(client.get(endpoint, path), f"GET {path}")


def name_from_item_id(item_id: str) -> str:
    """Last path segment of a listed item's identifier.

    Raises:
        MalformedIdError: If the identifier has fewer than four parts.
    """
    parts = item_id.rstrip("/").split("/")
    if len(parts) < MIN_ID_PARTS:
        raise MalformedIdError(f"Unexpected ID format in listing: {item_id!r}")
    return parts[-1]


async def fetch_from_listing(
    client: CloudResourceClient,
    endpoint: Endpoint,
    parent: str,
    collection: str,
    name: str,
    deadline: Deadline,
    page_size: int = DEFAULT_LIST_PAGE_SIZE,
    max_pages: int = DEFAULT_LIST_MAX_PAGES,
) -> RemoteObject | None:
    """Find one object by listing its siblings, never by point lookup.

    Only the first `max_pages` pages of `page_size` entries are searched;
    objects beyond them are reported as absent.

    Args:
        client: Client capability to list with.
        endpoint: Service endpoint.
        parent: Path of the containing object.
        collection: Child collection to list (e.g. "secrets").
        name: Name to match against each item's last identifier segment.
        deadline: Operation deadline.
        page_size: Entries requested per page.
        max_pages: Pages to follow via continuation tokens.

    Returns:
        The matching item, or None if the parent or the item is absent.
    """
    what = f"LIST {parent}/{collection}"
    token: str | None = None
    for _ in range(max_pages):
        page = await deadline.guard(
            client.list(
                endpoint,
                parent,
                collection,
                page_size=page_size,
                continuation_token=token,
            ),
            what,
        )
        if page is None:
            logger.debug("Parent not found", extra={"parent": parent, "collection": collection})
            return None

        for item in page.items:
            if item.id and name_from_item_id(item.id) == name:
                return item

        token = page.continuation_token
        if not token:
            break

    logger.debug(
        "Object not found in listing",
        extra={"parent": parent, "collection": collection, "name": name, "max_pages": max_pages},
    )
    return None


async def list_all(
    client: CloudResourceClient,
    endpoint: Endpoint,
    parent: str,
    collection: str,
    deadline: Deadline,
    page_size: int | None = None,
) -> list[RemoteObject] | None:
    """Every child in a collection, following all pages; None when the parent is absent."""
    what = f"LIST {parent}/{collection}"
    items: list[RemoteObject] = []
    token: str | None = None
    while True:
        page = await deadline.guard(
            client.list(
                endpoint,
                parent,
                collection,
                page_size=page_size,
                continuation_token=token,
            ),
            what,
        )
        if page is None:
            return None
        items.extend(page.items)
        token = page.continuation_token
        if not token:
            return items
