"""
Pagination-aware lookups over a RemoteInventory.

Every listing walks all pages; a single fixed-size page would silently miss
networks and resources on large tenants.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TypeVar

from caddy_twingate.inventory.protocol import DEFAULT_PAGE_SIZE, RemoteInventory
from caddy_twingate.models import Page, RemoteNetwork, RemoteResource

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def paginate(fetch: Callable[[str | None], Awaitable[Page[T]]]) -> AsyncIterator[T]:
    """Yield items from consecutive pages until ``has_next_page`` is false.

    Args:
        fetch: Coroutine function taking the ``after`` cursor
    """
    cursor: str | None = None
    while True:
        page = await fetch(cursor)
        for item in page.items:
            yield item

        if not page.has_next_page:
            return
        if not page.end_cursor or page.end_cursor == cursor:
            logger.warning(f"Pagination stopped: next page announced without a new cursor (cursor={cursor!r})")
            return
        cursor = page.end_cursor


async def get_remote_network_by_name(
    inventory: RemoteInventory,
    name: str,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> RemoteNetwork | None:
    """Find a Remote Network by exact name, stopping at the first match."""
    async for network in paginate(lambda after: inventory.list_remote_networks(first=page_size, after=after)):
        if network.name == name:
            logger.debug(f"Found remote network {name!r} (id={network.id})")
            return network
    return None


async def get_or_create_remote_network(
    inventory: RemoteInventory,
    name: str,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> tuple[RemoteNetwork, bool]:
    """
    Return the named Remote Network, creating it if absent.

    Returns:
        Tuple of (network, created)
    """
    network = await get_remote_network_by_name(inventory, name, page_size)
    if network is not None:
        return network, False

    network = await inventory.create_remote_network(name)
    logger.info(f"Created remote network {network.name!r} (id={network.id})")
    return network, True


async def list_all_resources(
    inventory: RemoteInventory,
    network_id: str,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> list[RemoteResource]:
    resources = [
        resource
        async for resource in paginate(
            lambda after: inventory.list_resources(network_id, first=page_size, after=after)
        )
    ]
    logger.debug(f"Retrieved {len(resources)} resources in remote network {network_id}")
    return resources


async def get_resource_by_alias(
    inventory: RemoteInventory,
    alias: str,
    network_id: str,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> RemoteResource | None:
    async for resource in paginate(
        lambda after: inventory.list_resources(network_id, first=page_size, after=after)
    ):
        if resource.alias is not None and resource.alias == alias:
            logger.debug(f"Found resource by alias {alias!r} (id={resource.id})")
            return resource
    return None


async def get_resource_by_name(
    inventory: RemoteInventory,
    name: str,
    network_id: str,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> RemoteResource | None:
    async for resource in paginate(
        lambda after: inventory.list_resources(network_id, first=page_size, after=after)
    ):
        if resource.name == name:
            logger.debug(f"Found resource by name {name!r} (id={resource.id})")
            return resource
    return None
