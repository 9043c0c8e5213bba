"""
Twingate inventory access.

Provides:
- RemoteInventory: protocol the reconciler depends on
- TwingateClient: GraphQL implementation over httpx
- lookup helpers that walk every page of a listing
"""

from caddy_twingate.inventory.deadline import DeadlineInventory
from caddy_twingate.inventory.lookup import (
    get_or_create_remote_network,
    get_remote_network_by_name,
    get_resource_by_alias,
    get_resource_by_name,
    list_all_resources,
    paginate,
)
from caddy_twingate.inventory.protocol import DEFAULT_PAGE_SIZE, RemoteInventory
from caddy_twingate.inventory.twingate_client import TwingateClient

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "DeadlineInventory",
    "RemoteInventory",
    "TwingateClient",
    "get_or_create_remote_network",
    "get_remote_network_by_name",
    "get_resource_by_alias",
    "get_resource_by_name",
    "list_all_resources",
    "paginate",
]
