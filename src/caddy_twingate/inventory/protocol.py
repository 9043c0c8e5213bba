"""Remote inventory protocol consumed by the reconciler."""

from typing import Protocol

from caddy_twingate.models import Page, RemoteNetwork, RemoteResource

DEFAULT_PAGE_SIZE = 100


class RemoteInventory(Protocol):
    """Paginated list/create/update/delete over Remote Networks and Resources.

    Implementations raise ``TransportError`` when the API cannot be reached
    and ``RemoteRejection`` when a mutation reports ``ok: false``.
    """

    async def list_remote_networks(
        self,
        first: int = DEFAULT_PAGE_SIZE,
        after: str | None = None,
    ) -> Page[RemoteNetwork]:
        """List one page of Remote Networks.

        Args:
            first: Page size
            after: Cursor returned as ``end_cursor`` by the previous page

        Returns:
            Page of RemoteNetwork
        """
        ...

    async def create_remote_network(self, name: str) -> RemoteNetwork:
        """Create a Remote Network.

        Args:
            name: Network name

        Returns:
            The created network
        """
        ...

    async def list_resources(
        self,
        network_id: str,
        first: int = DEFAULT_PAGE_SIZE,
        after: str | None = None,
    ) -> Page[RemoteResource]:
        """List one page of Resources belonging to a Remote Network.

        Args:
            network_id: Remote Network ID to scope the listing to
            first: Page size
            after: Cursor returned as ``end_cursor`` by the previous page

        Returns:
            Page of RemoteResource
        """
        ...

    async def create_resource(
        self,
        name: str,
        address: str,
        network_id: str,
        alias: str | None = None,
    ) -> RemoteResource:
        """Create a Resource in a Remote Network."""
        ...

    async def update_resource(
        self,
        resource_id: str,
        name: str | None = None,
        address: str | None = None,
        alias: str | None = None,
    ) -> RemoteResource:
        """Update a Resource. A None name or address is left unchanged; a None alias clears it."""
        ...

    async def delete_resource(self, resource_id: str) -> None:
        """Delete a Resource."""
        ...
