"""Whole-sync deadline applied to every call made through a RemoteInventory."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from caddy_twingate.exceptions import TransportError
from caddy_twingate.inventory.protocol import DEFAULT_PAGE_SIZE, RemoteInventory
from caddy_twingate.models import Page, RemoteNetwork, RemoteResource

T = TypeVar("T")


class DeadlineInventory:
    """
    RemoteInventory wrapper that shares one time budget across all calls.

    Each call gets whatever is left of the budget. Once it is spent, calls
    fail with TransportError instead of reaching the wrapped inventory.
    """

    def __init__(self, inventory: RemoteInventory, timeout: float) -> None:
        self.inventory = inventory
        self.timeout = timeout
        self._deadline = asyncio.get_running_loop().time() + timeout

    def remaining(self) -> float:
        return self._deadline - asyncio.get_running_loop().time()

    async def _call(self, awaitable: Awaitable[T]) -> T:
        remaining = self.remaining()
        if remaining <= 0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise TransportError(f"sync deadline exceeded ({self.timeout}s)")
        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except TimeoutError as e:
            raise TransportError(f"sync deadline exceeded ({self.timeout}s)") from e

    async def list_remote_networks(
        self,
        first: int = DEFAULT_PAGE_SIZE,
        after: str | None = None,
    ) -> Page[RemoteNetwork]:
        return await self._call(self.inventory.list_remote_networks(first=first, after=after))

    async def create_remote_network(self, name: str) -> RemoteNetwork:
        return await self._call(self.inventory.create_remote_network(name))

    async def list_resources(
        self,
        network_id: str,
        first: int = DEFAULT_PAGE_SIZE,
        after: str | None = None,
    ) -> Page[RemoteResource]:
        return await self._call(self.inventory.list_resources(network_id, first=first, after=after))

    async def create_resource(
        self,
        name: str,
        address: str,
        network_id: str,
        alias: str | None = None,
    ) -> RemoteResource:
        return await self._call(self.inventory.create_resource(name, address, network_id, alias=alias))

    async def update_resource(
        self,
        resource_id: str,
        name: str | None = None,
        address: str | None = None,
        alias: str | None = None,
    ) -> RemoteResource:
        return await self._call(
            self.inventory.update_resource(resource_id, name=name, address=address, alias=alias)
        )

    async def delete_resource(self, resource_id: str) -> None:
        await self._call(self.inventory.delete_resource(resource_id))
