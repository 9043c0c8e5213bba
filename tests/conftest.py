"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from caddy_twingate.core.settings import TwingateConfig
from caddy_twingate.models import CleanupConfig, Page, RemoteNetwork, RemoteResource

MUTATIONS = {"create_remote_network", "create_resource", "update_resource", "delete_resource"}


class FakeInventory:
    """In-memory RemoteInventory with cursor pagination and failure injection.

    ``failures`` maps a method name to an exception raised on every call;
    ``delete_failures`` maps a resource ID to an exception raised on delete.
    """

    def __init__(
        self,
        networks: list[RemoteNetwork] | None = None,
        resources: list[RemoteResource] | None = None,
    ) -> None:
        self.networks = list(networks or [])
        self.resources = {r.id: r for r in resources or []}
        self.calls: list[tuple] = []
        self.failures: dict[str, Exception] = {}
        self.delete_failures: dict[str, Exception] = {}
        self._next_id = 1

    async def __aenter__(self) -> FakeInventory:
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    @property
    def mutations(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in MUTATIONS]

    def calls_to(self, method: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == method]

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        if method in self.failures:
            raise self.failures[method]

    def _new_id(self, prefix: str) -> str:
        new_id = f"{prefix}-new-{self._next_id}"
        self._next_id += 1
        return new_id

    @staticmethod
    def _page(items: list, first: int, after: str | None) -> Page:
        start = int(after) if after else 0
        chunk = items[start:start + first]
        end = start + len(chunk)
        return Page(items=chunk, has_next_page=end < len(items), end_cursor=str(end))

    async def list_remote_networks(self, first: int = 100, after: str | None = None) -> Page[RemoteNetwork]:
        self._record("list_remote_networks", first, after)
        return self._page(self.networks, first, after)

    async def create_remote_network(self, name: str) -> RemoteNetwork:
        self._record("create_remote_network", name)
        network = RemoteNetwork(id=self._new_id("net"), name=name)
        self.networks.append(network)
        return network

    async def list_resources(
        self,
        network_id: str,
        first: int = 100,
        after: str | None = None,
    ) -> Page[RemoteResource]:
        self._record("list_resources", network_id, first, after)
        in_network = [r for r in self.resources.values() if r.network_id == network_id]
        return self._page(in_network, first, after)

    async def create_resource(
        self,
        name: str,
        address: str,
        network_id: str,
        alias: str | None = None,
    ) -> RemoteResource:
        self._record("create_resource", name, address, network_id, alias)
        resource = RemoteResource(
            id=self._new_id("res"),
            name=name,
            address=address,
            alias=alias,
            network_id=network_id,
        )
        self.resources[resource.id] = resource
        return resource

    async def update_resource(
        self,
        resource_id: str,
        name: str | None = None,
        address: str | None = None,
        alias: str | None = None,
    ) -> RemoteResource:
        self._record("update_resource", resource_id, name, address, alias)
        current = self.resources[resource_id]
        updated = current.model_copy(update={"name": name, "address": address, "alias": alias})
        self.resources[resource_id] = updated
        return updated

    async def delete_resource(self, resource_id: str) -> None:
        self._record("delete_resource", resource_id)
        if resource_id in self.delete_failures:
            raise self.delete_failures[resource_id]
        del self.resources[resource_id]


@pytest.fixture
def network() -> RemoteNetwork:
    return RemoteNetwork(id="net-1", name="Caddy-Managed")


@pytest.fixture
def inventory(network: RemoteNetwork) -> FakeInventory:
    """Inventory holding the default network and no resources."""
    return FakeInventory(networks=[network])


@pytest.fixture
def twingate_config() -> TwingateConfig:
    return TwingateConfig(
        tenant="acme",
        remote_network="Caddy-Managed",
        caddy_address="10.0.0.5",
        resource_cleanup=CleanupConfig(),
    )


@pytest.fixture
def caddy_config() -> dict:
    """Full Caddy config: api.example.com with one route, app.example.com with two."""
    return {
        "apps": {
            "http": {
                "servers": {
                    "srv0": {
                        "listen": [":443"],
                        "routes": [
                            {
                                "match": [{"host": ["api.example.com"]}],
                                "handle": [
                                    {
                                        "handler": "subroute",
                                        "routes": [
                                            {
                                                "match": [{"path": ["/v1/*"]}],
                                                "handle": [{"handler": "reverse_proxy", "upstreams": [{"dial": "api:8080"}]}],
                                            }
                                        ],
                                    }
                                ],
                                "terminal": True,
                            },
                            {
                                "match": [{"host": ["app.example.com"]}],
                                "handle": [
                                    {
                                        "handler": "subroute",
                                        "routes": [
                                            {
                                                "match": [{"path": ["/api/*"]}],
                                                "handle": [{"handler": "reverse_proxy", "upstreams": [{"dial": "app:8080"}]}],
                                            },
                                            {
                                                "match": [{"path": ["/admin/*"]}],
                                                "handle": [{"handler": "reverse_proxy", "upstreams": [{"dial": "admin:8080"}]}],
                                            },
                                        ],
                                    }
                                ],
                                "terminal": True,
                            },
                        ],
                    }
                }
            }
        }
    }


@pytest.fixture
def make_inventory() -> type[FakeInventory]:
    """The FakeInventory class, for tests that need custom contents."""
    return FakeInventory
