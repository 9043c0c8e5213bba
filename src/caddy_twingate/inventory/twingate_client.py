"""
Twingate GraphQL client.

Implements the RemoteInventory protocol against
``https://{tenant}.twingate.com/api/graphql/`` using httpx. Listings use
Relay-style cursor pagination (``first``/``after`` with ``pageInfo``).

Usage:
    async with TwingateClient(tenant="acme", api_key=key) as client:
        page = await client.list_remote_networks(first=100)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError

from caddy_twingate.exceptions import ConfigurationError, GraphQLError, RemoteRejection, TransportError
from caddy_twingate.inventory.protocol import DEFAULT_PAGE_SIZE
from caddy_twingate.models import Page, RemoteNetwork, RemoteResource

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 30.0

RESOURCE_FIELDS = "id name address { value } alias remoteNetwork { id }"

CONNECTION_TEST_QUERY = """
query ConnectionTest {
  remoteNetworks(first: 1) { edges { node { id } } }
}
"""

REMOTE_NETWORKS_QUERY = """
query RemoteNetworks($first: Int, $after: String) {
  remoteNetworks(first: $first, after: $after) {
    pageInfo { hasNextPage endCursor }
    edges { node { id name } }
  }
}
"""

RESOURCES_QUERY = f"""
query RemoteNetworkResources($id: ID!, $first: Int, $after: String) {{
  remoteNetwork(id: $id) {{
    resources(first: $first, after: $after) {{
      pageInfo {{ hasNextPage endCursor }}
      edges {{ node {{ {RESOURCE_FIELDS} }} }}
    }}
  }}
}}
"""

REMOTE_NETWORK_CREATE_MUTATION = """
mutation RemoteNetworkCreate($name: String!) {
  remoteNetworkCreate(name: $name) { ok error entity { id name } }
}
"""

RESOURCE_CREATE_MUTATION = f"""
mutation ResourceCreate($name: String!, $address: String!, $remoteNetworkId: ID!, $alias: String) {{
  resourceCreate(name: $name, address: $address, remoteNetworkId: $remoteNetworkId, alias: $alias) {{
    ok error entity {{ {RESOURCE_FIELDS} }}
  }}
}}
"""

RESOURCE_UPDATE_MUTATION = f"""
mutation ResourceUpdate($id: ID!, $name: String, $address: String, $alias: String) {{
  resourceUpdate(id: $id, name: $name, address: $address, alias: $alias) {{
    ok error entity {{ {RESOURCE_FIELDS} }}
  }}
}}
"""

RESOURCE_DELETE_MUTATION = """
mutation ResourceDelete($id: ID!) {
  resourceDelete(id: $id) { ok error }
}
"""


def graphql_endpoint(tenant: str) -> str:
    return f"https://{tenant}.twingate.com/api/graphql/"


def _parse_connection(connection: Any, label: str) -> tuple[list[dict[str, Any]], bool, str | None]:
    if connection is None:
        return [], False, None
    try:
        page_info = connection.get("pageInfo") or {}
        nodes = [edge["node"] for edge in connection.get("edges") or [] if edge.get("node")]
        return nodes, bool(page_info.get("hasNextPage")), page_info.get("endCursor")
    except (AttributeError, KeyError, TypeError) as e:
        raise TransportError(f"Twingate API returned a malformed {label} listing: {e!r}") from e


def _parse_entity(factory: Callable[[dict[str, Any]], T], node: Any, label: str) -> T:
    try:
        return factory(node)
    except (AttributeError, KeyError, TypeError, ValidationError) as e:
        raise RemoteRejection(f"{label} returned a malformed entity: {e!r}") from e


def _mutation_payload(data: dict[str, Any], field: str, label: str, require_entity: bool = True) -> dict[str, Any]:
    payload = data.get(field) or {}
    if not isinstance(payload, dict):
        raise RemoteRejection(f"{label} returned a malformed payload: {payload!r}")
    if not payload.get("ok"):
        raise RemoteRejection(f"{label} failed: {payload.get('error') or 'unknown error'}")
    if require_entity and not payload.get("entity"):
        raise RemoteRejection(f"{label} succeeded but no entity returned")
    return payload


class TwingateClient:
    """Async Twingate GraphQL API client."""

    def __init__(
        self,
        tenant: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize TwingateClient.

        Args:
            tenant: Twingate tenant (the ``acme`` in ``acme.twingate.com``)
            api_key: API key sent as ``X-API-KEY``
            timeout: Per-request timeout in seconds
            http_client: Pre-built client (tests inject a MockTransport here)
        """
        if not tenant:
            raise ConfigurationError("tenant is required")
        if not api_key:
            raise ConfigurationError("TWINGATE_API_KEY environment variable is required")

        self.tenant = tenant
        self.endpoint = graphql_endpoint(tenant)
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._headers = {
            "X-API-KEY": api_key,
            "Content-Type": "application/json",
        }

    async def __aenter__(self) -> TwingateClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Post a GraphQL document and return its ``data``.

        Raises:
            TransportError: Network failure, non-2xx status or a body that is not a JSON object
            GraphQLError: Response carried an ``errors`` array
        """
        try:
            response = await self._client.post(
                self.endpoint,
                json={"query": query, "variables": variables or {}},
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Twingate API request failed: {e}") from e

        if response.is_error:
            raise TransportError(f"Twingate API returned HTTP {response.status_code}: {response.text[:200]}")

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(f"Twingate API returned invalid JSON: {e}") from e

        if not isinstance(body, dict):
            raise TransportError(f"Twingate API returned a non-object body: {type(body).__name__}")

        errors = body.get("errors")
        if errors:
            if not isinstance(errors, list):
                errors = [errors]
            messages = "; ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err) for err in errors
            )
            raise GraphQLError(f"GraphQL error: {messages}", errors=errors)

        data = body.get("data") or {}
        if not isinstance(data, dict):
            raise TransportError(f"Twingate API returned non-object data: {type(data).__name__}")
        return data

    async def test_connection(self) -> None:
        try:
            await self.execute(CONNECTION_TEST_QUERY)
        except TransportError as e:
            raise TransportError(f"API connection test failed: {e}") from e
        logger.debug("API connection test successful")

    async def list_remote_networks(
        self,
        first: int = DEFAULT_PAGE_SIZE,
        after: str | None = None,
    ) -> Page[RemoteNetwork]:
        data = await self.execute(REMOTE_NETWORKS_QUERY, {"first": first, "after": after})
        nodes, has_next, cursor = _parse_connection(data.get("remoteNetworks"), "remote network")
        return Page[RemoteNetwork](
            items=[_parse_entity(RemoteNetwork.from_node, node, "remote network listing") for node in nodes],
            has_next_page=has_next,
            end_cursor=cursor,
        )

    async def create_remote_network(self, name: str) -> RemoteNetwork:
        data = await self.execute(REMOTE_NETWORK_CREATE_MUTATION, {"name": name})
        payload = _mutation_payload(data, "remoteNetworkCreate", "remote network creation")
        return _parse_entity(RemoteNetwork.from_node, payload["entity"], "remote network creation")

    async def list_resources(
        self,
        network_id: str,
        first: int = DEFAULT_PAGE_SIZE,
        after: str | None = None,
    ) -> Page[RemoteResource]:
        data = await self.execute(RESOURCES_QUERY, {"id": network_id, "first": first, "after": after})
        network = data.get("remoteNetwork")
        if network is None:
            raise RemoteRejection(f"remote network {network_id} not found")
        if not isinstance(network, dict):
            raise TransportError(f"Twingate API returned a malformed remote network {network_id}")

        nodes, has_next, cursor = _parse_connection(network.get("resources"), "resource")
        resources = [_parse_entity(RemoteResource.from_node, node, "resource listing") for node in nodes]
        for resource in resources:
            if not resource.network_id:
                resource.network_id = network_id
        return Page[RemoteResource](items=resources, has_next_page=has_next, end_cursor=cursor)

    async def create_resource(
        self,
        name: str,
        address: str,
        network_id: str,
        alias: str | None = None,
    ) -> RemoteResource:
        logger.debug(f"Creating resource name={name} address={address} remote_network_id={network_id}")
        data = await self.execute(
            RESOURCE_CREATE_MUTATION,
            {"name": name, "address": address, "remoteNetworkId": network_id, "alias": alias},
        )
        payload = _mutation_payload(data, "resourceCreate", "resource creation")
        return _parse_entity(RemoteResource.from_node, payload["entity"], "resource creation")

    async def update_resource(
        self,
        resource_id: str,
        name: str | None = None,
        address: str | None = None,
        alias: str | None = None,
    ) -> RemoteResource:
        """Update a Resource. A None alias is sent as an empty string, which clears it."""
        data = await self.execute(
            RESOURCE_UPDATE_MUTATION,
            {"id": resource_id, "name": name, "address": address, "alias": alias if alias is not None else ""},
        )
        payload = _mutation_payload(data, "resourceUpdate", "resource update")
        return _parse_entity(RemoteResource.from_node, payload["entity"], "resource update")

    async def delete_resource(self, resource_id: str) -> None:
        data = await self.execute(RESOURCE_DELETE_MUTATION, {"id": resource_id})
        _mutation_payload(data, "resourceDelete", "resource deletion", require_entity=False)
        logger.debug(f"Deleted resource {resource_id}")
