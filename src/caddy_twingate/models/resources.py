"""
Resource data models shared by discovery, inventory and sync.

Endpoint and ResourceMapping describe desired state and are recomputed on
every discovery pass. RemoteNetwork and RemoteResource mirror entities owned
by Twingate and are parsed from GraphQL nodes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field

WILDCARD = "*"
CANONICAL_KEY_SEPARATOR = "\x00"

T = TypeVar("T")


@dataclass(frozen=True)
class ResourceMapping:
    """Desired Twingate Resource for one Caddy host."""

    name: str
    address: str
    alias: str | None = None


@dataclass(frozen=True)
class Endpoint:
    """A (host, path) pair served by a reverse_proxy handler."""

    host: str
    path: str = ""

    @property
    def canonical_key(self) -> str:
        return f"{self.host}{CANONICAL_KEY_SEPARATOR}{self.path}"

    @property
    def resource_name(self) -> str:
        """Twingate works per host, so every path on a host shares one name."""
        return self.host

    @property
    def resource_alias(self) -> str | None:
        """Host as DNS alias, or None for wildcard hosts."""
        if WILDCARD in self.host:
            return None
        return self.host

    def to_resource_mapping(self, address: str) -> ResourceMapping:
        return ResourceMapping(
            name=self.resource_name,
            alias=self.resource_alias,
            address=address,
        )


class CleanupConfig(BaseModel):
    """Stale-resource deletion policy. ``dry_run`` only matters when enabled."""

    enabled: bool = Field(default=False, description="Delete resources no longer routed by Caddy")
    dry_run: bool = Field(default=False, description="Log deletions without performing them")


class RemoteNetwork(BaseModel):
    """Twingate Remote Network."""

    id: str
    name: str

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> RemoteNetwork:
        return cls(id=str(node["id"]), name=node["name"])


class RemoteResource(BaseModel):
    """Twingate Resource as returned by the GraphQL API."""

    id: str
    name: str
    address: str
    alias: str | None = None
    network_id: str = ""

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> RemoteResource:
        """Build from ``{id, name, address {value}, alias, remoteNetwork {id}}``."""
        address = node.get("address") or {}
        network = node.get("remoteNetwork") or {}
        return cls(
            id=str(node["id"]),
            name=node["name"],
            address=address.get("value", "") if isinstance(address, dict) else str(address),
            alias=node.get("alias") or None,
            network_id=str(network.get("id", "")),
        )


class Page(BaseModel, Generic[T]):
    """One page of a cursor-paginated listing."""

    items: list[T] = Field(default_factory=list)
    has_next_page: bool = False
    end_cursor: str | None = None


class SyncSummary(BaseModel):
    """Read-only preview of what a sync would do."""

    total_mappings: int = 0
    remote_network_action: Literal["create", "use_existing"] | None = None
    remote_network_name: str = ""
    remote_network_id: str | None = None
    resources_to_create: int = 0
    resources_to_update: int = 0
