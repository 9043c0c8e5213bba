"""
Route Discoverer - derive desired Twingate Resources from Caddy routes.

Walks every server's routes, carrying the host and path matchers inherited
from enclosing routes, and emits an Endpoint for each host in scope whenever a
reverse_proxy handler is reached. Endpoints are then consolidated per host,
because Twingate Resources have no notion of paths.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from caddy_twingate.discovery.routing import HttpApp, Opaque, ProxyLeaf, Route, Subroute
from caddy_twingate.models import Endpoint, ResourceMapping

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"

# Names Caddy assigns to servers declared without a name
ANONYMOUS_SERVER = re.compile(r"^(srv\d+)?$")


@dataclass(frozen=True)
class RouteContext:
    """Matcher state inherited down the route tree."""

    hosts: tuple[str, ...] = ()
    path: str = ""


@dataclass
class DiscoveryResult:
    """Consolidated endpoints of one discovery pass."""

    endpoints: list[Endpoint] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)


def normalize_path(path: str) -> str:
    """Normalize a path matcher pattern.

    "/api/*" -> "/api/", "/api" -> "/api/", "/" -> "", "/*" -> ""
    """
    path = path.removesuffix("*")

    if path and path != "/" and not path.endswith("/"):
        path = path + "/"

    if path == "/":
        path = ""

    return path


def is_anonymous_server(name: str) -> bool:
    return ANONYMOUS_SERVER.match(name) is not None


class RouteDiscoverer:
    """
    Discover reverse_proxy endpoints in a Caddy http app.

    Usage:
        discoverer = RouteDiscoverer(caddy_address="10.0.0.5")
        mappings = discoverer.discover(http_app)
    """

    def __init__(self, caddy_address: str = "") -> None:
        """
        Initialize RouteDiscoverer.

        Args:
            caddy_address: Address every discovered Resource points at
        """
        self.caddy_address = caddy_address

    def discover(self, app: HttpApp) -> list[ResourceMapping]:
        """Discover endpoints and convert them to ResourceMappings."""
        result = self.discover_endpoints(app)
        return [ep.to_resource_mapping(self.caddy_address) for ep in result.endpoints]

    def discover_endpoints(self, app: HttpApp) -> DiscoveryResult:
        """
        Walk all servers and return one Endpoint per distinct host.

        Args:
            app: Parsed Caddy http app

        Returns:
            DiscoveryResult with host-consolidated endpoints (path always "")
            and any diagnostics recorded during the walk
        """
        found: dict[str, Endpoint] = {}
        diagnostics: list[str] = []

        for server_name, server in app.servers.items():
            logger.debug(f"Scanning server {server_name!r}")

            ctx = RouteContext()
            if not is_anonymous_server(server_name):
                ctx = RouteContext(hosts=(server_name,))

            for index, route in enumerate(server.routes):
                logger.debug(f"Scanning route #{index} of server {server_name!r}")
                self._traverse_route(route, ctx, found, diagnostics)

        # Twingate works at the host level, not per path
        hosts: dict[str, Endpoint] = {}
        for ep in found.values():
            if ep.host not in hosts:
                hosts[ep.host] = Endpoint(host=ep.host, path="")

        logger.info(f"Route discovery complete: {len(hosts)} endpoints found")
        return DiscoveryResult(endpoints=list(hosts.values()), diagnostics=diagnostics)

    def _traverse_route(
        self,
        route: Route,
        parent: RouteContext,
        found: dict[str, Endpoint],
        diagnostics: list[str],
    ) -> None:
        ctx = self._merge_matchers(route, parent)

        for handler in route.handle:
            if isinstance(handler, ProxyLeaf):
                self._emit_endpoints(ctx, found, diagnostics)
            elif isinstance(handler, Subroute):
                for inner in handler.routes:
                    self._traverse_route(inner, ctx, found, diagnostics)
            elif isinstance(handler, Opaque):
                if handler.error:
                    diagnostics.append(f"Skipped undecodable handler: {handler.error}")
                logger.debug(f"Skipping handler type {handler.handler!r}")

    def _merge_matchers(self, route: Route, parent: RouteContext) -> RouteContext:
        hosts = parent.hosts
        path = parent.path

        for matcher_set in route.match:
            if matcher_set.host is not None:
                hosts = tuple(matcher_set.host)
            if matcher_set.path:
                path = normalize_path(matcher_set.path[0])

        return RouteContext(hosts=hosts, path=path)

    def _emit_endpoints(
        self,
        ctx: RouteContext,
        found: dict[str, Endpoint],
        diagnostics: list[str],
    ) -> None:
        hosts = ctx.hosts
        if not hosts:
            hosts = (DEFAULT_HOST,)
            message = f"No host matchers found for reverse_proxy at path {ctx.path!r}, using {DEFAULT_HOST}"
            diagnostics.append(message)
            logger.warning(message)

        for host in hosts:
            ep = Endpoint(host=host, path=ctx.path)
            if ep.canonical_key not in found:
                found[ep.canonical_key] = ep
                logger.debug(
                    f"Discovered endpoint host={ep.host} path={ep.path!r} "
                    f"resource_name={ep.resource_name}"
                )
