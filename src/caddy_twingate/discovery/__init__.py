"""
Route discovery over the Caddy http app.

Usage:
    from caddy_twingate.discovery import RouteDiscoverer, HttpApp

    app = HttpApp.model_validate(config["apps"]["http"])
    mappings = RouteDiscoverer(caddy_address="10.0.0.5").discover(app)
"""

from caddy_twingate.discovery.route_discoverer import (
    DiscoveryResult,
    RouteContext,
    RouteDiscoverer,
    normalize_path,
)
from caddy_twingate.discovery.routing import (
    HttpApp,
    MatcherSet,
    Opaque,
    ProxyLeaf,
    Route,
    Server,
    Subroute,
    resolve_handler,
)

__all__ = [
    "DiscoveryResult",
    "HttpApp",
    "MatcherSet",
    "Opaque",
    "ProxyLeaf",
    "Route",
    "RouteContext",
    "RouteDiscoverer",
    "Server",
    "Subroute",
    "normalize_path",
    "resolve_handler",
]
