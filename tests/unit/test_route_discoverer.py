"""
Unit tests for RouteDiscoverer.

Tests cover:
1. Path normalization and Endpoint naming rules
2. Host/path context inheritance through nested subroutes
3. Host-level consolidation of discovered endpoints
4. Identical results for pre-decoded and raw handler trees
"""

import pytest

from caddy_twingate.discovery import (
    HttpApp,
    MatcherSet,
    Opaque,
    ProxyLeaf,
    Route,
    RouteContext,
    RouteDiscoverer,
    Server,
    Subroute,
    normalize_path,
)
from caddy_twingate.discovery.route_discoverer import is_anonymous_server
from caddy_twingate.models import Endpoint, ResourceMapping


def make_app(routes: list, server_name: str = "srv0") -> HttpApp:
    return HttpApp.model_validate({"servers": {server_name: {"routes": routes}}})


def proxy_route(host: str | None = None, path: str | None = None) -> dict:
    match: dict = {}
    if host is not None:
        match["host"] = [host]
    if path is not None:
        match["path"] = [path]
    return {
        "match": [match] if match else [],
        "handle": [{"handler": "reverse_proxy", "upstreams": [{"dial": "backend:80"}]}],
    }


class TestNormalizePath:
    """Tests for path matcher normalization."""

    @pytest.mark.parametrize(
        "pattern,expected",
        [
            ("/api/*", "/api/"),
            ("/api", "/api/"),
            ("/", ""),
            ("/admin/*", "/admin/"),
            ("/*", ""),
            ("", ""),
            ("/api/", "/api/"),
        ],
    )
    def test_normalize(self, pattern, expected):
        """Test documented normalization examples."""
        assert normalize_path(pattern) == expected


class TestEndpoint:
    """Tests for Endpoint naming helpers."""

    def test_canonical_key_distinguishes_paths(self):
        """Test same host with different paths yields different keys."""
        a = Endpoint(host="api.example.com", path="/v1/")
        b = Endpoint(host="api.example.com", path="/v2/")
        assert a.canonical_key != b.canonical_key
        assert a.canonical_key == Endpoint(host="api.example.com", path="/v1/").canonical_key

    def test_resource_name_is_host(self):
        """Test all paths on a host share the host as resource name."""
        assert Endpoint(host="api.example.com", path="/v1/").resource_name == "api.example.com"

    def test_alias_for_regular_host(self):
        """Test alias equals host for DNS-safe hosts."""
        assert Endpoint(host="app.example.com").resource_alias == "app.example.com"

    def test_no_alias_for_wildcard_host(self):
        """Test wildcard hosts have no alias."""
        assert Endpoint(host="*.example.com").resource_alias is None

    def test_to_resource_mapping(self):
        """Test conversion carries the configured address."""
        mapping = Endpoint(host="api.example.com", path="/v1/").to_resource_mapping("10.0.0.5")
        assert mapping == ResourceMapping(name="api.example.com", alias="api.example.com", address="10.0.0.5")


class TestMergeMatchers:
    """Tests for routing context inheritance."""

    def setup_method(self):
        self.discoverer = RouteDiscoverer("10.0.0.5")

    def test_inherits_parent_context_without_matchers(self):
        """Test absent matchers keep the parent's hosts and path."""
        parent = RouteContext(hosts=("a.example.com",), path="/api/")
        ctx = self.discoverer._merge_matchers(Route(), parent)
        assert ctx == parent

    def test_host_matcher_replaces_hosts(self):
        """Test a host matcher replaces, not extends, inherited hosts."""
        parent = RouteContext(hosts=("a.example.com",), path="/api/")
        route = Route(match=[MatcherSet(host=["b.example.com", "c.example.com"])])
        ctx = self.discoverer._merge_matchers(route, parent)
        assert ctx.hosts == ("b.example.com", "c.example.com")
        assert ctx.path == "/api/"

    def test_only_first_path_pattern_is_used(self):
        """Test later path patterns in a matcher are ignored."""
        route = Route(match=[MatcherSet(path=["/v1/*", "/v2/*"])])
        ctx = self.discoverer._merge_matchers(route, RouteContext())
        assert ctx.path == "/v1/"

    def test_later_matcher_set_overrides(self):
        """Test matcher sets apply in order."""
        route = Route(match=[MatcherSet(host=["a.example.com"]), MatcherSet(host=["b.example.com"])])
        ctx = self.discoverer._merge_matchers(route, RouteContext())
        assert ctx.hosts == ("b.example.com",)


class TestDiscover:
    """Tests for full-tree discovery."""

    def test_end_to_end_two_hosts(self, caddy_config):
        """Test api + app hosts with three proxied paths yield two mappings."""
        app = HttpApp.model_validate(caddy_config["apps"]["http"])
        mappings = RouteDiscoverer(caddy_address="10.0.0.5").discover(app)

        assert sorted(mappings, key=lambda m: m.name) == [
            ResourceMapping(name="api.example.com", alias="api.example.com", address="10.0.0.5"),
            ResourceMapping(name="app.example.com", alias="app.example.com", address="10.0.0.5"),
        ]

    def test_paths_on_same_host_consolidate(self):
        """Test root and /v1/ on one host collapse into one mapping."""
        app = make_app([proxy_route("api.example.com"), proxy_route("api.example.com", "/v1/*")])
        mappings = RouteDiscoverer("10.0.0.5").discover(app)

        assert [m.name for m in mappings] == ["api.example.com"]

    def test_many_paths_single_entry_per_host(self):
        """Test any number of paths on a host still yields exactly one endpoint."""
        routes = [proxy_route("app.example.com", f"/p{i}/*") for i in range(10)]
        result = RouteDiscoverer("10.0.0.5").discover_endpoints(make_app(routes))

        assert result.endpoints == [Endpoint(host="app.example.com", path="")]

    def test_wildcard_host_has_no_alias(self):
        """Test wildcard host mapping carries no alias."""
        mappings = RouteDiscoverer("10.0.0.5").discover(make_app([proxy_route("*.example.com")]))
        assert mappings == [ResourceMapping(name="*.example.com", alias=None, address="10.0.0.5")]

    def test_multiple_hosts_in_one_matcher(self):
        """Test every host of a matcher gets its own mapping."""
        route = {
            "match": [{"host": ["a.example.com", "b.example.com"]}],
            "handle": [{"handler": "reverse_proxy"}],
        }
        mappings = RouteDiscoverer("10.0.0.5").discover(make_app([route]))
        assert [m.name for m in mappings] == ["a.example.com", "b.example.com"]

    def test_missing_host_falls_back_to_localhost(self):
        """Test a host-less reverse_proxy emits localhost and records a diagnostic."""
        result = RouteDiscoverer("10.0.0.5").discover_endpoints(make_app([proxy_route(path="/api/*")]))

        assert result.endpoints == [Endpoint(host="localhost")]
        assert len(result.diagnostics) == 1
        assert "localhost" in result.diagnostics[0]

    def test_named_server_is_implicit_host(self):
        """Test a non-default server name acts as host matcher."""
        app = make_app([proxy_route(path="/api/*")], server_name="internal.example.com")
        mappings = RouteDiscoverer("10.0.0.5").discover(app)
        assert [m.name for m in mappings] == ["internal.example.com"]

    def test_route_host_overrides_server_name(self):
        """Test a route host matcher replaces the server-name host."""
        app = make_app([proxy_route("api.example.com")], server_name="internal.example.com")
        mappings = RouteDiscoverer("10.0.0.5").discover(app)
        assert [m.name for m in mappings] == ["api.example.com"]

    @pytest.mark.parametrize("name,anonymous", [("", True), ("srv0", True), ("srv12", True), ("web", False)])
    def test_anonymous_server_names(self, name, anonymous):
        """Test generated server names are not treated as hosts."""
        assert is_anonymous_server(name) is anonymous

    def test_opaque_handlers_are_skipped(self):
        """Test non-proxy handlers emit nothing and raise nothing."""
        route = {
            "match": [{"host": ["static.example.com"]}],
            "handle": [{"handler": "file_server", "root": "/srv"}, {"handler": "headers"}],
        }
        result = RouteDiscoverer("10.0.0.5").discover_endpoints(make_app([route]))
        assert result.endpoints == []
        assert result.diagnostics == []

    def test_nested_subroutes_inherit_host(self):
        """Test hosts flow through two levels of subroute."""
        route = {
            "match": [{"host": ["deep.example.com"]}],
            "handle": [
                {
                    "handler": "subroute",
                    "routes": [
                        {
                            "handle": [
                                {
                                    "handler": "subroute",
                                    "routes": [{"match": [{"path": ["/x"]}], "handle": [{"handler": "reverse_proxy"}]}],
                                }
                            ]
                        }
                    ],
                }
            ],
        }
        mappings = RouteDiscoverer("10.0.0.5").discover(make_app([route]))
        assert [m.name for m in mappings] == ["deep.example.com"]

    def test_same_host_across_servers_deduplicated(self):
        """Test one mapping per host even when several servers proxy it."""
        app = HttpApp.model_validate(
            {
                "servers": {
                    "srv0": {"routes": [proxy_route("api.example.com")]},
                    "srv1": {"routes": [proxy_route("api.example.com", "/v2/*")]},
                }
            }
        )
        assert [m.name for m in RouteDiscoverer("10.0.0.5").discover(app)] == ["api.example.com"]

    def test_empty_app(self):
        """Test an app without servers discovers nothing."""
        assert RouteDiscoverer("10.0.0.5").discover(HttpApp()) == []

    def test_discovery_is_deterministic(self, caddy_config):
        """Test repeated passes over the same tree give the same result."""
        app = HttpApp.model_validate(caddy_config["apps"]["http"])
        discoverer = RouteDiscoverer("10.0.0.5")
        assert discoverer.discover(app) == discoverer.discover(app)


class TestHandlerRepresentations:
    """Tests that pre-decoded and raw handlers traverse identically."""

    def test_pre_decoded_matches_raw(self, caddy_config):
        """Test a tree built from variant models equals one parsed from JSON."""
        raw_app = HttpApp.model_validate(caddy_config["apps"]["http"])

        decoded_app = HttpApp(
            servers={
                "srv0": Server(
                    routes=[
                        Route(
                            match=[MatcherSet(host=["api.example.com"])],
                            handle=[Subroute(routes=[Route(match=[MatcherSet(path=["/v1/*"])], handle=[ProxyLeaf()])])],
                        ),
                        Route(
                            match=[MatcherSet(host=["app.example.com"])],
                            handle=[
                                Subroute(
                                    routes=[
                                        Route(match=[MatcherSet(path=["/api/*"])], handle=[ProxyLeaf()]),
                                        Route(match=[MatcherSet(path=["/admin/*"])], handle=[Opaque(handler="headers"), ProxyLeaf()]),
                                    ]
                                )
                            ],
                        ),
                    ]
                )
            }
        )

        discoverer = RouteDiscoverer("10.0.0.5")
        assert discoverer.discover(decoded_app) == discoverer.discover(raw_app)

    def test_mixed_representations_in_one_route(self):
        """Test a handler list mixing raw maps and variants."""
        route = Route(
            match=[MatcherSet(host=["mixed.example.com"])],
            handle=[{"handler": "encode"}, ProxyLeaf()],
        )
        app = HttpApp(servers={"srv0": Server(routes=[route])})
        assert [m.name for m in RouteDiscoverer("10.0.0.5").discover(app)] == ["mixed.example.com"]

    def test_undecodable_handler_recorded_as_diagnostic(self):
        """Test a malformed raw handler is skipped with a diagnostic."""
        route = Route(match=[MatcherSet(host=["bad.example.com"])], handle=["{not json", ProxyLeaf()])
        result = RouteDiscoverer("10.0.0.5").discover_endpoints(HttpApp(servers={"srv0": Server(routes=[route])}))

        assert result.endpoints == [Endpoint(host="bad.example.com")]
        assert any("undecodable" in d for d in result.diagnostics)

    def test_dumped_app_validates_back_to_same_tree(self, caddy_config):
        """Test model_dump output round-trips to an equal app with equal discovery."""
        app = HttpApp.model_validate(caddy_config["apps"]["http"])

        reloaded = HttpApp.model_validate(app.model_dump())
        from_json = HttpApp.model_validate_json(app.model_dump_json())

        assert reloaded == app
        assert from_json == app
        discoverer = RouteDiscoverer("10.0.0.5")
        assert discoverer.discover(reloaded) == discoverer.discover(app)
        assert len(discoverer.discover(reloaded)) == 2

    def test_dumped_opaque_keeps_decode_error(self):
        """Test an Opaque carrying a decode error survives a dump and reload."""
        route = Route(match=[MatcherSet(host=["bad.example.com"])], handle=["{not json", ProxyLeaf()])
        app = HttpApp(servers={"srv0": Server(routes=[route])})

        reloaded = HttpApp.model_validate(app.model_dump())

        assert reloaded == app
        result = RouteDiscoverer("10.0.0.5").discover_endpoints(reloaded)
        assert any("undecodable" in d for d in result.diagnostics)
