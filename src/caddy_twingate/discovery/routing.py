"""
Typed view of the Caddy ``http`` app configuration.

Only the parts route discovery needs are modelled: servers, their ordered
routes, the host/path matchers of each matcher set and the handler chain.
Unknown keys are kept on the models but otherwise ignored.

Handlers are resolved once, at ingestion, into a closed variant:

    ProxyLeaf   reverse_proxy, terminal for discovery
    Subroute    nested route list, traversed with the current context
    Opaque      any other handler, skipped

A handler may be given already decoded (one of the variant models) or as the
raw JSON object Caddy stores (``{"handler": "reverse_proxy", ...}``); both
resolve to the same variant. A dumped variant (``{"kind": "proxy"}``) is read
back as that variant, so ``model_dump()`` output validates to an equal model.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

REVERSE_PROXY = "reverse_proxy"
SUBROUTE = "subroute"


class ProxyLeaf(BaseModel):
    """A reverse_proxy handler."""

    kind: Literal["proxy"] = "proxy"


class Subroute(BaseModel):
    """A subroute handler holding its own ordered routes."""

    kind: Literal["subroute"] = "subroute"
    routes: list[Route] = Field(default_factory=list)


class Opaque(BaseModel):
    """Any handler discovery does not look into (file_server, headers, ...)."""

    kind: Literal["opaque"] = "opaque"
    handler: str = ""
    error: str | None = Field(default=None, description="Set when the raw handler could not be decoded")


def _decode_routes(raw_routes: Any) -> list[Route]:
    if not isinstance(raw_routes, list):
        return []

    routes: list[Route] = []
    for index, raw in enumerate(raw_routes):
        try:
            routes.append(Route.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping undecodable subroute route #{index}: {e}")
    return routes


def _resolve_dumped(value: Mapping[str, Any]) -> ProxyLeaf | Subroute | Opaque:
    kind = value.get("kind")
    if kind == "proxy":
        return ProxyLeaf()
    if kind == "subroute":
        return Subroute(routes=_decode_routes(value.get("routes")))
    if kind == "opaque":
        return Opaque(handler=str(value.get("handler") or ""), error=value.get("error"))
    return Opaque(handler=str(kind), error=f"unknown handler kind: {kind}")


def resolve_handler(value: Any) -> ProxyLeaf | Subroute | Opaque:
    """Resolve a pre-decoded or raw handler into the handler variant."""
    if isinstance(value, (ProxyLeaf, Subroute, Opaque)):
        return value

    if isinstance(value, (str, bytes, bytearray)):
        try:
            value = json.loads(value)
        except ValueError as e:
            logger.warning(f"Failed to decode handler JSON: {e}")
            return Opaque(error=f"invalid handler JSON: {e}")

    if not isinstance(value, Mapping):
        return Opaque(
            handler=type(value).__name__,
            error=f"unsupported handler value of type {type(value).__name__}",
        )

    # Opaque dumps keep their handler name next to kind
    if "kind" in value and ("handler" not in value or value.get("kind") == "opaque"):
        return _resolve_dumped(value)

    name = value.get("handler")
    if name == REVERSE_PROXY:
        return ProxyLeaf()
    if name == SUBROUTE:
        return Subroute(routes=_decode_routes(value.get("routes")))
    return Opaque(handler=str(name or ""))


Handler = Annotated[
    Union[ProxyLeaf, Subroute, Opaque],
    Field(discriminator="kind"),
    BeforeValidator(resolve_handler),
]


class MatcherSet(BaseModel):
    """One Caddy matcher set. ``None`` means the matcher is absent."""

    model_config = ConfigDict(extra="allow")

    host: list[str] | None = None
    path: list[str] | None = None


class Route(BaseModel):
    """One Caddy route: matcher sets plus a handler chain."""

    model_config = ConfigDict(extra="allow")

    match: list[MatcherSet] = Field(default_factory=list)
    handle: list[Handler] = Field(default_factory=list)
    group: str | None = None
    terminal: bool = False


class Server(BaseModel):
    model_config = ConfigDict(extra="allow")

    listen: list[str] = Field(default_factory=list)
    routes: list[Route] = Field(default_factory=list)


class HttpApp(BaseModel):
    """The ``apps.http`` section of a Caddy config."""

    model_config = ConfigDict(extra="allow")

    servers: dict[str, Server] = Field(default_factory=dict)


Subroute.model_rebuild()
