"""Exception hierarchy for route discovery and Twingate reconciliation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from caddy_twingate.sync.models import SyncResult


class CaddyTwingateError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(CaddyTwingateError):
    """Missing or invalid settings, or an unreadable routing config."""


class MappingValidationError(CaddyTwingateError, ValueError):
    """A ResourceMapping cannot be sent to Twingate (empty field, non-IPv4 address)."""


class TransportError(CaddyTwingateError):
    """The Twingate API could not be reached or answered with an HTTP error."""


class GraphQLError(TransportError):
    """The GraphQL endpoint answered with an ``errors`` array."""

    def __init__(self, message: str, errors: list[Any] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class RemoteRejection(CaddyTwingateError):
    """A mutation reached Twingate but came back with ``ok: false``."""


class NetworkResolutionError(CaddyTwingateError):
    """The target Remote Network could neither be found nor created."""


class AggregateSyncError(CaddyTwingateError):
    """A sync finished its batch but some upserts or deletions failed.

    The complete ``SyncResult`` is attached so callers can still report what
    succeeded.
    """

    def __init__(self, result: SyncResult) -> None:
        self.result = result
        self.upsert_errors = result.upsert_errors
        self.delete_errors = result.delete_errors
        total = self.upsert_errors + self.delete_errors
        super().__init__(
            f"sync completed with {total} errors "
            f"(upsert: {self.upsert_errors}, delete: {self.delete_errors})"
        )
