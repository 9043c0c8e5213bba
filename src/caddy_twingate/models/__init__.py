# Caddy-Twingate Models Package
"""
Data models shared across discovery, inventory and sync.
"""

from caddy_twingate.models.resources import (
    CleanupConfig,
    Endpoint,
    Page,
    RemoteNetwork,
    RemoteResource,
    ResourceMapping,
    SyncSummary,
)

__all__ = [
    "CleanupConfig",
    "Endpoint",
    "Page",
    "RemoteNetwork",
    "RemoteResource",
    "ResourceMapping",
    "SyncSummary",
]
