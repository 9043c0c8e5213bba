"""
Twingate Resource Sync Module.

This module provides:
- ResourceReconciler: Upsert desired Resources and clean up stale ones
- SyncResult: Per-invocation outcome of a sync
- validate_mapping: Pre-flight checks run before any remote call

Architecture:
    ResourceMapping[] → ResourceReconciler → RemoteInventory (Twingate)

Usage:
    from caddy_twingate.sync import ResourceReconciler

    reconciler = ResourceReconciler(client)
    result = await reconciler.sync(mappings, "Caddy-Managed", cleanup)
"""

from caddy_twingate.sync.models import (
    CleanupAction,
    CleanupOutcome,
    ResourceOutcome,
    SyncResult,
    UpsertAction,
)
from caddy_twingate.sync.reconciler import (
    DEFAULT_REMOTE_NETWORK_NAME,
    ResourceReconciler,
    validate_mapping,
)

__all__ = [
    "DEFAULT_REMOTE_NETWORK_NAME",
    "CleanupAction",
    "CleanupOutcome",
    "ResourceOutcome",
    "ResourceReconciler",
    "SyncResult",
    "UpsertAction",
    "validate_mapping",
]
