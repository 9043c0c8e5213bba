"""
Sync service - entry points for host integrations.

``reconcile`` runs one discovery + sync pass and returns its result.
``SyncRunner`` adds the per-network serialization callers owe the
reconciler when several triggers (startup, reload, manual) can overlap.
"""

from __future__ import annotations

import asyncio
import logging

from caddy_twingate.core.network import resolve_caddy_address
from caddy_twingate.core.settings import TwingateConfig
from caddy_twingate.discovery import HttpApp, RouteDiscoverer
from caddy_twingate.inventory.protocol import DEFAULT_PAGE_SIZE, RemoteInventory
from caddy_twingate.models import ResourceMapping, SyncSummary
from caddy_twingate.sync import DEFAULT_REMOTE_NETWORK_NAME, ResourceReconciler, SyncResult

logger = logging.getLogger(__name__)


def discover_mappings(app: HttpApp, config: TwingateConfig) -> list[ResourceMapping]:
    address = resolve_caddy_address(config.caddy_address)
    return RouteDiscoverer(caddy_address=address).discover(app)


async def reconcile(
    app: HttpApp,
    config: TwingateConfig,
    inventory: RemoteInventory,
    page_size: int = DEFAULT_PAGE_SIZE,
    timeout: float | None = None,
) -> SyncResult:
    """
    Discover reverse_proxy routes in ``app`` and sync them to Twingate.

    Args:
        app: Caddy http app
        config: Tenant, network, address and cleanup policy
        inventory: Remote inventory to converge
        page_size: Listing page size
        timeout: Time budget in seconds for the sync

    Returns:
        SyncResult of the pass

    Raises:
        ConfigurationError: Caddy address could not be resolved
        NetworkResolutionError: Target network could not be found or created
        AggregateSyncError: Some upserts or deletions failed
    """
    logger.info("Starting Twingate sync")

    if config.resource_cleanup.enabled:
        logger.warning(
            "Resource cleanup ENABLED - every resource in remote network "
            f"{config.remote_network or DEFAULT_REMOTE_NETWORK_NAME!r} not routed by Caddy will be "
            f"{'reported' if config.resource_cleanup.dry_run else 'deleted'}"
        )

    mappings = discover_mappings(app, config)
    if not mappings:
        logger.info("No reverse_proxy endpoints found, skipping sync")
        return SyncResult()

    logger.info(f"Discovered {len(mappings)} reverse_proxy endpoints")

    reconciler = ResourceReconciler(inventory, page_size=page_size)
    result = await reconciler.sync(
        mappings,
        config.remote_network,
        config.resource_cleanup,
        timeout=timeout,
    )
    logger.info("Twingate sync completed successfully")
    return result


async def preview(
    app: HttpApp,
    config: TwingateConfig,
    inventory: RemoteInventory,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> SyncSummary:
    mappings = discover_mappings(app, config)
    reconciler = ResourceReconciler(inventory, page_size=page_size)
    return await reconciler.get_sync_summary(mappings, config.remote_network)


class SyncRunner:
    """
    Serialize syncs per target Remote Network.

    A network's lock exists only while some run for it is active or waiting.

    Usage:
        runner = SyncRunner(client, config)
        result = await runner.run(app)
    """

    def __init__(
        self,
        inventory: RemoteInventory,
        config: TwingateConfig,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = None,
    ) -> None:
        self.inventory = inventory
        self.config = config
        self.page_size = page_size
        self.timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def _acquire_slot(self, network_name: str) -> asyncio.Lock:
        self._holders[network_name] = self._holders.get(network_name, 0) + 1
        return self._locks.setdefault(network_name, asyncio.Lock())

    def _release_slot(self, network_name: str) -> None:
        self._holders[network_name] -= 1
        if not self._holders[network_name]:
            del self._holders[network_name]
            del self._locks[network_name]

    async def run(self, app: HttpApp, config: TwingateConfig | None = None) -> SyncResult:
        """Run ``reconcile`` while holding the lock of the target network."""
        config = config or self.config
        network_name = config.remote_network or DEFAULT_REMOTE_NETWORK_NAME

        lock = self._acquire_slot(network_name)
        try:
            async with lock:
                return await reconcile(
                    app,
                    config,
                    self.inventory,
                    page_size=self.page_size,
                    timeout=self.timeout,
                )
        finally:
            self._release_slot(network_name)
