"""
Resource Reconciler - converge a Twingate Remote Network on Caddy's routes.

Upserts one Resource per ResourceMapping and, when cleanup is enabled,
deletes (or in dry-run mode, reports) Resources no longer routed by Caddy.
"""

import ipaddress
import logging
from collections.abc import Sequence
from datetime import UTC, datetime

from caddy_twingate.exceptions import (
    AggregateSyncError,
    CaddyTwingateError,
    MappingValidationError,
    NetworkResolutionError,
    RemoteRejection,
)
from caddy_twingate.inventory.deadline import DeadlineInventory
from caddy_twingate.inventory.lookup import (
    get_or_create_remote_network,
    get_remote_network_by_name,
    get_resource_by_alias,
    get_resource_by_name,
    list_all_resources,
)
from caddy_twingate.inventory.protocol import DEFAULT_PAGE_SIZE, RemoteInventory
from caddy_twingate.models import CleanupConfig, RemoteResource, ResourceMapping, SyncSummary
from caddy_twingate.sync.models import (
    CleanupAction,
    CleanupOutcome,
    ResourceOutcome,
    SyncResult,
    UpsertAction,
)

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_NETWORK_NAME = "Caddy-Managed"


def validate_mapping(mapping: ResourceMapping) -> None:
    """
    Check a mapping before any remote call is made.

    Raises:
        MappingValidationError: Empty name/address, or address not IPv4
    """
    if not mapping.name:
        raise MappingValidationError("resource name cannot be empty")
    if not mapping.address:
        raise MappingValidationError("resource address cannot be empty")

    # Twingate API currently only supports IPv4 addresses
    try:
        ip = ipaddress.ip_address(mapping.address)
    except ValueError as e:
        raise MappingValidationError(f"address '{mapping.address}' is not a valid IP address") from e
    if ip.version != 4:
        raise MappingValidationError(
            f"address '{mapping.address}' is IPv6, but only IPv4 is currently supported"
        )


class ResourceReconciler:
    """
    Reconciler for syncing ResourceMappings to a Twingate Remote Network.

    Every call is a single sequential pass; no state survives between calls.
    Callers must not run two syncs against the same Remote Network at once.

    Usage:
        reconciler = ResourceReconciler(client)
        result = await reconciler.sync(mappings, "Caddy-Managed", CleanupConfig(enabled=True))
    """

    def __init__(
        self,
        inventory: RemoteInventory,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        """
        Initialize ResourceReconciler.

        Args:
            inventory: Remote inventory (TwingateClient or compatible)
            page_size: Page size used when listing networks and resources
        """
        self.inventory = inventory
        self.page_size = page_size

    async def sync(
        self,
        mappings: Sequence[ResourceMapping],
        remote_network_name: str = "",
        cleanup: CleanupConfig | None = None,
        timeout: float | None = None,
    ) -> SyncResult:
        """
        Upsert every mapping and optionally delete stale resources.

        Args:
            mappings: Desired resources
            remote_network_name: Target network, created if missing
            cleanup: Stale-resource deletion policy (default: disabled)
            timeout: Time budget in seconds for the whole sync

        Returns:
            SyncResult when every step succeeded

        Raises:
            NetworkResolutionError: Target network could not be found or created
            AggregateSyncError: One or more upserts or deletions failed
        """
        cleanup = cleanup or CleanupConfig()
        result = SyncResult(cleanup_enabled=cleanup.enabled, dry_run=cleanup.enabled and cleanup.dry_run)

        if not mappings:
            logger.info("No resource mappings to sync")
            result.finished_at = datetime.now(UTC)
            return result

        network_name = remote_network_name or DEFAULT_REMOTE_NETWORK_NAME
        logger.info(f"Starting resource synchronization: remote_network={network_name} mappings={len(mappings)}")

        inventory: RemoteInventory = self.inventory
        if timeout is not None:
            inventory = DeadlineInventory(self.inventory, timeout)

        try:
            network, created = await get_or_create_remote_network(inventory, network_name, self.page_size)
        except CaddyTwingateError as e:
            raise NetworkResolutionError(f"failed to get or create remote network: {e}") from e

        result.network = network
        result.network_created = created
        logger.info(f"Using remote network {network.name!r} (id={network.id})")

        await self._upsert_resources(inventory, mappings, network.id, result)
        logger.info(f"Resource upsert completed: success={result.upsert_success} errors={result.upsert_errors}")

        if cleanup.enabled:
            await self._delete_stale_resources(inventory, mappings, network.id, cleanup, result)
            logger.info(f"Resource cleanup completed: deleted={result.deleted} errors={result.delete_errors}")
        else:
            logger.debug("Resource cleanup disabled, skipping deletion phase")

        result.finished_at = datetime.now(UTC)

        if result.total_errors > 0:
            raise AggregateSyncError(result)
        return result

    async def get_sync_summary(
        self,
        mappings: Sequence[ResourceMapping],
        remote_network_name: str = "",
    ) -> SyncSummary:
        """
        Preview a sync without mutating anything.

        Cleanup is not previewed. Mappings whose lookup fails are logged and
        left out of both counts.
        """
        summary = SyncSummary(total_mappings=len(mappings))
        if not mappings:
            return summary

        network_name = remote_network_name or DEFAULT_REMOTE_NETWORK_NAME
        try:
            network = await get_remote_network_by_name(self.inventory, network_name, self.page_size)
        except CaddyTwingateError as e:
            raise NetworkResolutionError(f"failed to check remote network: {e}") from e

        if network is None:
            summary.remote_network_action = "create"
            summary.remote_network_name = network_name
            summary.resources_to_create = len(mappings)
            return summary

        summary.remote_network_action = "use_existing"
        summary.remote_network_name = network.name
        summary.remote_network_id = network.id

        for mapping in mappings:
            try:
                existing = await self._find_existing(self.inventory, mapping, network.id)
            except CaddyTwingateError as e:
                logger.warning(f"Failed to check existing resource during summary for {mapping.name}: {e}")
                continue

            if existing is not None:
                summary.resources_to_update += 1
            else:
                summary.resources_to_create += 1

        return summary

    async def _upsert_resources(
        self,
        inventory: RemoteInventory,
        mappings: Sequence[ResourceMapping],
        network_id: str,
        result: SyncResult,
    ) -> None:
        for index, mapping in enumerate(mappings, start=1):
            logger.debug(f"Upserting resource {index}/{len(mappings)}: {mapping.name}")

            try:
                outcome = await self._sync_single_resource(inventory, mapping, network_id)
            except MappingValidationError as e:
                logger.error(f"Invalid mapping {mapping.name!r}: {e}")
                outcome = ResourceOutcome(mapping=mapping, action=UpsertAction.FAILED, message=str(e))
            except RemoteRejection as e:
                logger.error(f"Twingate rejected resource {mapping.name!r}: {e}")
                outcome = ResourceOutcome(mapping=mapping, action=UpsertAction.FAILED, message=str(e))
            except CaddyTwingateError as e:
                logger.error(f"Failed to upsert resource {mapping.name!r}: {e}")
                outcome = ResourceOutcome(mapping=mapping, action=UpsertAction.FAILED, message=str(e))

            result.outcomes.append(outcome)

    async def _sync_single_resource(
        self,
        inventory: RemoteInventory,
        mapping: ResourceMapping,
        network_id: str,
    ) -> ResourceOutcome:
        validate_mapping(mapping)

        existing = await self._find_existing(inventory, mapping, network_id)
        if existing is not None:
            return await self._update_existing_resource(inventory, mapping, existing)
        return await self._create_new_resource(inventory, mapping, network_id)

    async def _find_existing(
        self,
        inventory: RemoteInventory,
        mapping: ResourceMapping,
        network_id: str,
    ) -> RemoteResource | None:
        if mapping.alias is not None:
            existing = await get_resource_by_alias(inventory, mapping.alias, network_id, self.page_size)
            lookup = f"alias {mapping.alias!r}"
        else:
            existing = await get_resource_by_name(inventory, mapping.name, network_id, self.page_size)
            lookup = f"name {mapping.name!r}"

        if existing is None:
            logger.debug(f"No existing resource found by {lookup}")
        else:
            logger.debug(f"Found existing resource by {lookup} (id={existing.id})")
        return existing

    async def _create_new_resource(
        self,
        inventory: RemoteInventory,
        mapping: ResourceMapping,
        network_id: str,
    ) -> ResourceOutcome:
        logger.debug(
            f"Creating new resource name={mapping.name} address={mapping.address} "
            f"alias={mapping.alias or '<none>'}"
        )
        resource = await inventory.create_resource(
            mapping.name,
            mapping.address,
            network_id,
            alias=mapping.alias,
        )
        logger.info(f"Created resource {resource.name} (id={resource.id}, address={resource.address})")
        return ResourceOutcome(
            mapping=mapping,
            action=UpsertAction.CREATED,
            resource_id=resource.id,
            message=f"Created {resource.name}",
        )

    async def _update_existing_resource(
        self,
        inventory: RemoteInventory,
        mapping: ResourceMapping,
        existing: RemoteResource,
    ) -> ResourceOutcome:
        changes: list[str] = []

        # Start from the current values; only differing fields are replaced
        name = existing.name
        address = existing.address
        alias = existing.alias

        if existing.name != mapping.name:
            changes.append(f"name {existing.name!r} → {mapping.name!r}")
            name = mapping.name

        if existing.address != mapping.address:
            changes.append(f"address {existing.address!r} → {mapping.address!r}")
            address = mapping.address

        if (existing.alias or "") != (mapping.alias or ""):
            changes.append(f"alias {existing.alias!r} → {mapping.alias!r}")
            alias = mapping.alias

        if not changes:
            logger.debug(f"Resource {existing.name} (id={existing.id}) is already up to date")
            return ResourceOutcome(
                mapping=mapping,
                action=UpsertAction.UNCHANGED,
                resource_id=existing.id,
                message="Already up to date",
            )

        logger.debug(f"Updating resource {existing.id}: {', '.join(changes)}")
        resource = await inventory.update_resource(existing.id, name=name, address=address, alias=alias)
        logger.info(f"Updated resource {resource.name} (id={resource.id}, address={resource.address})")
        return ResourceOutcome(
            mapping=mapping,
            action=UpsertAction.UPDATED,
            resource_id=resource.id,
            message=f"Updated {', '.join(changes)}",
        )

    async def _delete_stale_resources(
        self,
        inventory: RemoteInventory,
        desired: Sequence[ResourceMapping],
        network_id: str,
        cleanup: CleanupConfig,
        result: SyncResult,
    ) -> None:
        try:
            existing = await list_all_resources(inventory, network_id, self.page_size)
        except CaddyTwingateError as e:
            logger.error(f"Failed to list resources in network {network_id}: {e}")
            result.cleanup_list_error = str(e)
            return

        logger.info(f"Found {len(existing)} existing resources in network")

        desired_names = {mapping.name for mapping in desired}
        stale = [resource for resource in existing if resource.name not in desired_names]

        if not stale:
            logger.info("No stale resources to delete")
            return

        logger.info(f"Found {len(stale)} stale resources (dry_run={cleanup.dry_run})")

        for resource in stale:
            if cleanup.dry_run:
                logger.info(
                    f"[DRY RUN] Would delete resource {resource.name} "
                    f"(id={resource.id}, address={resource.address})"
                )
                result.cleanup_outcomes.append(
                    CleanupOutcome(
                        resource_id=resource.id,
                        name=resource.name,
                        address=resource.address,
                        action=CleanupAction.WOULD_DELETE,
                        message="[DRY RUN] Would delete",
                    )
                )
                continue

            logger.info(f"Deleting stale resource {resource.name} (id={resource.id})")
            try:
                await inventory.delete_resource(resource.id)
            except CaddyTwingateError as e:
                logger.error(f"Failed to delete resource {resource.name} (id={resource.id}): {e}")
                result.cleanup_outcomes.append(
                    CleanupOutcome(
                        resource_id=resource.id,
                        name=resource.name,
                        address=resource.address,
                        action=CleanupAction.FAILED,
                        message=str(e),
                    )
                )
            else:
                result.cleanup_outcomes.append(
                    CleanupOutcome(
                        resource_id=resource.id,
                        name=resource.name,
                        address=resource.address,
                        action=CleanupAction.DELETED,
                        message="Deleted",
                    )
                )
