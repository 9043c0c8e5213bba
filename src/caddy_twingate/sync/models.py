"""Result models for Twingate resource synchronization."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from caddy_twingate.models import RemoteNetwork, ResourceMapping


class UpsertAction(str, Enum):
    """What the upsert pass did with one mapping."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class CleanupAction(str, Enum):
    """What the cleanup pass did with one stale resource."""

    DELETED = "deleted"
    WOULD_DELETE = "would_delete"
    FAILED = "failed"


@dataclass
class ResourceOutcome:
    """Upsert outcome for a single ResourceMapping."""

    mapping: ResourceMapping
    action: UpsertAction
    resource_id: str | None = None
    message: str = ""

    @property
    def success(self) -> bool:
        return self.action != UpsertAction.FAILED


@dataclass
class CleanupOutcome:
    """Cleanup outcome for a single stale resource."""

    resource_id: str
    name: str
    address: str
    action: CleanupAction
    message: str = ""


@dataclass
class SyncResult:
    """Everything one sync invocation did. Returned, never stored."""

    network: RemoteNetwork | None = None
    network_created: bool = False
    outcomes: list[ResourceOutcome] = field(default_factory=list)
    cleanup_enabled: bool = False
    dry_run: bool = False
    cleanup_outcomes: list[CleanupOutcome] = field(default_factory=list)
    cleanup_list_error: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    def _count(self, action: UpsertAction) -> int:
        return len([o for o in self.outcomes if o.action == action])

    @property
    def total_mappings(self) -> int:
        return len(self.outcomes)

    @property
    def created(self) -> int:
        return self._count(UpsertAction.CREATED)

    @property
    def updated(self) -> int:
        return self._count(UpsertAction.UPDATED)

    @property
    def unchanged(self) -> int:
        return self._count(UpsertAction.UNCHANGED)

    @property
    def upsert_errors(self) -> int:
        return self._count(UpsertAction.FAILED)

    @property
    def upsert_success(self) -> int:
        return self.total_mappings - self.upsert_errors

    @property
    def stale(self) -> int:
        return len(self.cleanup_outcomes)

    @property
    def deleted(self) -> int:
        """Deleted resources; in dry-run mode, resources that would be deleted."""
        return len([o for o in self.cleanup_outcomes if o.action != CleanupAction.FAILED])

    @property
    def delete_errors(self) -> int:
        failed = len([o for o in self.cleanup_outcomes if o.action == CleanupAction.FAILED])
        return failed + (1 if self.cleanup_list_error else 0)

    @property
    def total_errors(self) -> int:
        return self.upsert_errors + self.delete_errors

    @property
    def success(self) -> bool:
        return self.total_errors == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "remote_network_name": self.network.name if self.network else None,
            "remote_network_id": self.network.id if self.network else None,
            "remote_network_created": self.network_created,
            "total_mappings": self.total_mappings,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "upsert_errors": self.upsert_errors,
            "cleanup_enabled": self.cleanup_enabled,
            "dry_run": self.dry_run,
            "stale": self.stale,
            "deleted": self.deleted,
            "delete_errors": self.delete_errors,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "outcomes": [
                {
                    "name": o.mapping.name,
                    "action": o.action.value,
                    "resource_id": o.resource_id,
                    "message": o.message,
                }
                for o in self.outcomes
            ],
            "cleanup": [
                {"id": o.resource_id, "name": o.name, "action": o.action.value, "message": o.message}
                for o in self.cleanup_outcomes
            ],
        }
