"""
Mirror the declared route permissions into the permissions table.
"""
from dataclasses import dataclass

from app.features.acl.registry import PermissionDefinition, PermissionRegistry
from app.features.acl.repository import PermissionRepository
from app.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class SyncResult:
    created: tuple[PermissionDefinition, ...] = ()
    deleted: tuple[PermissionDefinition, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.created or self.deleted)


class PermissionSynchronizer:
    """
    Reconcile the permissions table with a registry.

    Missing pairs are inserted and pairs no longer declared are deleted along
    with their group associations. Rows that match a declaration are left
    untouched, so a second run without declaration changes writes nothing.
    The caller owns the transaction.
    """

    def __init__(self, permissions: PermissionRepository, registry: PermissionRegistry):
        self.permissions = permissions
        self.registry = registry

    async def sync(self) -> SyncResult:
        declared = set(self.registry.definitions())
        existing = {
            PermissionDefinition(resource=p.resource, name=p.name): p
            for p in await self.permissions.list_all()
        }

        missing = sorted(declared - existing.keys())
        stale = sorted(existing.keys() - declared)

        for definition in missing:
            self.permissions.add(definition.resource, definition.name)

        if stale:
            await self.permissions.delete_many([existing[d].id for d in stale])

        if missing:
            await self.permissions.flush()

        result = SyncResult(created=tuple(missing), deleted=tuple(stale))
        if result.changed:
            log.info(
                "Permissions synchronized: %d created, %d deleted",
                len(result.created),
                len(result.deleted),
            )
        else:
            log.debug("Permissions already in sync (%d declared)", len(declared))
        return result
