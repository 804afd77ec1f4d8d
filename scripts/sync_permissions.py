"""
Synchronize the ACL permission table with the permissions declared by the
application routes, and optionally bootstrap a group holding all of them.

Run this after deploying route changes, or let the first request to the
group listing do it.

Usage:
    python -m scripts.sync_permissions
    python -m scripts.sync_permissions --bootstrap-group Administrators
"""
import argparse
import asyncio
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

# Importing the app registers every route permission declaration
import app.main  # noqa: F401
from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.acl.dependencies import build_acl_service
from app.features.acl.schemas import GroupCreate, GroupUpdate
from app.features.acl.service import AclService
from app.features.acl.sync import SyncResult
from app.utils import get_logger


log = get_logger(__name__)


async def bootstrap_group(db: AsyncSession, service: AclService, name: str) -> None:
    """
    Create ``name`` with every known permission, or top up an existing group.

    Args:
        db: Database session
        service: ACL service bound to ``db``
        name: Group name
    """
    group_model = service.groups.model
    result = await db.execute(select(group_model).where(group_model.name == name))
    existing = result.scalars().first()

    permissions = await service.permissions.list_all()
    permission_ids = [p.id for p in permissions]

    if existing is None:
        payload = {"name": name, "description": "All declared permissions", "permissions": permission_ids}
        group = await service.create_group(GroupCreate(**payload))
        log.info(f"Created group '{name}' ({group.id}) with {len(permission_ids)} permissions")
        return

    await service.update_group(
        existing.id,
        GroupUpdate(name=existing.name, description=existing.description, permissions=permission_ids),
    )
    log.info(f"Group '{name}' ({existing.id}) now holds {len(permission_ids)} permissions")


async def main(bootstrap: Optional[str] = None) -> SyncResult:
    """Initialize tables, synchronize permissions, bootstrap a group if asked."""
    log.info("Initializing database tables...")
    await init_db()

    async with AsyncSessionLocal() as db:
        service = build_acl_service(db)
        try:
            async with service.transaction():
                result = await service.synchronizer.sync()
        except Exception as e:
            log.error(f"Error synchronizing permissions: {e}", exc_info=True)
            raise

        for definition in result.created:
            log.info(f"  + {definition.resource} / {definition.name}")
        for definition in result.deleted:
            log.info(f"  - {definition.resource} / {definition.name}")
        if not result.changed:
            log.info("Permissions already up to date")

        if bootstrap:
            await bootstrap_group(db, service, bootstrap)

        return result


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--bootstrap-group", metavar="NAME", help="create or top up a group holding every permission")
    args = parser.parse_args()
    asyncio.run(main(args.bootstrap_group))
