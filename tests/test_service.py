import pytest
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.acl.exceptions import (
    GroupHasUsersError,
    GroupNotFoundError,
    ReplacementGroupNotFoundError,
    SameGroupReassignmentError,
    UnknownPermissionError,
)
from app.features.acl.models import Group, Permission, group_permissions
from app.features.acl.schemas import GroupCreate, GroupUpdate
from app.features.acl.service import AclService
from app.features.users.models import User


async def _links(session: AsyncSession, group_id: str) -> set[str]:
    result = await session.execute(
        select(group_permissions.c.permission_id).where(group_permissions.c.group_id == group_id)
    )
    return set(result.scalars())


async def _user_groups(session: AsyncSession) -> dict[str, str]:
    result = await session.execute(select(User.email, User.group_id))
    return dict(result.all())


@pytest.mark.asyncio
async def test_create_attaches_exactly_the_given_permissions(
    service: AclService, session: AsyncSession, permissions: dict
) -> None:
    chosen = [permissions[("Reports", "List")].id, permissions[("ACL", "List")].id]

    group = await service.create_group(
        GroupCreate(name="Analysts", description="Read-only reporting", permissions=chosen)
    )

    assert await _links(session, group.id) == set(chosen)
    session.expunge_all()
    loaded = await service.edit_group(group.id)
    assert loaded.name == "Analysts"
    assert loaded.description == "Read-only reporting"
    assert {p.id for p in loaded.permissions} == set(chosen)


@pytest.mark.asyncio
async def test_create_without_permissions(service: AclService, session: AsyncSession) -> None:
    group = await service.create_group(GroupCreate(name="Empty"))

    assert await _links(session, group.id) == set()
    assert group.description is None


@pytest.mark.asyncio
async def test_create_with_unknown_permission_rolls_back(
    service: AclService, session: AsyncSession, permissions: dict
) -> None:
    payload = GroupCreate(name="Broken", permissions=[permissions[("ACL", "List")].id, "01NOTAPERMISSION"])

    with pytest.raises(UnknownPermissionError) as excinfo:
        await service.create_group(payload)

    assert excinfo.value.permission_ids == ("01NOTAPERMISSION",)
    assert (await session.execute(select(Group))).scalars().all() == []


@pytest.mark.asyncio
async def test_edit_unknown_group(service: AclService, database: None) -> None:
    with pytest.raises(GroupNotFoundError):
        await service.edit_group("01UNKNOWNGROUP")


@pytest.mark.asyncio
async def test_update_replaces_the_permission_set(
    service: AclService, session: AsyncSession, permissions: dict, make_group
) -> None:
    reports_list = permissions[("Reports", "List")]
    reports_export = permissions[("Reports", "Export")]
    acl_list = permissions[("ACL", "List")]
    group = await make_group("Analysts", [reports_list, reports_export])

    await service.update_group(
        group.id,
        GroupUpdate(name="Reviewers", description="", permissions=[reports_export.id, acl_list.id]),
    )

    assert await _links(session, group.id) == {reports_export.id, acl_list.id}
    session.expunge_all()
    loaded = await service.edit_group(group.id)
    assert loaded.name == "Reviewers"
    assert loaded.description is None


@pytest.mark.asyncio
async def test_update_without_permissions_clears_them(
    service: AclService, session: AsyncSession, permissions: dict, make_group
) -> None:
    group = await make_group("Analysts", [permissions[("Reports", "List")]])

    await service.update_group(group.id, GroupUpdate(name="Analysts"))

    assert await _links(session, group.id) == set()


@pytest.mark.asyncio
async def test_update_unknown_group(service: AclService, database: None) -> None:
    with pytest.raises(GroupNotFoundError):
        await service.update_group("01UNKNOWNGROUP", GroupUpdate(name="Nobody"))


@pytest.mark.asyncio
async def test_delete_group_without_users(
    service: AclService, session: AsyncSession, permissions: dict, make_group
) -> None:
    group = await make_group("Temporary", list(permissions.values()))

    await service.delete_group(group.id)

    assert await _links(session, group.id) == set()
    assert (await session.execute(select(Group.id))).scalars().all() == []


@pytest.mark.asyncio
async def test_delete_unknown_group(service: AclService, database: None) -> None:
    with pytest.raises(GroupNotFoundError):
        await service.delete_group("01UNKNOWNGROUP")


@pytest.mark.asyncio
async def test_delete_reassigning_to_itself_changes_nothing(
    service: AclService, session: AsyncSession, permissions: dict, make_group, make_user
) -> None:
    group = await make_group("Support", [permissions[("Reports", "List")]])
    group_id = group.id
    await make_user(group, "ana@example.test")
    await make_user(group, "bo@example.test")
    links_before = await _links(session, group_id)

    with pytest.raises(SameGroupReassignmentError):
        await service.delete_group(group_id, group_id)

    assert await _user_groups(session) == {
        "ana@example.test": group_id,
        "bo@example.test": group_id,
    }
    assert await _links(session, group_id) == links_before
    assert (await session.execute(select(Group.id))).scalars().all() == [group_id]


@pytest.mark.asyncio
async def test_delete_moves_users_to_the_replacement(
    service: AclService, session: AsyncSession, permissions: dict, make_group, make_user
) -> None:
    old = await make_group("Support", [permissions[("Reports", "List")]])
    new = await make_group("Operations")
    await make_user(old, "ana@example.test")
    await make_user(old, "bo@example.test")
    await make_user(new, "cy@example.test")

    await service.delete_group(old.id, new.id)

    assert await _user_groups(session) == {
        "ana@example.test": new.id,
        "bo@example.test": new.id,
        "cy@example.test": new.id,
    }
    assert await _links(session, old.id) == set()
    assert (await session.execute(select(Group.id))).scalars().all() == [new.id]


@pytest.mark.asyncio
async def test_delete_with_users_requires_a_replacement(
    service: AclService, session: AsyncSession, make_group, make_user
) -> None:
    group = await make_group("Support")
    group_id = group.id
    await make_user(group, "ana@example.test")

    with pytest.raises(GroupHasUsersError) as excinfo:
        await service.delete_group(group_id)

    assert excinfo.value.user_count == 1
    assert (await session.execute(select(Group.id))).scalars().all() == [group_id]


@pytest.mark.asyncio
async def test_delete_with_unknown_replacement(
    service: AclService, session: AsyncSession, make_group, make_user
) -> None:
    group = await make_group("Support")
    group_id = group.id
    await make_user(group, "ana@example.test")

    with pytest.raises(ReplacementGroupNotFoundError):
        await service.delete_group(group_id, "01UNKNOWNGROUP")

    assert await _user_groups(session) == {"ana@example.test": group_id}


@pytest.mark.asyncio
async def test_failed_delete_rolls_back_reassignment(
    service: AclService,
    session: AsyncSession,
    permissions: dict,
    make_group,
    make_user,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    listing_id = permissions[("Reports", "List")].id
    old = await make_group("Support", [permissions[("Reports", "List")]])
    new = await make_group("Operations")
    old_id, new_id = old.id, new.id
    await make_user(old, "ana@example.test")

    async def _fail(group) -> None:
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(service.groups, "delete", _fail)

    with pytest.raises(SQLAlchemyError, match="database is locked"):
        await service.delete_group(old_id, new_id)

    assert await _user_groups(session) == {"ana@example.test": old_id}
    assert await _links(session, old_id) == {listing_id}


@pytest.mark.asyncio
async def test_new_group_form_groups_permissions_by_resource(
    service: AclService, permissions: dict
) -> None:
    form = await service.new_group_form()

    assert list(form) == ["ACL", "Reports"]
    assert [p.name for p in form["Reports"]] == ["Export", "List"]


@pytest.mark.asyncio
async def test_list_groups_synchronizes_permissions_first(
    service: AclService, session: AsyncSession, make_group
) -> None:
    await make_group("Support")

    groups = await service.list_groups()

    assert [g.name for g in groups] == ["Support"]
    assert len(await service.permissions.list_all()) == 3


@pytest.mark.parametrize(
    "payload",
    [
        {"name": ""},
        {"name": "   "},
        {"name": "x" * 256},
        {"name": "Support", "description": "d" * 256},
    ],
)
def test_invalid_payloads_fail_validation(payload: dict) -> None:
    with pytest.raises(ValidationError):
        GroupCreate(**payload)
    with pytest.raises(ValidationError):
        GroupUpdate(**payload)


def test_payload_normalization() -> None:
    payload = GroupCreate(name="  Support ", description="", permissions=["a", "b", "a"])

    assert payload.name == "Support"
    assert payload.description is None
    assert payload.permissions == ["a", "b"]


@pytest.mark.asyncio
async def test_delete_empty_group_ignores_unknown_replacement(
    service: AclService, session: AsyncSession, make_group
) -> None:
    group = await make_group("Temporary")
    keep = await make_group("Support")
    keep_id = keep.id

    await service.delete_group(group.id, "01UNKNOWNGROUP")

    assert (await session.execute(select(Group.id))).scalars().all() == [keep_id]


@pytest.mark.asyncio
async def test_list_groups_survives_a_concurrent_permission_insert(
    service: AclService, session: AsyncSession, permissions: dict, make_group, monkeypatch: pytest.MonkeyPatch
) -> None:
    await make_group("Support")

    async def _racing_sync():
        # The same pair was inserted by another request in the meantime
        session.add(Permission(resource="Reports", name="List"))
        await session.flush()

    monkeypatch.setattr(service.synchronizer, "sync", _racing_sync)

    groups = await service.list_groups()

    assert [g.name for g in groups] == ["Support"]
    assert len(await service.permissions.list_all()) == 3
