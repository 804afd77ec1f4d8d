"""
ACL group admin routes.

Each route declares the ACL permission that guards it; listing groups also
synchronizes the permission catalog with those declarations.
"""
from typing import Annotated, Any, Optional
from fastapi import APIRouter, Body, Depends, HTTPException, Request, status

from app.core import config
from app.core.rate_limit import limiter
from app.features.acl.dependencies import get_acl_service, require_permission
from app.features.acl.exceptions import BusinessRuleError, GroupNotFoundError
from app.features.acl.responses import (
    MESSAGES,
    error_response,
    is_ajax,
    json_response,
    success_response,
)
from app.features.acl.schemas import (
    FormDescriptor,
    GroupCreate,
    GroupDelete,
    GroupFormView,
    GroupIndexView,
    GroupResponse,
    GroupUpdate,
    GroupWithPermissions,
    PermissionResponse,
    ResourcePermissions,
)
from app.features.acl.service import AclService
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

ACL_RESOURCE = "ACL"


def _not_found(e: GroupNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _failure(request: Request, e: Exception):
    if isinstance(e, BusinessRuleError):
        log.info("%s %s rejected: %s", request.method, request.url.path, e)
        return error_response(request, str(e))

    log.exception("%s %s failed and was rolled back", request.method, request.url.path)
    message = str(e) if config.EXPOSE_ERROR_DETAILS else MESSAGES["failed"]
    return error_response(request, message)


def _catalog(resources_permissions: dict[str, list[Any]]) -> ResourcePermissions:
    return {
        resource: [PermissionResponse.model_validate(p) for p in permissions]
        for resource, permissions in resources_permissions.items()
    }


@router.get(
    "",
    name="acl.index",
    dependencies=[Depends(require_permission(ACL_RESOURCE, "List"))],
)
async def index(
    request: Request,
    service: Annotated[AclService, Depends(get_acl_service)],
):
    """List all groups after synchronizing the permission catalog."""
    groups = [GroupResponse.model_validate(g) for g in await service.list_groups()]

    if is_ajax(request):
        return json_response(groups)

    return json_response(GroupIndexView(groups=groups, create_url=str(request.url_for("acl.create"))))


@router.get(
    "/create",
    name="acl.create",
    dependencies=[Depends(require_permission(ACL_RESOURCE, "Create form"))],
)
async def create(
    request: Request,
    service: Annotated[AclService, Depends(get_acl_service)],
):
    """Permissions grouped by resource, for building the group form."""
    resources_permissions = _catalog(await service.new_group_form())

    if is_ajax(request):
        return json_response(resources_permissions)

    form = FormDescriptor(type="create", action=str(request.url_for("acl.store")), method="POST")
    return json_response(GroupFormView(form=form, resources_permissions=resources_permissions))


@router.post(
    "",
    name="acl.store",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(ACL_RESOURCE, "Add"))],
)
@limiter.limit(config.RATE_LIMIT)
async def store(
    request: Request,
    payload: GroupCreate,
    service: Annotated[AclService, Depends(get_acl_service)],
):
    """Create a group and attach the selected permissions."""
    try:
        await service.create_group(payload)
    except Exception as e:
        return _failure(request, e)

    return success_response(request, "created")


@router.get(
    "/{group_id}/edit",
    name="acl.edit",
    dependencies=[Depends(require_permission(ACL_RESOURCE, "Edit form"))],
)
async def edit(
    request: Request,
    group_id: str,
    service: Annotated[AclService, Depends(get_acl_service)],
):
    """A group with its permissions, plus the full catalog to choose from."""
    try:
        group = GroupWithPermissions.model_validate(await service.edit_group(group_id))
    except GroupNotFoundError as e:
        raise _not_found(e)

    resources_permissions = _catalog(await service.new_group_form())

    if is_ajax(request):
        return json_response({"group": group, "resources_permissions": resources_permissions})

    form = FormDescriptor(
        type="edit",
        action=str(request.url_for("acl.update", group_id=group.id)),
        method="PUT",
    )
    return json_response(GroupFormView(form=form, resources_permissions=resources_permissions, group=group))


@router.put(
    "/{group_id}",
    name="acl.update",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(ACL_RESOURCE, "Update"))],
)
@limiter.limit(config.RATE_LIMIT)
async def update(
    request: Request,
    group_id: str,
    payload: GroupUpdate,
    service: Annotated[AclService, Depends(get_acl_service)],
):
    """Update a group and replace its permissions with the submitted set."""
    try:
        await service.update_group(group_id, payload)
    except GroupNotFoundError as e:
        raise _not_found(e)
    except Exception as e:
        return _failure(request, e)

    return success_response(request, "updated")


@router.delete(
    "/{group_id}",
    name="acl.destroy",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(ACL_RESOURCE, "Delete"))],
)
@limiter.limit(config.RATE_LIMIT)
async def destroy(
    request: Request,
    group_id: str,
    service: Annotated[AclService, Depends(get_acl_service)],
    payload: Annotated[Optional[GroupDelete], Body()] = None,
    group_new_assoc: Optional[str] = None,
):
    """
    Delete a group.

    ``group_new_assoc`` (body or query) names the group that receives the
    deleted group's users; it is required while the group has users.
    """
    replacement = (payload.group_new_assoc if payload else None) or group_new_assoc or None

    try:
        await service.delete_group(group_id, replacement)
    except GroupNotFoundError as e:
        raise _not_found(e)
    except Exception as e:
        return _failure(request, e)

    return success_response(request, "deleted")
