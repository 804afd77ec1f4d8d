"""
Pydantic schemas for the ACL admin.

Request payloads for group create/update/delete and the response models
for groups, permissions, form views and the response envelope.
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


# ============================================================================
# Request Schemas
# ============================================================================

class GroupBase(BaseModel):
    """Fields shared by group create and update."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255, description="Group name")
    description: Optional[str] = Field(None, max_length=255, description="Group description")
    permissions: Optional[List[str]] = Field(None, description="Permission ids granted to the group")

    @field_validator("description")
    @classmethod
    def empty_description_is_null(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator("permissions")
    @classmethod
    def unique_permission_ids(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return list(dict.fromkeys(v))


class GroupCreate(GroupBase):
    """Schema for creating a group; permissions are attached when given."""


class GroupUpdate(GroupBase):
    """Schema for updating a group; permissions replace the current set."""


class GroupDelete(BaseModel):
    """Optional body of a delete request."""
    group_new_assoc: Optional[str] = Field(
        None, description="Group that receives the users of the deleted group"
    )


# ============================================================================
# Response Schemas
# ============================================================================

class PermissionResponse(BaseModel):
    id: str
    resource: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class GroupResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class GroupWithPermissions(GroupResponse):
    permissions: List[PermissionResponse] = []


ResourcePermissions = Dict[str, List[PermissionResponse]]


class FormDescriptor(BaseModel):
    """Where and how a group form submits."""
    type: Literal["create", "edit"]
    action: str
    method: Literal["POST", "PUT"]


class GroupIndexView(BaseModel):
    groups: List[GroupResponse]
    create_url: str


class GroupFormView(BaseModel):
    form: FormDescriptor
    resources_permissions: ResourcePermissions
    group: Optional[GroupWithPermissions] = None


class AclMessage(BaseModel):
    """Outcome of a mutation for browser callers, in place of a flash message."""
    status: Literal["acl-success", "acl-error"]
    message: str
    redirect: Optional[str] = None
