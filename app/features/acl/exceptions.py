"""
ACL error taxonomy.

Routes map GroupNotFoundError to 404 and BusinessRuleError to the error
envelope; AclConfigurationError is fatal at startup.
"""
from typing import Iterable


class AclError(Exception):
    """Base class for ACL admin errors."""


class AclConfigurationError(AclError):
    """A model binding is missing or does not point at a usable ORM class."""


class GroupNotFoundError(AclError):
    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(f"Group {group_id} not found")


class BusinessRuleError(AclError):
    """A request that is well-formed but violates a group invariant."""


class SameGroupReassignmentError(BusinessRuleError):
    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__("Users cannot be reassigned to the group being deleted")


class ReplacementGroupNotFoundError(BusinessRuleError):
    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(f"Replacement group {group_id} not found")


class GroupHasUsersError(BusinessRuleError):
    def __init__(self, group_id: str, user_count: int):
        self.group_id = group_id
        self.user_count = user_count
        super().__init__(
            f"Group {group_id} still has {user_count} user(s); choose a group to move them to"
        )


class UnknownPermissionError(BusinessRuleError):
    def __init__(self, permission_ids: Iterable[str]):
        self.permission_ids = tuple(sorted(permission_ids))
        super().__init__(f"Unknown permission id(s): {', '.join(self.permission_ids)}")
