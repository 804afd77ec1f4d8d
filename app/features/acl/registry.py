"""Declared route permissions.

Route handlers declare the ``(resource, name)`` pair that guards them; the
synchronizer mirrors the declared set into the permissions table.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

MAX_LENGTH = 255


@dataclass(frozen=True, order=True)
class PermissionDefinition:
    """One permission a handler requires, e.g. ``("ACL", "List")``."""

    resource: str
    name: str


class PermissionRegistry:
    """Collects permission declarations made at import time."""

    def __init__(self) -> None:
        self._definitions: dict[tuple[str, str], PermissionDefinition] = {}

    def declare(self, resource: str, name: str) -> PermissionDefinition:
        resource = resource.strip()
        name = name.strip()
        for label, value in (("resource", resource), ("name", name)):
            if not value:
                raise ValueError(f"Permission {label} must not be empty")
            if len(value) > MAX_LENGTH:
                raise ValueError(f"Permission {label} exceeds {MAX_LENGTH} characters: {value!r}")

        key = (resource, name)
        definition = self._definitions.get(key)
        if definition is None:
            definition = PermissionDefinition(resource=resource, name=name)
            self._definitions[key] = definition
        return definition

    def definitions(self) -> tuple[PermissionDefinition, ...]:
        return tuple(sorted(self._definitions.values()))

    def __contains__(self, item: object) -> bool:
        if isinstance(item, PermissionDefinition):
            return (item.resource, item.name) in self._definitions
        return item in self._definitions

    def __iter__(self) -> Iterator[PermissionDefinition]:
        return iter(self.definitions())

    def __len__(self) -> int:
        return len(self._definitions)


# Process-wide registry the application routes declare into
permission_registry = PermissionRegistry()
