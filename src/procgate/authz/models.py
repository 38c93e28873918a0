"""
procgate.authz.models

RBAC value types.

Responsibilities:
- Define the permission triple and its wildcard matching rule.
"""

from __future__ import annotations

from dataclasses import dataclass

RESOURCE_TYPES = frozenset({"function", "client", "role", "log"})
ACTIONS = frozenset({"view", "create", "update", "delete", "execute", "*"})

ACTION_ALL = "*"
ACTION_EXECUTE = "execute"
RESOURCE_FUNCTION = "function"


@dataclass(frozen=True, slots=True)
class PermissionGrant:
    resource_type: str
    resource_id: int | None
    action: str

    def matches(self, resource_type: str, resource_id: int | None, action: str) -> bool:
        # A NULL resource id covers every instance; "*" covers every action.
        if self.resource_type != resource_type:
            return False
        if self.resource_id is not None and self.resource_id != resource_id:
            return False
        return self.action in (action, ACTION_ALL)

    def to_list(self) -> list[object]:
        return [self.resource_type, self.resource_id, self.action]

    @classmethod
    def from_list(cls, raw: list[object]) -> PermissionGrant:
        resource_type, resource_id, action = raw
        return cls(
            resource_type=str(resource_type),
            resource_id=None if resource_id is None else int(resource_id),  # type: ignore[arg-type]
            action=str(action),
        )
