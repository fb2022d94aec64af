"""
Roles, identity descriptors and the account hierarchy rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ems.core.exceptions import ValidationError


class Role(str, Enum):
    MASTER = "master"
    ADMIN = "admin"
    USER = "user"

    @classmethod
    def parse(cls, value: object) -> "Role | None":
        """Return the matching role, or ``None`` for anything else."""
        if isinstance(value, Role):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


# role -> roles its parent may have (empty set: must have no parent)
_ALLOWED_PARENTS: dict[Role, frozenset[Role]] = {
    Role.MASTER: frozenset(),
    Role.ADMIN: frozenset({Role.MASTER}),
    Role.USER: frozenset({Role.MASTER, Role.ADMIN}),
}


@dataclass(frozen=True)
class Identity:
    """The (id, role) pair every authorization decision is made from."""

    id: int
    role: Role

    @property
    def is_master(self) -> bool:
        return self.role is Role.MASTER

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_user(self) -> bool:
        return self.role is Role.USER


def validate_hierarchy(role: Role, parent_role: Role | None) -> None:
    """Reject any role/parent pairing outside master → admin → user."""
    allowed = _ALLOWED_PARENTS[role]
    if not allowed:
        if parent_role is not None:
            raise ValidationError(f"A {role.value} account cannot have a parent")
        return
    if parent_role not in allowed:
        raise ValidationError(
            f"A {role.value} account must be created by "
            + " or ".join(sorted(r.value for r in allowed))
        )
