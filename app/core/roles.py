# app/core/roles.py

import enum

from app.core.exceptions import ForbiddenError


class Role(str, enum.Enum):
    REGULAR = "regular"
    CASHIER = "cashier"
    MANAGER = "manager"
    SUPERUSER = "superuser"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {
    Role.REGULAR: 1,
    Role.CASHIER: 2,
    Role.MANAGER: 3,
    Role.SUPERUSER: 4,
}

# Roles a manager may hand out; anything above needs a superuser
MANAGER_ASSIGNABLE_ROLES = {Role.REGULAR, Role.CASHIER}


def check_role(actor_role: Role | str, minimum_role: Role | str) -> bool:
    """True if `actor_role` is at least `minimum_role` in the hierarchy."""
    return Role(actor_role).rank >= Role(minimum_role).rank


def can_assign_role(actor_role: Role | str, target_role: Role | str) -> bool:
    """
    Whether an actor may set someone's role to `target_role`.
    Superusers may assign anything, managers only cashier or regular.
    """
    actor = Role(actor_role)
    if actor == Role.SUPERUSER:
        return True
    if actor == Role.MANAGER:
        return Role(target_role) in MANAGER_ASSIGNABLE_ROLES
    return False


def ensure_role(actor, minimum_role: Role | str) -> None:
    """Raises ForbiddenError unless the acting user holds at least `minimum_role`."""
    if actor is None or not check_role(actor.role, minimum_role):
        raise ForbiddenError("Insufficient permissions")
