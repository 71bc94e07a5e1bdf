# tests/test_roles.py

import pytest

from app.core.exceptions import ForbiddenError
from app.core.roles import Role, can_assign_role, check_role, ensure_role


@pytest.mark.parametrize("actor, minimum, expected", [
    (Role.REGULAR, Role.REGULAR, True),
    (Role.REGULAR, Role.CASHIER, False),
    (Role.CASHIER, Role.REGULAR, True),
    (Role.MANAGER, Role.CASHIER, True),
    (Role.MANAGER, Role.SUPERUSER, False),
    (Role.SUPERUSER, Role.MANAGER, True),
    ("cashier", "manager", False),
])
def test_check_role(actor, minimum, expected):
    assert check_role(actor, minimum) is expected


def test_role_ranks_are_ordered():
    ranks = [role.rank for role in (Role.REGULAR, Role.CASHIER, Role.MANAGER, Role.SUPERUSER)]
    assert ranks == sorted(ranks)
    assert len(set(ranks)) == 4


@pytest.mark.parametrize("actor, target, expected", [
    (Role.SUPERUSER, Role.SUPERUSER, True),
    (Role.SUPERUSER, Role.MANAGER, True),
    (Role.MANAGER, Role.CASHIER, True),
    (Role.MANAGER, Role.REGULAR, True),
    (Role.MANAGER, Role.MANAGER, False),
    (Role.MANAGER, Role.SUPERUSER, False),
    (Role.CASHIER, Role.REGULAR, False),
])
def test_can_assign_role(actor, target, expected):
    assert can_assign_role(actor, target) is expected


def test_unknown_role_is_rejected():
    with pytest.raises(ValueError):
        check_role("owner", Role.REGULAR)


def test_ensure_role(make_user):
    cashier = make_user(Role.CASHIER)
    ensure_role(cashier, Role.CASHIER)
    with pytest.raises(ForbiddenError):
        ensure_role(cashier, Role.MANAGER)
    with pytest.raises(ForbiddenError):
        ensure_role(None, Role.REGULAR)
