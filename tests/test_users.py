# tests/test_users.py

from datetime import date, timedelta

import pytest

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.roles import Role
from app.crud import promotion as crud_promotion
from app.models.promotion import PROMOTION_ONE_TIME
from app.services import user as user_service


def test_cashier_registers_user(db_session, cashier):
    user = user_service.create_user(db_session, cashier, "newbie01", "New Bie", "newbie01@mail.utoronto.ca")

    assert user.id is not None
    assert user.role == Role.REGULAR.value
    assert user.points == 0
    assert user.verified is False


def test_registration_rules(db_session, cashier, regular_user):
    with pytest.raises(ForbiddenError):
        user_service.create_user(db_session, regular_user, "newbie01", "New Bie", "newbie01@utoronto.ca")
    with pytest.raises(ConflictError):
        user_service.create_user(db_session, cashier, regular_user.utorid, "Copy", "other@utoronto.ca")
    with pytest.raises(ConflictError):
        user_service.create_user(db_session, cashier, "newbie02", "Copy", regular_user.email)


def test_get_user_not_found(db_session):
    with pytest.raises(NotFoundError):
        user_service.get_user(db_session, 404)
    with pytest.raises(NotFoundError):
        user_service.get_user_by_utorid(db_session, "ghost000")


def test_manager_verifies_and_promotes(db_session, manager, make_user):
    target = make_user(verified=False, suspicious=True)

    result = user_service.update_user(db_session, manager, target.id, verified=True, role=Role.CASHIER,
                                      suspicious=False)

    assert result == {
        "id": target.id, "utorid": target.utorid, "name": target.name,
        "verified": True, "role": "cashier", "suspicious": False,
    }
    db_session.refresh(target)
    assert target.role == "cashier"
    assert target.suspicious is False


def test_promoting_to_cashier_clears_suspicion(db_session, manager, make_user):
    target = make_user()

    result = user_service.update_user(db_session, manager, target.id, role="cashier")

    assert "suspicious" not in result
    db_session.refresh(target)
    assert target.suspicious is False


def test_suspicious_user_cannot_become_cashier(db_session, manager, make_user):
    target = make_user(suspicious=True)
    with pytest.raises(ValidationError):
        user_service.update_user(db_session, manager, target.id, role=Role.CASHIER)

    other = make_user()
    with pytest.raises(ValidationError):
        user_service.update_user(db_session, manager, other.id, role=Role.CASHIER, suspicious=True)


def test_role_assignment_limits(db_session, manager, superuser, make_user):
    target = make_user()

    with pytest.raises(ForbiddenError):
        user_service.update_user(db_session, manager, target.id, role=Role.MANAGER)

    user_service.update_user(db_session, superuser, target.id, role=Role.MANAGER)
    db_session.refresh(target)
    assert target.role == "manager"


def test_update_user_field_rules(db_session, manager, make_user):
    target = make_user()
    other = make_user()

    with pytest.raises(ValidationError):
        user_service.update_user(db_session, manager, target.id, verified=False)
    with pytest.raises(ValidationError):
        user_service.update_user(db_session, manager, target.id, email=other.email)
    with pytest.raises(ValidationError):
        user_service.update_user(db_session, manager, target.id)
    with pytest.raises(ForbiddenError):
        user_service.update_user(db_session, other, target.id, verified=True)


def test_update_profile(db_session, regular_user):
    user = user_service.update_profile(db_session, regular_user, name="Renamed", birthday=date(2000, 1, 31))

    assert user.name == "Renamed"
    assert user.birthday == date(2000, 1, 31)
    with pytest.raises(ValidationError):
        user_service.update_profile(db_session, regular_user)


def test_available_promotions_exclude_used_and_automatic(db_session, regular_user, make_promotion):
    make_promotion(points=5)
    used = make_promotion(type=PROMOTION_ONE_TIME, points=5)
    upcoming = make_promotion(type=PROMOTION_ONE_TIME, points=5, starts_in=timedelta(days=2))
    available = make_promotion(type=PROMOTION_ONE_TIME, points=5)
    crud_promotion.mark_used(db_session, used.id, regular_user.id)
    db_session.commit()

    promotions = user_service.get_available_promotions(db_session, regular_user.id)

    assert [p.id for p in promotions] == [available.id]
    assert upcoming.id not in [p.id for p in promotions]


def test_user_listing_filters(db_session, make_user, manager):
    make_user(name="Ada Lovelace", verified=False)
    make_user(name="Alan Turing")

    page = user_service.get_paginated_users(db_session, 1, 10, name="ada")
    assert [u.name for u in page.items] == ["Ada Lovelace"]

    unverified = user_service.get_paginated_users(db_session, 1, 10, verified=False)
    assert unverified.total_items == 1

    managers = user_service.get_paginated_users(db_session, 1, 10, role="manager")
    assert [u.utorid for u in managers.items] == [manager.utorid]

    with pytest.raises(ValidationError):
        user_service.get_paginated_users(db_session, 0, 10)
