# tests/test_points.py

from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import ConflictError, ValidationError
from app.crud import promotion as crud_promotion
from app.models.promotion import PROMOTION_ONE_TIME
from app.services import points as points_service


def test_round_points_is_half_up():
    assert points_service.round_points(Decimal("2.5")) == 3
    assert points_service.round_points(Decimal("2.49")) == 2
    assert points_service.round_points(Decimal("0.5")) == 1


def test_base_points_uses_configured_rate():
    # 0.25 currency units per point
    assert points_service.base_points(Decimal("100.00")) == 400
    assert points_service.base_points(Decimal("0.13")) == 1  # 0.52 rounds up
    assert points_service.base_points(Decimal("0.12")) == 0  # 0.48 rounds down


def test_purchase_with_automatic_promotion(db_session, regular_user, make_promotion):
    """100.00 at the base rate gives 400, a 0.50-rate automatic promotion adds 200."""
    promotion = make_promotion(rate=0.5)

    quote = points_service.compute_purchase_points(db_session, Decimal("100.00"), [], regular_user.id)

    assert quote.earned == 600
    assert quote.promotion_ids == [promotion.id]


def test_automatic_promotion_below_min_spending_is_skipped(db_session, regular_user, make_promotion):
    make_promotion(rate=0.5, min_spending=200)

    quote = points_service.compute_purchase_points(db_session, Decimal("100.00"), None, regular_user.id)

    assert quote.earned == 400
    assert quote.promotions == []


def test_inactive_automatic_promotions_are_skipped(db_session, regular_user, make_promotion):
    make_promotion(points=50, starts_in=timedelta(days=1), ends_in=timedelta(days=2))
    make_promotion(points=50, starts_in=timedelta(days=-3), ends_in=timedelta(days=-1))

    quote = points_service.compute_purchase_points(db_session, Decimal("10.00"), None, regular_user.id)

    assert quote.earned == 40


def test_each_contribution_is_rounded_separately(db_session, regular_user, make_promotion):
    # base 0.35 / 0.25 = 1.4 -> 1 and the bonus is the same; rounding the sum (2.8) would give 3
    make_promotion(rate=0.25)

    quote = points_service.compute_purchase_points(db_session, Decimal("0.35"), None, regular_user.id)

    assert quote.earned == 2


def test_requested_one_time_promotion_is_applied_after_automatic(db_session, regular_user, make_promotion):
    automatic = make_promotion(points=10)
    one_time = make_promotion(type=PROMOTION_ONE_TIME, points=25)

    quote = points_service.compute_purchase_points(db_session, Decimal("10.00"), [one_time.id], regular_user.id)

    assert quote.earned == 40 + 10 + 25
    assert quote.promotion_ids == [automatic.id, one_time.id]


def test_quote_does_not_consume_one_time_promotion(db_session, regular_user, make_promotion):
    one_time = make_promotion(type=PROMOTION_ONE_TIME, points=25)

    points_service.compute_purchase_points(db_session, Decimal("10.00"), [one_time.id], regular_user.id)

    assert not crud_promotion.has_user_used(db_session, one_time.id, regular_user.id)


def test_already_used_one_time_promotion_conflicts(db_session, regular_user, make_promotion):
    one_time = make_promotion(type=PROMOTION_ONE_TIME, points=25)
    crud_promotion.mark_used(db_session, one_time.id, regular_user.id)
    db_session.commit()

    with pytest.raises(ConflictError):
        points_service.compute_purchase_points(db_session, Decimal("10.00"), [one_time.id], regular_user.id)


def test_duplicate_requested_promotion_conflicts(db_session, regular_user, make_promotion):
    one_time = make_promotion(type=PROMOTION_ONE_TIME, points=25)

    with pytest.raises(ConflictError):
        points_service.compute_purchase_points(
            db_session, Decimal("10.00"), [one_time.id, one_time.id], regular_user.id
        )


@pytest.mark.parametrize("kwargs", [
    dict(type="automatic", points=5),
    dict(type=PROMOTION_ONE_TIME, points=5, starts_in=timedelta(days=1)),
    dict(type=PROMOTION_ONE_TIME, points=5, starts_in=timedelta(days=-3), ends_in=timedelta(seconds=-1)),
    dict(type=PROMOTION_ONE_TIME, points=5, min_spending=50),
])
def test_ineligible_requested_promotion_is_rejected(db_session, regular_user, make_promotion, kwargs):
    promotion = make_promotion(**kwargs)

    with pytest.raises(ValidationError):
        points_service.compute_purchase_points(db_session, Decimal("10.00"), [promotion.id], regular_user.id)


def test_unknown_promotion_is_rejected(db_session, regular_user):
    with pytest.raises(ValidationError):
        points_service.compute_purchase_points(db_session, Decimal("10.00"), [999], regular_user.id)


@pytest.mark.parametrize("spent", [Decimal("0"), Decimal("-5.00")])
def test_non_positive_spent_is_rejected(db_session, regular_user, spent):
    with pytest.raises(ValidationError):
        points_service.compute_purchase_points(db_session, spent, None, regular_user.id)
