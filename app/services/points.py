# app/services/points.py

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ConflictError, ValidationError
from app.crud import promotion as crud_promotion
from app.models.promotion import Promotion
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class PointsQuote:
    """Result of pricing a purchase: total points and the promotions that produced them."""
    earned: int
    promotions: List[Promotion] = field(default_factory=list)

    @property
    def promotion_ids(self) -> List[int]:
        return [promotion.id for promotion in self.promotions]


def _to_decimal(value) -> Decimal:
    # str() first so 0.1 stays 0.1 instead of its binary expansion
    return value if isinstance(value, Decimal) else Decimal(str(value))

def round_points(value: Decimal) -> int:
    """Rounds half up to a whole number of points."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def points_for_rate(spent, rate) -> int:
    """Points earned on `spent` at `rate` currency units per point."""
    return round_points(_to_decimal(spent) / _to_decimal(rate))

def base_points(spent) -> int:
    return points_for_rate(spent, settings.POINTS_BASE_RATE)

def promotion_contribution(promotion: Promotion, spent) -> int:
    """
    Bonus a single promotion adds. The rate part is rounded on its own
    before being summed with everything else.
    """
    bonus = 0
    if promotion.rate:
        bonus += points_for_rate(spent, promotion.rate)
    if promotion.points:
        bonus += promotion.points
    return bonus


def _check_one_time_promotion(db: Session, promotion_id: int, promotion: Promotion | None,
                              spent: Decimal, user_id: int, now: datetime) -> None:
    if promotion is None:
        raise ValidationError(f"Promotion {promotion_id} not found")
    if not promotion.is_one_time:
        raise ValidationError(f"Promotion {promotion_id} is not a one-time promotion")
    if promotion.start_time > now or promotion.end_time <= now:
        raise ValidationError(f"Promotion {promotion_id} is not active")
    if crud_promotion.is_used_or_held(db, promotion_id, user_id):
        raise ConflictError(f"Promotion {promotion_id} has already been used")
    if promotion.min_spending is not None and spent < _to_decimal(promotion.min_spending):
        raise ValidationError(f"Minimum spending not met for promotion {promotion_id}")


def compute_purchase_points(
    db: Session,
    spent,
    requested_promotion_ids: Iterable[int] | None,
    user_id: int,
    now: datetime | None = None,
) -> PointsQuote:
    """
    Prices a purchase without touching any state.

    Base points come from the configured base rate. Every automatic promotion
    active at `now` whose minimum spending is met is added unconditionally,
    then each explicitly requested one-time promotion after it passes its
    checks. Applied promotions are listed automatic first (by id), then the
    requested ones in request order. Marking one-time promotions as used is
    left to the caller.
    """
    now = now or utcnow()
    spent = _to_decimal(spent)
    if spent <= 0:
        raise ValidationError("spent must be a positive number")

    earned = base_points(spent)
    applied: List[Promotion] = []

    for promotion in crud_promotion.get_active_automatic_promotions(db, float(spent), now):
        earned += promotion_contribution(promotion, spent)
        applied.append(promotion)

    seen: set[int] = set()
    for promotion_id in requested_promotion_ids or []:
        if promotion_id in seen:
            raise ConflictError(f"Promotion {promotion_id} was requested more than once")
        seen.add(promotion_id)

        promotion = crud_promotion.get_promotion(db, promotion_id)
        _check_one_time_promotion(db, promotion_id, promotion, spent, user_id, now)
        earned += promotion_contribution(promotion, spent)
        applied.append(promotion)

    logger.debug(f"Quoted {earned} points for spend {spent} (user {user_id}), promotions {[p.id for p in applied]}")
    return PointsQuote(earned=earned, promotions=applied)
