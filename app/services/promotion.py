# app/services/promotion.py
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.core.roles import Role, check_role, ensure_role
from app.crud import promotion as crud_promotion
from app.db.session import atomic
from app.models.promotion import Promotion
from app.models.user import User
from app.schemas.pagination import total_pages
from app.schemas.promotion import PaginatedPromotions, Promotion as PromotionSchema
from app.utils.clock import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

# Fields frozen once the promotion window has opened
LOCKED_AFTER_START = ("name", "description", "type", "start_time", "min_spending", "rate", "points")


def create_promotion(
    db: Session,
    actor: User,
    name: str,
    description: str,
    type: str,
    start_time: datetime,
    end_time: datetime,
    min_spending: float | None = None,
    rate: float | None = None,
    points: int | None = None,
    now: datetime | None = None,
) -> Promotion:
    ensure_role(actor, Role.MANAGER)
    now = now or utcnow()
    start_time, end_time = to_naive_utc(start_time), to_naive_utc(end_time)

    if start_time < now:
        raise ValidationError("start_time cannot be in the past")
    if end_time <= start_time:
        raise ValidationError("end_time must be after start_time")

    with atomic(db):
        promotion = Promotion(
            name=name,
            description=description,
            type=type,
            start_time=start_time,
            end_time=end_time,
            min_spending=min_spending,
            rate=rate,
            points=points,
        )
        db.add(promotion)
        db.flush()

    logger.info(f"Promotion '{promotion.name}' (ID: {promotion.id}, {promotion.type}) created by {actor.utorid}.")
    return promotion


def update_promotion(db: Session, actor: User, promotion_id: int, updates: dict,
                     now: datetime | None = None) -> Promotion:
    """
    Applies a partial update. Before the start time anything may change;
    after it only `end_time` can move, and only while the promotion has not ended.
    """
    ensure_role(actor, Role.MANAGER)
    now = now or utcnow()
    promotion = crud_promotion.get_promotion(db, promotion_id)
    if not promotion:
        raise NotFoundError("Promotion not found")

    changes = {k: v for k, v in updates.items() if v is not None}
    if not changes:
        raise ValidationError("No fields to update")

    for field in ("start_time", "end_time"):
        if field in changes:
            changes[field] = to_naive_utc(changes[field])
            if changes[field] < now:
                raise ValidationError(f"{field} cannot be in the past")

    effective_start = changes.get("start_time", promotion.start_time)
    effective_end = changes.get("end_time", promotion.end_time)
    if effective_end <= effective_start:
        raise ValidationError("end_time must be after start_time")

    if promotion.start_time <= now and any(field in changes for field in LOCKED_AFTER_START):
        raise ValidationError("Cannot update this field after start time")
    if promotion.end_time <= now and "end_time" in changes:
        raise ValidationError("Cannot update end_time after the promotion has ended")

    with atomic(db):
        for field, value in changes.items():
            setattr(promotion, field, value)

    logger.info(f"Promotion {promotion.id} updated by {actor.utorid}: {sorted(changes)}")
    return promotion


def delete_promotion(db: Session, actor: User, promotion_id: int, now: datetime | None = None) -> None:
    ensure_role(actor, Role.MANAGER)
    now = now or utcnow()
    promotion = crud_promotion.get_promotion(db, promotion_id)
    if not promotion:
        raise NotFoundError("Promotion not found")
    if promotion.start_time <= now:
        raise ForbiddenError("Cannot delete a promotion that has already started")

    with atomic(db):
        db.delete(promotion)
    logger.info(f"Promotion {promotion_id} deleted by {actor.utorid}.")


def get_promotion(db: Session, viewer: User, promotion_id: int, now: datetime | None = None) -> Promotion:
    """Regular users and cashiers can only see promotions that are currently active."""
    now = now or utcnow()
    promotion = crud_promotion.get_promotion(db, promotion_id)
    if not promotion:
        raise NotFoundError("Promotion not found")
    if not check_role(viewer.role, Role.MANAGER):
        if not (promotion.start_time <= now < promotion.end_time):
            raise NotFoundError("Promotion not found")
    return promotion


def get_paginated_promotions(
    db: Session,
    viewer: User,
    page: int,
    size: int,
    name: str | None = None,
    type: str | None = None,
    started: bool | None = None,
    ended: bool | None = None,
    now: datetime | None = None,
) -> PaginatedPromotions:
    if page < 1 or size < 1:
        raise ValidationError("Invalid pagination parameters")
    now = now or utcnow()

    filters = {"name": name, "type": type}
    if check_role(viewer.role, Role.MANAGER):
        if started is not None and ended is not None:
            raise ValidationError("Cannot specify both started and ended")
        filters.update(started=started, ended=ended)
    else:
        filters.update(active_only=True, unused_by=viewer.id)

    skip = (page - 1) * size
    promotions = crud_promotion.get_promotions(db, now, skip=skip, limit=size, **filters)
    total = crud_promotion.count_promotions(db, now, **filters)
    return PaginatedPromotions(
        total_items=total,
        total_pages=total_pages(total, size),
        current_page=page,
        size=size,
        items=[PromotionSchema.model_validate(p) for p in promotions],
    )
