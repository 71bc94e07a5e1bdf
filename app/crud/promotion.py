# app/crud/promotion.py

from datetime import datetime
from typing import List

from sqlalchemy import and_, exists, func, insert, or_, select
from sqlalchemy.orm import Session

from app.models.promotion import Promotion, promotion_usages, PROMOTION_AUTOMATIC, PROMOTION_ONE_TIME
from app.models.transaction import Transaction, transaction_promotions


def get_promotion(db: Session, promotion_id: int) -> Promotion | None:
    return db.query(Promotion).filter(Promotion.id == promotion_id).first()

def get_active_automatic_promotions(db: Session, spent: float, now: datetime) -> List[Promotion]:
    """
    Automatic promotions whose window contains `now` and whose minimum
    spending (if any) is met. Ordered by id so the applied list is stable.
    """
    return db.query(Promotion).filter(
        Promotion.type == PROMOTION_AUTOMATIC,
        Promotion.start_time <= now,
        Promotion.end_time > now,
        or_(Promotion.min_spending.is_(None), Promotion.min_spending <= spent),
    ).order_by(Promotion.id.asc()).all()

# --- One-time usage ---

def _usage_exists(promotion_id, user_id):
    return exists().where(and_(
        promotion_usages.c.promotion_id == promotion_id,
        promotion_usages.c.user_id == user_id,
    ))

def _held_exists(promotion_id, user_id):
    # a suspicious purchase of the user still carries the promotion
    return exists().where(and_(
        transaction_promotions.c.promotion_id == promotion_id,
        transaction_promotions.c.transaction_id == Transaction.id,
        Transaction.owner_user_id == user_id,
        Transaction.suspicious.is_(True),
    ))

def has_user_used(db: Session, promotion_id: int, user_id: int) -> bool:
    return db.query(_usage_exists(promotion_id, user_id)).scalar()

def is_used_or_held(db: Session, promotion_id: int, user_id: int) -> bool:
    """
    True when the user consumed the promotion or a withheld purchase of theirs
    references it. Clearing that purchase consumes it, so it is not offered again.
    """
    query = db.query(or_(_usage_exists(promotion_id, user_id), _held_exists(promotion_id, user_id)))
    return bool(query.scalar())

def mark_used(db: Session, promotion_id: int, user_id: int) -> None:
    """
    Records that the user consumed the promotion.
    A second row for the same pair violates the primary key and raises IntegrityError at flush.
    """
    db.execute(insert(promotion_usages).values(promotion_id=promotion_id, user_id=user_id))

def get_available_one_time_promotions(db: Session, user_id: int, now: datetime) -> List[Promotion]:
    """Active one-time promotions the user has neither consumed nor has on hold."""
    return db.query(Promotion).filter(
        Promotion.type == PROMOTION_ONE_TIME,
        Promotion.start_time <= now,
        Promotion.end_time > now,
        ~_usage_exists(Promotion.id, user_id),
        ~_held_exists(Promotion.id, user_id),
    ).order_by(Promotion.id.asc()).all()

# --- Listing ---

def _apply_promotion_filters(query, now: datetime, name: str | None = None, type: str | None = None,
                             started: bool | None = None, ended: bool | None = None,
                             active_only: bool = False, unused_by: int | None = None):
    if name:
        query = query.filter(Promotion.name.ilike(f"%{name}%"))
    if type:
        query = query.filter(Promotion.type == type)
    if started is not None:
        query = query.filter(Promotion.start_time <= now if started else Promotion.start_time > now)
    if ended is not None:
        query = query.filter(Promotion.end_time <= now if ended else Promotion.end_time > now)
    if active_only:
        query = query.filter(Promotion.start_time <= now, Promotion.end_time > now)
    if unused_by is not None:
        query = query.filter(~_usage_exists(Promotion.id, unused_by), ~_held_exists(Promotion.id, unused_by))
    return query

def get_promotions(db: Session, now: datetime, skip: int = 0, limit: int = 10, **filters) -> List[Promotion]:
    query = _apply_promotion_filters(db.query(Promotion), now, **filters)
    return query.order_by(Promotion.id.asc()).offset(skip).limit(limit).all()

def count_promotions(db: Session, now: datetime, **filters) -> int:
    query = _apply_promotion_filters(db.query(func.count(Promotion.id)), now, **filters)
    return query.scalar()

def get_used_promotion_ids(db: Session, user_id: int, promotion_ids: List[int]) -> set[int]:
    if not promotion_ids:
        return set()
    rows = db.execute(
        select(promotion_usages.c.promotion_id).where(
            promotion_usages.c.user_id == user_id,
            promotion_usages.c.promotion_id.in_(promotion_ids),
        )
    ).all()
    return {promotion_id for promotion_id, in rows}
