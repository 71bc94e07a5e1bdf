# app/crud/transaction.py

from typing import List
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.models.promotion import Promotion
from app.models.transaction import (
    Transaction, TYPE_ADJUSTMENT, TYPE_EVENT, TYPE_REDEMPTION, TYPE_TRANSFER,
)
from app.models.user import User

# --- Basic CRUD ---

def create_transaction(
    db: Session,
    type: str,
    owner_user_id: int,
    creator_user_id: int,
    amount: int,
    remark: str = "",
    promotions: List[Promotion] | None = None,
    **fields,
) -> Transaction:
    """
    Creates a transaction object and adds it to the session.
    Requires an outer db.commit(), normally the one issued by `atomic`.
    """
    transaction = Transaction(
        type=type,
        owner_user_id=owner_user_id,
        creator_user_id=creator_user_id,
        amount=amount,
        remark=remark or "",
        **fields,
    )
    if promotions:
        transaction.promotions = list(promotions)
    db.add(transaction)
    return transaction

def get_transaction(db: Session, transaction_id: int) -> Transaction | None:
    return db.query(Transaction).filter(Transaction.id == transaction_id).first()

# --- Filtered listing ---

RELATED_COLUMN_BY_TYPE = {
    TYPE_ADJUSTMENT: Transaction.related_transaction_id,
    TYPE_TRANSFER: Transaction.related_user_id,
    TYPE_REDEMPTION: Transaction.processor_user_id,
    TYPE_EVENT: Transaction.event_id,
}

def _apply_transaction_filters(
    query,
    owner_user_id: int | None = None,
    name: str | None = None,
    created_by: str | None = None,
    suspicious: bool | None = None,
    promotion_id: int | None = None,
    type: str | None = None,
    related_id: int | None = None,
    amount: int | None = None,
    operator: str | None = None,
):
    if owner_user_id is not None:
        query = query.filter(Transaction.owner_user_id == owner_user_id)
    if name:
        search_query = f"%{name}%"
        owner_ids = select(User.id).where(or_(User.utorid.ilike(search_query), User.name.ilike(search_query)))
        query = query.filter(Transaction.owner_user_id.in_(owner_ids))
    if created_by:
        search_query = f"%{created_by}%"
        creator_ids = select(User.id).where(or_(User.utorid.ilike(search_query), User.name.ilike(search_query)))
        query = query.filter(Transaction.creator_user_id.in_(creator_ids))
    if suspicious is not None:
        query = query.filter(Transaction.suspicious == suspicious)
    if promotion_id is not None:
        query = query.filter(Transaction.promotions.any(Promotion.id == promotion_id))
    if type:
        query = query.filter(Transaction.type == type)
    if related_id is not None and type in RELATED_COLUMN_BY_TYPE:
        query = query.filter(RELATED_COLUMN_BY_TYPE[type] == related_id)
    if amount is not None:
        if operator == "gte":
            query = query.filter(Transaction.amount >= amount)
        elif operator == "lte":
            query = query.filter(Transaction.amount <= amount)
    return query

def get_transactions(db: Session, skip: int = 0, limit: int = 10, **filters) -> List[Transaction]:
    """Paginated transactions with filters, in id order."""
    query = _apply_transaction_filters(db.query(Transaction), **filters)
    return query.order_by(Transaction.id.asc()).offset(skip).limit(limit).all()

def count_transactions(db: Session, **filters) -> int:
    query = _apply_transaction_filters(db.query(func.count(Transaction.id)), **filters)
    return query.scalar()

# --- Conditional state changes ---

def mark_redemption_processed(db: Session, transaction_id: int, processor_user_id: int, redeemed: int) -> bool:
    """
    Sets the processor only while it is still empty, so a redemption
    can be processed exactly once even with concurrent cashiers.
    """
    updated = db.query(Transaction).filter(
        Transaction.id == transaction_id,
        Transaction.processor_user_id.is_(None),
    ).update(
        {Transaction.processor_user_id: processor_user_id, Transaction.redeemed: redeemed},
        synchronize_session=False,
    )
    return updated == 1

def set_suspicious_flag(db: Session, transaction_id: int, expected: bool, value: bool) -> bool:
    """Compare-and-set on the suspicious flag. Returns False if someone else changed it first."""
    updated = db.query(Transaction).filter(
        Transaction.id == transaction_id,
        Transaction.suspicious == expected,
    ).update({Transaction.suspicious: value}, synchronize_session=False)
    return updated == 1
