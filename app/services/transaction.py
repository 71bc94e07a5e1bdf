# app/services/transaction.py

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    ConflictError, ForbiddenError, InsufficientBalanceError, NotFoundError, ValidationError,
)
from app.core.roles import Role, check_role, ensure_role
from app.crud import event as crud_event
from app.crud import promotion as crud_promotion
from app.crud import transaction as crud_transaction
from app.crud import user as crud_user
from app.db.session import atomic
from app.models.transaction import (
    Transaction, TRANSACTION_TYPES,
    TYPE_ADJUSTMENT, TYPE_EVENT, TYPE_PURCHASE, TYPE_REDEMPTION, TYPE_TRANSFER,
)
from app.models.user import User
from app.schemas.pagination import total_pages
from app.schemas.transaction import PaginatedTransactions, TransactionOut
from app.services import points as points_service

logger = logging.getLogger(__name__)


# --- Helpers ---

def _require_user_by_utorid(db: Session, utorid: str) -> User:
    user = crud_user.get_user_by_utorid(db, utorid)
    if not user:
        raise NotFoundError("User not found")
    return user

def _require_positive_int(value, field: str = "amount") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return value

def _consume_promotion(db: Session, promotion_id: int, user_id: int) -> None:
    """Marks a one-time promotion as used; a duplicate is rejected by the store."""
    try:
        crud_promotion.mark_used(db, promotion_id, user_id)
    except IntegrityError:
        logger.warning(f"Promotion {promotion_id} was already consumed by user {user_id}.")
        raise ConflictError(f"Promotion {promotion_id} has already been used")


# --- Purchase ---

def record_purchase(
    db: Session,
    cashier: User,
    utorid: str,
    spent,
    promotion_ids: Iterable[int] | None = None,
    remark: str = "",
    now: datetime | None = None,
) -> Transaction:
    """
    Records a purchase made by `utorid` at `cashier`'s till.

    If the cashier is flagged suspicious the transaction is still written, with
    the would-be amount and `suspicious=True`, but the owner's balance is left
    alone and one-time promotions are not consumed.
    """
    ensure_role(cashier, Role.CASHIER)
    spent = Decimal(str(spent)) if spent is not None else None
    if spent is None or spent <= 0:
        raise ValidationError("spent must be a positive number")

    owner = _require_user_by_utorid(db, utorid)

    with atomic(db):
        quote = points_service.compute_purchase_points(db, spent, promotion_ids, owner.id, now)
        is_suspicious = bool(cashier.suspicious)

        transaction = crud_transaction.create_transaction(
            db,
            type=TYPE_PURCHASE,
            owner_user_id=owner.id,
            creator_user_id=cashier.id,
            amount=quote.earned,
            remark=remark,
            promotions=quote.promotions,
            spent=spent,
            suspicious=is_suspicious,
        )

        if not is_suspicious:
            crud_user.credit_points(db, owner.id, quote.earned)
            for promotion in quote.promotions:
                if promotion.is_one_time:
                    _consume_promotion(db, promotion.id, owner.id)
        db.flush()

    if is_suspicious:
        logger.warning(
            f"Purchase {transaction.id} for {owner.utorid} recorded as suspicious "
            f"(cashier {cashier.utorid}), {quote.earned} points withheld."
        )
    else:
        logger.info(
            f"Purchase {transaction.id}: {owner.utorid} earned {quote.earned} points on {spent} "
            f"(promotions {quote.promotion_ids}, cashier {cashier.utorid})."
        )
    return transaction


# --- Redemption ---

def request_redemption(db: Session, user: User, amount: int, remark: str = "") -> Transaction:
    """
    Creates a pending redemption for the user's own points.
    Nothing is deducted until a cashier processes it.
    """
    amount = _require_positive_int(amount)
    if not user.verified:
        raise ForbiddenError("User must be verified")
    if user.points < amount:
        raise InsufficientBalanceError("Insufficient points")

    with atomic(db):
        transaction = crud_transaction.create_transaction(
            db,
            type=TYPE_REDEMPTION,
            owner_user_id=user.id,
            creator_user_id=user.id,
            amount=-amount,
            remark=remark,
        )
        db.flush()

    logger.info(f"Redemption {transaction.id} of {amount} points requested by {user.utorid}.")
    return transaction


def process_redemption(db: Session, transaction_id: int, actor: User) -> Transaction:
    """Finalizes a pending redemption and deducts the points from its owner."""
    ensure_role(actor, Role.CASHIER)

    with atomic(db):
        transaction = crud_transaction.get_transaction(db, transaction_id)
        if not transaction:
            raise NotFoundError("Transaction not found")
        if transaction.type != TYPE_REDEMPTION:
            raise ValidationError("Transaction is not a redemption")
        if transaction.processor_user_id is not None:
            raise ConflictError("Redemption already processed")

        redeemed = abs(transaction.amount)
        if not crud_transaction.mark_redemption_processed(db, transaction.id, actor.id, redeemed):
            raise ConflictError("Redemption already processed")
        if not crud_user.debit_points(db, transaction.owner_user_id, redeemed):
            raise InsufficientBalanceError("Insufficient points")

    logger.info(f"Redemption {transaction_id} of {redeemed} points processed by {actor.utorid}.")
    return transaction


# --- Transfer ---

def transfer_points(
    db: Session, sender: User, recipient_id: int, amount: int, remark: str = ""
) -> Tuple[Transaction, Transaction]:
    """
    Moves points between two users. Writes one row per party, each pointing at
    the other user, and returns (outgoing, incoming).
    """
    amount = _require_positive_int(amount)
    if sender.id == recipient_id:
        raise ValidationError("Cannot transfer to yourself")
    if not sender.verified:
        raise ForbiddenError("Sender must be verified")
    if sender.points < amount:
        raise InsufficientBalanceError("Insufficient points")

    recipient = crud_user.get_user_by_id(db, recipient_id)
    if not recipient:
        raise NotFoundError("Recipient not found")

    with atomic(db):
        if not crud_user.debit_points(db, sender.id, amount):
            raise InsufficientBalanceError("Insufficient points")
        crud_user.credit_points(db, recipient.id, amount)

        outgoing = crud_transaction.create_transaction(
            db,
            type=TYPE_TRANSFER,
            owner_user_id=sender.id,
            creator_user_id=sender.id,
            amount=-amount,
            remark=remark,
            related_user_id=recipient.id,
        )
        incoming = crud_transaction.create_transaction(
            db,
            type=TYPE_TRANSFER,
            owner_user_id=recipient.id,
            creator_user_id=sender.id,
            amount=amount,
            remark=remark,
            related_user_id=sender.id,
        )
        db.flush()

    logger.info(f"Transfer of {amount} points from {sender.utorid} to {recipient.utorid} ({outgoing.id}/{incoming.id}).")
    return outgoing, incoming


# --- Adjustment ---

def record_adjustment(
    db: Session,
    manager: User,
    utorid: str,
    amount: int,
    related_id: int,
    remark: str = "",
    promotion_ids: Iterable[int] | None = None,
) -> Transaction:
    """Manual correction against an existing transaction. `amount` may be negative."""
    ensure_role(manager, Role.MANAGER)
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("amount must be an integer")

    owner = _require_user_by_utorid(db, utorid)
    if related_id is None:
        raise ValidationError("related_id is required for adjustment transactions")
    if not crud_transaction.get_transaction(db, related_id):
        raise NotFoundError("Related transaction not found")

    promotions = []
    for promotion_id in promotion_ids or []:
        promotion = crud_promotion.get_promotion(db, promotion_id)
        if not promotion:
            raise NotFoundError(f"Promotion {promotion_id} not found")
        promotions.append(promotion)

    with atomic(db):
        transaction = crud_transaction.create_transaction(
            db,
            type=TYPE_ADJUSTMENT,
            owner_user_id=owner.id,
            creator_user_id=manager.id,
            amount=amount,
            remark=remark,
            promotions=promotions,
            related_transaction_id=related_id,
        )
        if amount >= 0:
            crud_user.credit_points(db, owner.id, amount)
        elif not crud_user.debit_points(db, owner.id, -amount):
            raise InsufficientBalanceError("Adjustment would make the balance negative")
        db.flush()

    logger.info(f"Adjustment {transaction.id}: {amount} points for {owner.utorid} by {manager.utorid} (ref {related_id}).")
    return transaction


# --- Event awards ---

def award_event_points(
    db: Session,
    actor: User,
    event_id: int,
    amount: int,
    utorid: str | None = None,
    remark: str = "",
) -> List[Transaction]:
    """
    Awards `amount` points to one guest, or to every guest when `utorid` is
    not given. The whole award must fit in the event's remaining budget; this
    is checked before anything is written.
    """
    amount = _require_positive_int(amount)

    event = crud_event.get_event(db, event_id)
    if not event:
        raise NotFoundError("Event not found")
    if not (check_role(actor.role, Role.MANAGER) or event.is_organizer(actor.id)):
        raise ForbiddenError("Insufficient permissions")

    if utorid is not None:
        user = _require_user_by_utorid(db, utorid)
        if not event.is_guest(user.id):
            raise ValidationError("User is not a guest")
        recipients = [user]
    else:
        recipients = list(event.guests)

    total = amount * len(recipients)
    if total > event.points_remaining:
        logger.warning(f"Event {event.id}: award of {total} points exceeds remaining budget {event.points_remaining}.")
        raise ConflictError("Insufficient points remaining")
    if not recipients:
        return []

    with atomic(db):
        if not crud_event.add_points_awarded(db, event.id, total):
            raise ConflictError("Insufficient points remaining")

        transactions = []
        for recipient in recipients:
            transactions.append(crud_transaction.create_transaction(
                db,
                type=TYPE_EVENT,
                owner_user_id=recipient.id,
                creator_user_id=actor.id,
                amount=amount,
                remark=remark,
                event_id=event.id,
            ))
            crud_user.credit_points(db, recipient.id, amount)
        db.flush()

    logger.info(f"Event {event_id}: awarded {amount} points to {len(recipients)} guest(s) by {actor.utorid}.")
    return transactions


# --- Suspicious flag ---

def set_suspicious(db: Session, transaction_id: int, new_value: bool, actor_role: Role | str) -> Transaction:
    """
    Flags or clears a purchase.

    Clearing applies the stored amount to the owner and consumes the one-time
    promotions it references; flagging takes the amount back. Setting the
    current value again changes nothing.
    """
    if not check_role(actor_role, Role.MANAGER):
        raise ForbiddenError("Insufficient permissions")

    with atomic(db):
        transaction = crud_transaction.get_transaction(db, transaction_id)
        if not transaction:
            raise NotFoundError("Transaction not found")
        if transaction.type != TYPE_PURCHASE:
            raise ValidationError("Only purchase transactions can be flagged as suspicious")

        was_suspicious = bool(transaction.suspicious)
        if was_suspicious == new_value:
            return transaction

        if not crud_transaction.set_suspicious_flag(db, transaction.id, was_suspicious, new_value):
            raise ConflictError("Transaction was modified concurrently")

        owner_id = transaction.owner_user_id
        if was_suspicious:
            crud_user.credit_points(db, owner_id, transaction.amount)
            one_time_ids = [p.id for p in transaction.promotions if p.is_one_time]
            already_used = crud_promotion.get_used_promotion_ids(db, owner_id, one_time_ids)
            for promotion_id in one_time_ids:
                if promotion_id in already_used:
                    logger.info(f"Promotion {promotion_id} was consumed by this purchase before it was flagged.")
                    continue
                _consume_promotion(db, promotion_id, owner_id)
        elif not crud_user.debit_points(db, owner_id, transaction.amount):
            raise InsufficientBalanceError("Owner balance is too low to withdraw this purchase")

    logger.info(
        f"Transaction {transaction_id} suspicious {was_suspicious} -> {new_value}, "
        f"{transaction.amount} points {'credited' if was_suspicious else 'withdrawn'}."
    )
    return transaction


# --- Dispatcher ---

def record_transaction(db: Session, actor: User, type: str, **params):
    """Creates a transaction of any type; see the per-type functions for parameters."""
    if type not in TRANSACTION_TYPES:
        raise ValidationError("Invalid transaction type")
    if type == TYPE_PURCHASE:
        return record_purchase(db, actor, **params)
    if type == TYPE_ADJUSTMENT:
        return record_adjustment(db, actor, **params)
    if type == TYPE_REDEMPTION:
        return request_redemption(db, actor, **params)
    if type == TYPE_TRANSFER:
        return transfer_points(db, actor, **params)
    return award_event_points(db, actor, **params)


# --- Queries ---

def get_transaction(db: Session, transaction_id: int) -> Transaction:
    transaction = crud_transaction.get_transaction(db, transaction_id)
    if not transaction:
        raise NotFoundError("Transaction not found")
    return transaction

def _validate_filters(filters: dict) -> dict:
    if filters.get("related_id") is not None and not filters.get("type"):
        raise ValidationError("type is required when using related_id")
    if filters.get("amount") is not None:
        if not filters.get("operator"):
            raise ValidationError("operator is required when using amount")
        if filters["operator"] not in ("gte", "lte"):
            raise ValidationError("Invalid operator")
    return {k: v for k, v in filters.items() if v is not None}

def get_paginated_transactions(db: Session, page: int, size: int, **filters) -> PaginatedTransactions:
    """Filtered, paginated transaction list for managers, or for one owner when `owner_user_id` is given."""
    if page < 1 or size < 1:
        raise ValidationError("Invalid pagination parameters")
    filters = _validate_filters(filters)
    skip = (page - 1) * size

    items = crud_transaction.get_transactions(db, skip=skip, limit=size, **filters)
    total = crud_transaction.count_transactions(db, **filters)
    return PaginatedTransactions(
        total_items=total,
        total_pages=total_pages(total, size),
        current_page=page,
        size=size,
        items=[TransactionOut.from_model(t) for t in items],
    )

def get_user_transactions(db: Session, user: User, page: int, size: int, **filters) -> PaginatedTransactions:
    """The caller's own history; same filters as the manager list except owner lookups."""
    filters.pop("name", None)
    return get_paginated_transactions(db, page, size, owner_user_id=user.id, **filters)
