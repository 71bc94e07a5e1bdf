# app/routers/transactions.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.roles import Role
from app.dependencies import get_db, require_role
from app.models.user import User
from app.schemas.transaction import (
    PaginatedTransactions, ProcessedUpdate, SuspiciousUpdate, TransactionCreate, TransactionOut,
)
from app.services import transaction as transaction_service

router = APIRouter()


@router.post("", response_model=TransactionOut, status_code=status.HTTP_201_CREATED)
def create_transaction(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.CASHIER)),
):
    """Purchases (cashier+) and adjustments (manager+)."""
    if payload.type == "purchase":
        params = dict(utorid=payload.utorid, spent=payload.spent, promotion_ids=payload.promotion_ids)
    else:
        params = dict(
            utorid=payload.utorid, amount=payload.amount,
            related_id=payload.related_id, promotion_ids=payload.promotion_ids,
        )
    transaction = transaction_service.record_transaction(
        db, current_user, payload.type, remark=payload.remark, **params
    )
    return TransactionOut.from_model(transaction)


@router.get("", response_model=PaginatedTransactions)
def list_transactions(
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    name: str | None = Query(None, description="Substring of the owner's utorid or name"),
    created_by: str | None = Query(None),
    suspicious: bool | None = Query(None),
    promotion_id: int | None = Query(None),
    type: str | None = Query(None),
    related_id: int | None = Query(None, description="Interpreted per type; requires `type`"),
    amount: int | None = Query(None),
    operator: str | None = Query(None, description="gte or lte; required with `amount`"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    return transaction_service.get_paginated_transactions(
        db, page, size,
        name=name, created_by=created_by, suspicious=suspicious, promotion_id=promotion_id,
        type=type, related_id=related_id, amount=amount, operator=operator,
    )


@router.get("/{transaction_id}", response_model=TransactionOut)
def read_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    return TransactionOut.from_model(transaction_service.get_transaction(db, transaction_id))


@router.patch("/{transaction_id}/suspicious", response_model=TransactionOut)
def update_suspicious(
    transaction_id: int,
    payload: SuspiciousUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    transaction = transaction_service.set_suspicious(db, transaction_id, payload.suspicious, current_user.role)
    return TransactionOut.from_model(transaction)


@router.patch("/{transaction_id}/processed", response_model=TransactionOut)
def process_redemption(
    transaction_id: int,
    payload: ProcessedUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.CASHIER)),
):
    transaction = transaction_service.process_redemption(db, transaction_id, current_user)
    return TransactionOut.from_model(transaction)
