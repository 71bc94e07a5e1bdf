# app/routers/users.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.roles import Role, check_role
from app.dependencies import get_current_user, get_db, require_role
from app.models.user import User
from app.schemas.transaction import (
    PaginatedTransactions, RedemptionCreate, TransactionOut, TransferCreate, TransferOut,
)
from app.schemas.user import (
    CashierUserView, PaginatedUsers, ProfileUpdate, PromotionBrief,
    User as UserSchema, UserCreate, UserLookup, UserSuspicion, UserUpdate, UserWithPromotions,
)
from app.services import transaction as transaction_service
from app.services import user as user_service

router = APIRouter()


def _promotions_of(db: Session, user: User) -> list[PromotionBrief]:
    return [PromotionBrief.model_validate(p) for p in user_service.get_available_promotions(db, user.id)]


@router.post("", response_model=UserSchema, status_code=status.HTTP_201_CREATED)
def register_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.CASHIER)),
):
    return user_service.create_user(db, current_user, payload.utorid, payload.name, payload.email)


@router.get("", response_model=PaginatedUsers)
def list_users(
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    name: str | None = Query(None, description="Substring of utorid or name"),
    role: Role | None = Query(None),
    verified: bool | None = Query(None),
    activated: bool | None = Query(None, description="Whether the user has logged in at least once"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    return user_service.get_paginated_users(
        db, page, size, name=name, role=role.value if role else None, verified=verified, activated=activated
    )


# --- Current user ---

@router.get("/me", response_model=UserWithPromotions)
def read_users_me(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    profile = UserWithPromotions.model_validate(current_user)
    profile.promotions = _promotions_of(db, current_user)
    return profile


@router.patch("/me", response_model=UserSchema)
def update_users_me(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.update_profile(db, current_user, payload.name, payload.email, payload.birthday)


@router.post("/me/transactions", response_model=TransactionOut, status_code=status.HTTP_201_CREATED)
def request_redemption(
    payload: RedemptionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    transaction = transaction_service.request_redemption(db, current_user, payload.amount, payload.remark)
    return TransactionOut.from_model(transaction)


@router.get("/me/transactions", response_model=PaginatedTransactions)
def list_my_transactions(
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    type: str | None = Query(None),
    related_id: int | None = Query(None),
    promotion_id: int | None = Query(None),
    amount: int | None = Query(None),
    operator: str | None = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return transaction_service.get_user_transactions(
        db, current_user, page, size,
        type=type, related_id=related_id, promotion_id=promotion_id, amount=amount, operator=operator,
    )


# --- Other users ---

@router.get("/lookup/{utorid}", response_model=UserLookup)
def lookup_user(utorid: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Resolves a utorid to the id a transfer is addressed to."""
    return user_service.get_user_by_utorid(db, utorid)


@router.get("/{user_id}", response_model=UserWithPromotions | CashierUserView)
def read_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.CASHIER)),
):
    """Managers get the full record, cashiers a reduced view for the till."""
    user = user_service.get_user(db, user_id)
    view_cls = UserWithPromotions if check_role(current_user.role, Role.MANAGER) else CashierUserView
    view = view_cls.model_validate(user)
    view.promotions = _promotions_of(db, user)
    return view


@router.patch("/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    return user_service.update_user(db, current_user, user_id, **payload.model_dump())


@router.post("/{user_id}/transactions", response_model=TransferOut, status_code=status.HTTP_201_CREATED)
def transfer_points(
    user_id: int,
    payload: TransferCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    outgoing, incoming = transaction_service.transfer_points(
        db, current_user, user_id, payload.amount, payload.remark
    )
    return TransferOut(
        id=outgoing.id,
        sender=outgoing.owner.utorid,
        recipient=incoming.owner.utorid,
        sent=payload.amount,
        remark=outgoing.remark or "",
        created_by=outgoing.creator.utorid,
    )


@router.get("/{user_id}/suspicious", response_model=UserSuspicion)
def read_user_suspicion(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    return user_service.get_user(db, user_id)
