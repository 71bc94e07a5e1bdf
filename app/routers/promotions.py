# app/routers/promotions.py
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.roles import Role
from app.dependencies import get_current_user, get_db, require_role
from app.models.user import User
from app.schemas.promotion import PaginatedPromotions, Promotion, PromotionCreate, PromotionUpdate
from app.services import promotion as promotion_service

router = APIRouter()


@router.post("", response_model=Promotion, status_code=status.HTTP_201_CREATED)
def create_promotion(
    payload: PromotionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    return promotion_service.create_promotion(db, current_user, **payload.model_dump())


@router.get("", response_model=PaginatedPromotions)
def list_promotions(
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    name: str | None = Query(None),
    type: str | None = Query(None, description="automatic or one-time"),
    started: bool | None = Query(None, description="Managers only"),
    ended: bool | None = Query(None, description="Managers only"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return promotion_service.get_paginated_promotions(
        db, current_user, page, size, name=name, type=type, started=started, ended=ended
    )


@router.get("/{promotion_id}", response_model=Promotion)
def read_promotion(
    promotion_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return promotion_service.get_promotion(db, current_user, promotion_id)


@router.patch("/{promotion_id}", response_model=Promotion)
def update_promotion(
    promotion_id: int,
    payload: PromotionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    return promotion_service.update_promotion(
        db, current_user, promotion_id, payload.model_dump(exclude_unset=True)
    )


@router.delete("/{promotion_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_promotion(
    promotion_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    promotion_service.delete_promotion(db, current_user, promotion_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
