# app/routers/events.py
from typing import List

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.roles import Role
from app.dependencies import get_current_user, get_db, require_role
from app.models.user import User
from app.schemas.event import AttendanceOut, EventCreate, EventDetail, EventUpdate, PaginatedEvents, UserRef
from app.schemas.transaction import EventAwardCreate, TransactionOut
from app.schemas.user import UserBase
from app.services import event as event_service
from app.services import transaction as transaction_service

router = APIRouter()


def _detail(event, viewer: User) -> EventDetail:
    return EventDetail.from_model(event, detailed=event_service.can_view_details(viewer, event))


@router.post("", response_model=EventDetail, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    event = event_service.create_event(db, current_user, **payload.model_dump())
    return _detail(event, current_user)


@router.get("", response_model=PaginatedEvents)
def list_events(
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    name: str | None = Query(None),
    location: str | None = Query(None),
    started: bool | None = Query(None),
    ended: bool | None = Query(None),
    published: bool | None = Query(None, description="Managers only"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return event_service.get_paginated_events(
        db, current_user, page, size,
        name=name, location=location, started=started, ended=ended, published=published,
    )


@router.get("/organizing/me", response_model=PaginatedEvents)
def list_organizing_events(
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return event_service.get_organizing_events(db, current_user, page, size)


@router.get("/{event_id}", response_model=EventDetail)
def read_event(event_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _detail(event_service.get_event(db, current_user, event_id), current_user)


@router.patch("/{event_id}", response_model=EventDetail)
def update_event(
    event_id: int,
    payload: EventUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = event_service.update_event(db, current_user, event_id, payload.model_dump(exclude_unset=True))
    return _detail(event, current_user)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    event_service.delete_event(db, current_user, event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Organizers ---

@router.post("/{event_id}/organizers", response_model=EventDetail, status_code=status.HTTP_201_CREATED)
def add_organizer(
    event_id: int,
    payload: UserRef,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    event = event_service.add_organizer(db, current_user, event_id, payload.utorid)
    return _detail(event, current_user)


@router.delete("/{event_id}/organizers/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_organizer(
    event_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    event_service.remove_organizer(db, current_user, event_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Guests ---

@router.post("/{event_id}/guests", response_model=EventDetail, status_code=status.HTTP_201_CREATED)
def add_guest(
    event_id: int,
    payload: UserRef,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = event_service.add_guest(db, current_user, event_id, payload.utorid)
    return _detail(event, current_user)


@router.get("/{event_id}/guests", response_model=List[UserBase])
def list_guests(event_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return [UserBase(id=u.id, utorid=u.utorid, name=u.name) for u in event_service.list_guests(db, current_user, event_id)]


@router.get("/{event_id}/guests/me", response_model=AttendanceOut)
def read_attendance(event_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    event = event_service.get_attendance(db, current_user, event_id)
    return AttendanceOut(event_id=event.id)


@router.post("/{event_id}/guests/me", response_model=EventDetail, status_code=status.HTTP_201_CREATED)
def rsvp(event_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    event = event_service.rsvp(db, current_user, event_id)
    return _detail(event, current_user)


@router.delete("/{event_id}/guests/me", status_code=status.HTTP_204_NO_CONTENT)
def cancel_rsvp(event_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    event_service.cancel_rsvp(db, current_user, event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{event_id}/guests/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_guest(
    event_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.MANAGER)),
):
    event_service.remove_guest(db, current_user, event_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Awards ---

@router.post(
    "/{event_id}/transactions",
    response_model=TransactionOut | List[TransactionOut],
    status_code=status.HTTP_201_CREATED,
)
def award_points(
    event_id: int,
    payload: EventAwardCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Awards one guest when `utorid` is given, otherwise every guest."""
    transactions = transaction_service.award_event_points(
        db, current_user, event_id, payload.amount, utorid=payload.utorid, remark=payload.remark
    )
    if payload.utorid is not None:
        return TransactionOut.from_model(transactions[0])
    return [TransactionOut.from_model(t) for t in transactions]
