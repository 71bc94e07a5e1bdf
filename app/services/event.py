# app/services/event.py
import logging
from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.roles import Role, check_role, ensure_role
from app.crud import event as crud_event
from app.crud import user as crud_user
from app.db.session import atomic
from app.models.event import Event
from app.models.user import User
from app.schemas.event import EventSummary, PaginatedEvents
from app.schemas.pagination import total_pages
from app.utils.clock import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

LOCKED_AFTER_START = ("name", "description", "location", "start_time", "capacity")


def _is_manager(user: User) -> bool:
    return check_role(user.role, Role.MANAGER)

def _require_event(db: Session, event_id: int) -> Event:
    event = crud_event.get_event(db, event_id)
    if not event:
        raise NotFoundError("Event not found")
    return event

def _require_user(db: Session, utorid: str) -> User:
    user = crud_user.get_user_by_utorid(db, utorid)
    if not user:
        raise NotFoundError("User not found")
    return user

def _ensure_manager_or_organizer(actor: User, event: Event) -> None:
    if not (_is_manager(actor) or event.is_organizer(actor.id)):
        raise ForbiddenError("Insufficient permissions")

def _ensure_not_ended(event: Event, now: datetime) -> None:
    if event.end_time <= now:
        raise ConflictError("Event has ended")


def create_event(
    db: Session,
    actor: User,
    name: str,
    description: str,
    location: str,
    start_time: datetime,
    end_time: datetime,
    points: int,
    capacity: int | None = None,
    now: datetime | None = None,
) -> Event:
    ensure_role(actor, Role.MANAGER)
    now = now or utcnow()
    start_time, end_time = to_naive_utc(start_time), to_naive_utc(end_time)

    if start_time < now:
        raise ValidationError("start_time cannot be in the past")
    if end_time <= start_time:
        raise ValidationError("end_time must be after start_time")
    if capacity is not None and capacity <= 0:
        raise ValidationError("capacity must be a positive integer or null")
    if points <= 0:
        raise ValidationError("points must be a positive integer")

    with atomic(db):
        event = Event(
            name=name,
            description=description,
            location=location,
            start_time=start_time,
            end_time=end_time,
            capacity=capacity,
            points_total=points,
            points_awarded=0,
            published=False,
            created_by_id=actor.id,
        )
        db.add(event)
        db.flush()

    logger.info(f"Event '{event.name}' (ID: {event.id}) created by {actor.utorid} with {points} points.")
    return event


def update_event(db: Session, actor: User, event_id: int, updates: dict, now: datetime | None = None) -> Event:
    """
    Partial update by an organizer or a manager. Points and publishing are
    manager-only; started events only accept a new end time.
    """
    now = now or utcnow()
    event = _require_event(db, event_id)
    _ensure_manager_or_organizer(actor, event)

    changes = {k: v for k, v in updates.items() if v is not None}
    if not changes:
        raise ValidationError("No fields to update")

    if ("points" in changes or "published" in changes) and not _is_manager(actor):
        raise ForbiddenError("Only managers can change points or publish events")

    for field in ("start_time", "end_time"):
        if field in changes:
            changes[field] = to_naive_utc(changes[field])
            if changes[field] < now:
                raise ValidationError(f"{field} cannot be in the past")

    effective_start = changes.get("start_time", event.start_time)
    effective_end = changes.get("end_time", event.end_time)
    if effective_end <= effective_start:
        raise ValidationError("end_time must be after start_time")

    if event.start_time <= now and any(field in changes for field in LOCKED_AFTER_START):
        raise ValidationError("Cannot update this field after start time")
    if event.end_time <= now and "end_time" in changes:
        raise ValidationError("Cannot update end_time after the event has ended")

    if "capacity" in changes and changes["capacity"] < event.num_guests:
        raise ValidationError("Capacity cannot be lower than the current number of guests")

    if "published" in changes:
        if changes["published"] is not True:
            raise ValidationError("published can only be set to true")

    if "points" in changes:
        if changes["points"] < event.points_awarded:
            raise ValidationError("Points total cannot drop below points already awarded")
        changes["points_total"] = changes.pop("points")

    with atomic(db):
        for field, value in changes.items():
            setattr(event, field, value)

    logger.info(f"Event {event.id} updated by {actor.utorid}: {sorted(changes)}")
    return event


def delete_event(db: Session, actor: User, event_id: int) -> None:
    ensure_role(actor, Role.MANAGER)
    event = _require_event(db, event_id)
    if event.published:
        raise ValidationError("Cannot delete a published event")

    with atomic(db):
        db.delete(event)
    logger.info(f"Event {event_id} deleted by {actor.utorid}.")


# --- Organizers ---

def add_organizer(db: Session, actor: User, event_id: int, utorid: str, now: datetime | None = None) -> Event:
    ensure_role(actor, Role.MANAGER)
    now = now or utcnow()
    event = _require_event(db, event_id)
    user = _require_user(db, utorid)
    _ensure_not_ended(event, now)

    if event.is_guest(user.id):
        raise ValidationError("User is registered as a guest; remove them first")
    if event.is_organizer(user.id):
        raise ConflictError("User is already an organizer")

    with atomic(db):
        crud_event.add_organizer(db, event.id, user.id)
    db.refresh(event)
    logger.info(f"{user.utorid} added as organizer of event {event.id} by {actor.utorid}.")
    return event


def remove_organizer(db: Session, actor: User, event_id: int, user_id: int) -> None:
    ensure_role(actor, Role.MANAGER)
    event = _require_event(db, event_id)
    with atomic(db):
        removed = crud_event.remove_organizer(db, event.id, user_id)
    if not removed:
        raise NotFoundError("Organizer not found")
    logger.info(f"User {user_id} removed from organizers of event {event.id} by {actor.utorid}.")


# --- Guests ---

def _register_guest(db: Session, event: Event, user: User, now: datetime) -> None:
    _ensure_not_ended(event, now)
    if event.is_organizer(user.id):
        raise ValidationError("Organizers cannot be guests of their own event")
    if event.is_guest(user.id):
        raise ConflictError("User is already a guest")
    if event.capacity is not None and crud_event.count_guests(db, event.id) >= event.capacity:
        raise ConflictError("Event is full")

    with atomic(db):
        crud_event.add_guest(db, event.id, user.id)
    db.refresh(event)


def add_guest(db: Session, actor: User, event_id: int, utorid: str, now: datetime | None = None) -> Event:
    """Registers another user. Organizers may only do this for published events."""
    now = now or utcnow()
    event = _require_event(db, event_id)
    _ensure_manager_or_organizer(actor, event)
    if not event.published and not _is_manager(actor):
        raise NotFoundError("Event not found")

    user = _require_user(db, utorid)
    _register_guest(db, event, user, now)
    logger.info(f"{user.utorid} added as guest of event {event.id} by {actor.utorid}.")
    return event


def rsvp(db: Session, user: User, event_id: int, now: datetime | None = None) -> Event:
    now = now or utcnow()
    event = _require_event(db, event_id)
    if not event.published:
        raise NotFoundError("Event not found")
    _register_guest(db, event, user, now)
    logger.info(f"{user.utorid} RSVP'd to event {event.id}.")
    return event


def cancel_rsvp(db: Session, user: User, event_id: int, now: datetime | None = None) -> None:
    now = now or utcnow()
    event = _require_event(db, event_id)
    _ensure_not_ended(event, now)
    with atomic(db):
        removed = crud_event.remove_guest(db, event.id, user.id)
    if not removed:
        raise NotFoundError("User did not RSVP to this event")
    logger.info(f"{user.utorid} cancelled RSVP to event {event.id}.")


def remove_guest(db: Session, actor: User, event_id: int, user_id: int) -> None:
    ensure_role(actor, Role.MANAGER)
    event = _require_event(db, event_id)
    with atomic(db):
        removed = crud_event.remove_guest(db, event.id, user_id)
    if not removed:
        raise NotFoundError("Guest not found")
    logger.info(f"User {user_id} removed from guests of event {event.id} by {actor.utorid}.")


def list_guests(db: Session, actor: User, event_id: int) -> List[User]:
    event = _require_event(db, event_id)
    _ensure_manager_or_organizer(actor, event)
    return list(event.guests)


# --- Queries ---

def get_event(db: Session, viewer: User, event_id: int) -> Event:
    """Unpublished events are hidden from everyone but managers and the event's organizers."""
    event = _require_event(db, event_id)
    if not event.published and not (_is_manager(viewer) or event.is_organizer(viewer.id)):
        raise NotFoundError("Event not found")
    return event


def can_view_details(viewer: User, event: Event) -> bool:
    return _is_manager(viewer) or event.is_organizer(viewer.id)


def get_paginated_events(
    db: Session,
    viewer: User,
    page: int,
    size: int,
    name: str | None = None,
    location: str | None = None,
    started: bool | None = None,
    ended: bool | None = None,
    published: bool | None = None,
    now: datetime | None = None,
) -> PaginatedEvents:
    if page < 1 or size < 1:
        raise ValidationError("Invalid pagination parameters")
    if started is not None and ended is not None:
        raise ValidationError("Cannot specify both started and ended")
    now = now or utcnow()

    is_manager = _is_manager(viewer)
    filters = {"name": name, "location": location, "started": started, "ended": ended}
    filters["published"] = published if is_manager else True

    skip = (page - 1) * size
    events = crud_event.get_events(db, now, skip=skip, limit=size, **filters)
    total = crud_event.count_events(db, now, **filters)
    return PaginatedEvents(
        total_items=total,
        total_pages=total_pages(total, size),
        current_page=page,
        size=size,
        items=[EventSummary.from_model(e, detailed=is_manager) for e in events],
    )


def get_organizing_events(db: Session, viewer: User, page: int, size: int,
                          now: datetime | None = None) -> PaginatedEvents:
    """Events the viewer organizes, published or not, with their management fields."""
    if page < 1 or size < 1:
        raise ValidationError("Invalid pagination parameters")
    now = now or utcnow()

    skip = (page - 1) * size
    events = crud_event.get_events(db, now, skip=skip, limit=size, organizer_id=viewer.id)
    total = crud_event.count_events(db, now, organizer_id=viewer.id)
    return PaginatedEvents(
        total_items=total,
        total_pages=total_pages(total, size),
        current_page=page,
        size=size,
        items=[EventSummary.from_model(e, detailed=True) for e in events],
    )


def get_attendance(db: Session, user: User, event_id: int) -> Event:
    """The published event the user is on the guest list of."""
    event = _require_event(db, event_id)
    if not event.published:
        raise NotFoundError("Event not found")
    if not event.is_guest(user.id):
        raise NotFoundError("Not attending")
    return event
