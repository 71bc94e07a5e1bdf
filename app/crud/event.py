# app/crud/event.py

from datetime import datetime
from typing import List

from sqlalchemy import and_, delete, exists, func, insert
from sqlalchemy.orm import Session

from app.models.event import Event, event_guests, event_organizers


def get_event(db: Session, event_id: int) -> Event | None:
    return db.query(Event).filter(Event.id == event_id).first()

def add_points_awarded(db: Session, event_id: int, total: int) -> bool:
    """
    Consumes `total` points of the event budget in one conditional UPDATE.
    Returns False if the remaining budget is smaller than `total`.
    """
    updated = db.query(Event).filter(
        Event.id == event_id,
        Event.points_awarded + total <= Event.points_total,
    ).update({Event.points_awarded: Event.points_awarded + total}, synchronize_session=False)
    return updated == 1

# --- Organizers and guests ---

def add_organizer(db: Session, event_id: int, user_id: int) -> None:
    db.execute(insert(event_organizers).values(event_id=event_id, user_id=user_id))

def remove_organizer(db: Session, event_id: int, user_id: int) -> int:
    result = db.execute(delete(event_organizers).where(
        event_organizers.c.event_id == event_id, event_organizers.c.user_id == user_id
    ))
    return result.rowcount

def add_guest(db: Session, event_id: int, user_id: int) -> None:
    db.execute(insert(event_guests).values(event_id=event_id, user_id=user_id))

def remove_guest(db: Session, event_id: int, user_id: int) -> int:
    result = db.execute(delete(event_guests).where(
        event_guests.c.event_id == event_id, event_guests.c.user_id == user_id
    ))
    return result.rowcount

def count_guests(db: Session, event_id: int) -> int:
    return db.query(func.count(event_guests.c.user_id)).filter(event_guests.c.event_id == event_id).scalar()

# --- Listing ---

def _apply_event_filters(query, now: datetime, name: str | None = None, location: str | None = None,
                         started: bool | None = None, ended: bool | None = None,
                         published: bool | None = None, organizer_id: int | None = None):
    if name:
        query = query.filter(Event.name.ilike(f"%{name}%"))
    if location:
        query = query.filter(Event.location.ilike(f"%{location}%"))
    if started is not None:
        query = query.filter(Event.start_time <= now if started else Event.start_time > now)
    if ended is not None:
        query = query.filter(Event.end_time <= now if ended else Event.end_time > now)
    if published is not None:
        query = query.filter(Event.published == published)
    if organizer_id is not None:
        query = query.filter(exists().where(and_(
            event_organizers.c.event_id == Event.id,
            event_organizers.c.user_id == organizer_id,
        )))
    return query

def get_events(db: Session, now: datetime, skip: int = 0, limit: int = 10, **filters) -> List[Event]:
    query = _apply_event_filters(db.query(Event), now, **filters)
    return query.order_by(Event.id.asc()).offset(skip).limit(limit).all()

def count_events(db: Session, now: datetime, **filters) -> int:
    query = _apply_event_filters(db.query(func.count(Event.id)), now, **filters)
    return query.scalar()
