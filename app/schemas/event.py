# app/schemas/event.py

from datetime import datetime
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional

from app.models.event import Event as EventModel
from app.schemas.pagination import PaginatedResponse
from app.schemas.user import UserBase


class EventCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    start_time: datetime
    end_time: datetime
    capacity: Optional[int] = Field(None, gt=0, description="NULL means unlimited")
    points: int = Field(..., gt=0, description="Points budget to distribute to guests")

    @model_validator(mode="after")
    def check_window(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class EventUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = Field(None, min_length=1)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    capacity: Optional[int] = Field(None, gt=0)
    points: Optional[int] = Field(None, gt=0)
    published: Optional[bool] = None


class UserRef(BaseModel):
    utorid: str = Field(..., min_length=1)


# Listing entry; management fields are filled only for managers
class EventSummary(BaseModel):
    id: int
    name: str
    location: str
    start_time: datetime
    end_time: datetime
    capacity: Optional[int] = None
    num_guests: int
    points_remain: Optional[int] = None
    points_awarded: Optional[int] = None
    published: Optional[bool] = None

    @classmethod
    def from_model(cls, event: EventModel, detailed: bool) -> "EventSummary":
        summary = cls(
            id=event.id,
            name=event.name,
            location=event.location,
            start_time=event.start_time,
            end_time=event.end_time,
            capacity=event.capacity,
            num_guests=event.num_guests,
        )
        if detailed:
            summary.points_remain = event.points_remaining
            summary.points_awarded = event.points_awarded
            summary.published = event.published
        return summary


class EventDetail(EventSummary):
    description: str
    organizers: List[UserBase] = []
    guests: Optional[List[UserBase]] = None

    @classmethod
    def from_model(cls, event: EventModel, detailed: bool) -> "EventDetail":
        base = EventSummary.from_model(event, detailed)
        detail = cls(
            **base.model_dump(),
            description=event.description,
            organizers=[UserBase(id=u.id, utorid=u.utorid, name=u.name) for u in event.organizers],
        )
        if detailed:
            detail.guests = [UserBase(id=u.id, utorid=u.utorid, name=u.name) for u in event.guests]
        return detail


class PaginatedEvents(PaginatedResponse[EventSummary]):
    pass


class AttendanceOut(BaseModel):
    attending: bool = True
    event_id: int
