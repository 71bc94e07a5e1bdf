# app/models/event.py

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Table, Text, func
from sqlalchemy.orm import relationship

from app.db.session import Base

event_organizers = Table(
    "event_organizers",
    Base.metadata,
    Column("event_id", Integer, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

event_guests = Table(
    "event_guests",
    Base.metadata,
    Column("event_id", Integer, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("points_awarded <= points_total", name="ck_events_points_within_budget"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    location = Column(String, nullable=False)

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)

    # NULL means unlimited
    capacity = Column(Integer, nullable=True)

    points_total = Column(Integer, nullable=False)
    points_awarded = Column(Integer, nullable=False, default=0, server_default='0')

    published = Column(Boolean, nullable=False, default=False, server_default='false')
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    organizers = relationship("User", secondary=event_organizers, lazy="selectin", order_by="User.id")
    guests = relationship("User", secondary=event_guests, lazy="selectin", order_by="User.id")

    @property
    def points_remaining(self) -> int:
        return self.points_total - (self.points_awarded or 0)

    @property
    def num_guests(self) -> int:
        return len(self.guests)

    def is_organizer(self, user_id: int) -> bool:
        return any(organizer.id == user_id for organizer in self.organizers)

    def is_guest(self, user_id: int) -> bool:
        return any(guest.id == user_id for guest in self.guests)
