# app/models/promotion.py

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Table, Text, func
from sqlalchemy.orm import relationship

from app.db.session import Base

PROMOTION_AUTOMATIC = "automatic"
PROMOTION_ONE_TIME = "one-time"

# A row means the user has consumed the one-time promotion.
# The composite primary key is what makes "at most once per user" hold under concurrency.
promotion_usages = Table(
    "promotion_usages",
    Base.metadata,
    Column("promotion_id", Integer, ForeignKey("promotions.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("used_at", DateTime, server_default=func.now()),
)


class Promotion(Base):
    __tablename__ = "promotions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    # 'automatic' or 'one-time'
    type = Column(String(20), nullable=False, index=True)

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)

    min_spending = Column(Float, nullable=True)
    # Currency units per bonus point, same convention as the base rate
    rate = Column(Float, nullable=True)
    # Flat bonus
    points = Column(Integer, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    used_by = relationship("User", secondary=promotion_usages)

    @property
    def is_one_time(self) -> bool:
        return self.type == PROMOTION_ONE_TIME
