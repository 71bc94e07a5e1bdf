# app/schemas/promotion.py

from datetime import datetime
from pydantic import BaseModel, Field, model_validator
from typing import Literal, Optional

from app.schemas.pagination import PaginatedResponse


class PromotionCreate(BaseModel):
    """Schema for creating a promotion."""
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    type: Literal["automatic", "one-time"]
    start_time: datetime
    end_time: datetime
    min_spending: Optional[float] = Field(None, gt=0, description="Minimum spend for the promotion to apply")
    rate: Optional[float] = Field(None, gt=0, description="Currency units per bonus point")
    points: Optional[int] = Field(None, ge=0, description="Flat bonus points")

    @model_validator(mode="after")
    def check_window(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class PromotionUpdate(BaseModel):
    """Partial update; only the fields sent are considered."""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    type: Optional[Literal["automatic", "one-time"]] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    min_spending: Optional[float] = Field(None, gt=0)
    rate: Optional[float] = Field(None, gt=0)
    points: Optional[int] = Field(None, ge=0)


class Promotion(BaseModel):
    id: int
    name: str
    description: str
    type: str
    start_time: datetime
    end_time: datetime
    min_spending: Optional[float] = None
    rate: Optional[float] = None
    points: Optional[int] = None

    class Config:
        from_attributes = True


class PaginatedPromotions(PaginatedResponse[Promotion]):
    pass
