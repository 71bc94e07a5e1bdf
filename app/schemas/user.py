# app/schemas/user.py
import re
from datetime import date, datetime
from pydantic import AfterValidator, BaseModel, EmailStr, Field
from typing import Annotated, List, Optional

from app.core.roles import Role
from app.schemas.pagination import PaginatedResponse

UTORID_PATTERN = r"^[a-zA-Z0-9]{7,8}$"
UOFT_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@(mail\.)?utoronto\.ca$")


def _check_uoft_email(value: str | None) -> str | None:
    if value is not None and not UOFT_EMAIL_RE.match(value):
        raise ValueError("Email must be a utoronto.ca address")
    return value


UofTEmail = Annotated[EmailStr, AfterValidator(_check_uoft_email)]


# Schema for what the registering cashier sends
class UserCreate(BaseModel):
    utorid: str = Field(..., pattern=UTORID_PATTERN)
    name: str = Field(..., min_length=1, max_length=50)
    email: UofTEmail


# Manager-side update; every field is optional
class UserUpdate(BaseModel):
    email: Optional[UofTEmail] = None
    verified: Optional[bool] = None
    suspicious: Optional[bool] = None
    role: Optional[Role] = None


# Self-service profile update
class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[UofTEmail] = None
    birthday: Optional[date] = None


class PromotionBrief(BaseModel):
    id: int
    name: str
    min_spending: float | None = None
    rate: float | None = None
    points: int | None = None

    class Config:
        from_attributes = True


class UserBase(BaseModel):
    id: int
    utorid: str
    name: str


class User(UserBase):
    email: str
    birthday: date | None = None
    role: str
    points: int
    verified: bool
    created_at: datetime | None = None
    last_login: datetime | None = None

    class Config:
        from_attributes = True


class UserWithPromotions(User):
    promotions: List[PromotionBrief] = []


# Enough to address a transfer
class UserLookup(UserBase):
    verified: bool

    class Config:
        from_attributes = True


class UserSuspicion(UserBase):
    suspicious: bool

    class Config:
        from_attributes = True


# What a cashier sees when looking a customer up
class CashierUserView(UserBase):
    points: int
    verified: bool
    promotions: List[PromotionBrief] = []

    class Config:
        from_attributes = True


class PaginatedUsers(PaginatedResponse[User]):
    pass
