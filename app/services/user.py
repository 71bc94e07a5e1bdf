# app/services/user.py
import logging
from datetime import date, datetime
from typing import List

from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.roles import Role, can_assign_role, ensure_role
from app.crud import promotion as crud_promotion
from app.crud import user as crud_user
from app.db.session import atomic
from app.models.promotion import Promotion
from app.models.user import User
from app.schemas.pagination import total_pages
from app.schemas.user import PaginatedUsers, User as UserSchema
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> User:
    user = crud_user.get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user

def get_user_by_utorid(db: Session, utorid: str) -> User:
    user = crud_user.get_user_by_utorid(db, utorid)
    if not user:
        raise NotFoundError("User not found")
    return user

def get_available_promotions(db: Session, user_id: int, now: datetime | None = None) -> List[Promotion]:
    """One-time promotions the user can still apply to a purchase."""
    return crud_promotion.get_available_one_time_promotions(db, user_id, now or utcnow())


def create_user(db: Session, actor: User, utorid: str, name: str, email: str) -> User:
    """Registers a new regular, unverified user with an empty balance."""
    ensure_role(actor, Role.CASHIER)

    if crud_user.get_user_by_email(db, email):
        raise ConflictError("User with this email already exists")
    if crud_user.get_user_by_utorid(db, utorid):
        raise ConflictError("User with this utorid already exists")

    with atomic(db):
        user = crud_user.create_user(db, utorid=utorid, name=name, email=email)
        db.flush()

    logger.info(f"User {user.utorid} (ID: {user.id}) registered by {actor.utorid}.")
    return user


def update_user(
    db: Session,
    actor: User,
    user_id: int,
    email: str | None = None,
    verified: bool | None = None,
    suspicious: bool | None = None,
    role: Role | str | None = None,
) -> dict:
    """
    Manager-side partial update. Returns only the fields that were changed,
    together with the user's identity.
    """
    ensure_role(actor, Role.MANAGER)
    target = get_user(db, user_id)
    requested = {"email": email, "verified": verified, "suspicious": suspicious, "role": role}
    changes = {}

    if email is not None:
        if crud_user.get_user_by_email(db, email, exclude_user_id=target.id):
            raise ValidationError("Email already in use")
        changes["email"] = email

    if verified is not None:
        if verified is not True:
            raise ValidationError("verified can only be set to true")
        changes["verified"] = True

    if suspicious is not None:
        changes["suspicious"] = suspicious

    if role is not None:
        new_role = Role(role)
        if not can_assign_role(actor.role, new_role):
            raise ForbiddenError("Insufficient permissions")
        if new_role == Role.CASHIER:
            will_be_suspicious = suspicious if suspicious is not None else target.suspicious
            if will_be_suspicious:
                raise ValidationError("Cannot promote suspicious user to cashier")
            changes["suspicious"] = False
        changes["role"] = new_role.value

    if not changes:
        raise ValidationError("No fields to update")

    with atomic(db):
        for field, value in changes.items():
            setattr(target, field, value)

    logger.info(f"User {target.utorid} updated by {actor.utorid}: {changes}")
    response = {"id": target.id, "utorid": target.utorid, "name": target.name}
    # Echo the requested fields; a cashier promotion also reports its cleared flag
    for field, value in requested.items():
        if value is not None:
            response[field] = changes[field]
    return response


def update_profile(
    db: Session, user: User, name: str | None = None, email: str | None = None, birthday: date | None = None
) -> User:
    """Self-service update of the caller's own name, email and birthday."""
    changes = {}
    if name is not None:
        changes["name"] = name
    if email is not None:
        if crud_user.get_user_by_email(db, email, exclude_user_id=user.id):
            raise ValidationError("Email already in use")
        changes["email"] = email
    if birthday is not None:
        changes["birthday"] = birthday
    if not changes:
        raise ValidationError("No fields to update")

    with atomic(db):
        for field, value in changes.items():
            setattr(user, field, value)
    return user


def get_paginated_users(db: Session, page: int, size: int, **filters) -> PaginatedUsers:
    """Paginated user list for managers."""
    if page < 1 or size < 1:
        raise ValidationError("Invalid pagination parameters")
    filters = {k: v for k, v in filters.items() if v is not None}
    skip = (page - 1) * size

    users = crud_user.get_users(db, skip=skip, limit=size, **filters)
    total_users = crud_user.count_users_with_filters(db, **filters)
    return PaginatedUsers(
        total_items=total_users,
        total_pages=total_pages(total_users, size),
        current_page=page,
        size=size,
        items=[UserSchema.model_validate(u) for u in users],
    )
