# app/crud/user.py
from sqlalchemy.orm import Session
from sqlalchemy import func, or_

from app.models.user import User


def get_user_by_id(db: Session, user_id: int) -> User | None:
    """Gets a user by primary key."""
    return db.query(User).filter(User.id == user_id).first()

def get_user_by_utorid(db: Session, utorid: str) -> User | None:
    return db.query(User).filter(User.utorid == utorid).first()

def get_user_by_email(db: Session, email: str, exclude_user_id: int | None = None) -> User | None:
    query = db.query(User).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first()

def create_user(db: Session, utorid: str, name: str, email: str) -> User:
    """
    Creates a user object and adds it to the session.
    Requires an outer db.commit().
    """
    db_user = User(
        utorid=utorid,
        name=name,
        email=email,
        points=0,
        verified=False,
        suspicious=False,
    )
    db.add(db_user)
    return db_user

# --- Balance mutations ---

def credit_points(db: Session, user_id: int, amount: int) -> None:
    """Adds points as a single relative UPDATE so concurrent credits never overwrite each other."""
    db.query(User).filter(User.id == user_id).update(
        {User.points: User.points + amount}, synchronize_session=False
    )

def debit_points(db: Session, user_id: int, amount: int) -> bool:
    """
    Removes points only if the balance covers them.
    Returns False when the row was not updated (balance too low).
    """
    updated = db.query(User).filter(
        User.id == user_id,
        User.points >= amount,
    ).update({User.points: User.points - amount}, synchronize_session=False)
    return updated == 1

# --- Listing ---

def _apply_user_filters(query, name: str | None = None, role: str | None = None,
                        verified: bool | None = None, activated: bool | None = None):
    if name:
        search_query = f"%{name}%"
        query = query.filter(or_(User.utorid.ilike(search_query), User.name.ilike(search_query)))
    if role:
        query = query.filter(User.role == role)
    if verified is not None:
        query = query.filter(User.verified == verified)
    if activated is not None:
        if activated:
            query = query.filter(User.last_login.isnot(None))
        else:
            query = query.filter(User.last_login.is_(None))
    return query

def get_users(db: Session, skip: int = 0, limit: int = 10, **filters) -> list[User]:
    """Paginated list of users with filters, oldest first."""
    query = _apply_user_filters(db.query(User), **filters)
    return query.order_by(User.id.asc()).offset(skip).limit(limit).all()

def count_users_with_filters(db: Session, **filters) -> int:
    query = _apply_user_filters(db.query(func.count(User.id)), **filters)
    return query.scalar()
