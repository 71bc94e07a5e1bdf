# app/dependencies.py

import logging
from typing import Callable, Iterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from jose import JWTError, jwt

from app.core.config import settings
from app.core.roles import Role, check_role
from app.db.session import SessionLocal
from app.models.user import User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# --- Database session ---

def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# --- Authentication and authorization ---

def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolves the caller from a bearer token whose `sub` claim is the user id.
    Any problem with the token or the user it names is a 401.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = payload.get("sub")
        if user_id is None:
            logger.warning("Token payload is missing 'sub' (user_id).")
            raise credentials_exception
        user_id = int(user_id)
    except (JWTError, ValueError) as e:
        logger.warning(f"Rejected token: {e}")
        raise credentials_exception

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        logger.warning(f"User with ID {user_id} from token not found in DB.")
        raise credentials_exception

    request.state.user = user
    logger.debug(f"Authenticated user {user.utorid} (ID: {user.id}, role: {user.role})")
    return user


def require_role(minimum_role: Role) -> Callable[..., User]:
    """Dependency factory: the caller must hold at least `minimum_role`."""
    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if not check_role(current_user.role, minimum_role):
            logger.warning(
                f"Permission denied for {current_user.utorid}: role '{current_user.role}' "
                f"is below '{minimum_role.value}'."
            )
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user
    return dependency
