from typing import Generator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from . import models
from .database import SessionLocal
from .errors import ServiceError
from .repository import UserRepository
from .security import decode_access_token
from .services import sessions


# ----- DB -----
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ----- Sessions -----
# Match actual login endpoint: /users/login
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="users/login")


def get_session_manager(request: Request) -> sessions.SessionManager:
    return request.app.state.sessions


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_session(
    token: str = Depends(oauth2_scheme),
    manager: sessions.SessionManager = Depends(get_session_manager),
) -> sessions.Session:
    """
    Resolve the bearer token to a live session and record the activity.

    The token must be valid and name a session the manager still holds;
    a timed-out or logged-out session is rejected with 401.
    """
    payload = decode_access_token(token)
    if payload is None or payload.get("sid") is None:
        raise _credentials_exception()

    result = manager.resume(payload["sid"])
    if not result.success:
        raise ServiceError(result)
    return result.value


async def get_current_user(
    session: sessions.Session = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> models.User:
    user = UserRepository(db).get_by_id(session.user_id)
    if user is None:
        raise _credentials_exception()
    return user


def require_roles(*allowed_roles: models.Role):
    """
    Usage: current_user: models.User = Depends(require_roles(Role.ADMIN, Role.STAFF))
    """
    allowed = {role.value if isinstance(role, models.Role) else role for role in allowed_roles}

    async def role_checker(current_user: models.User = Depends(get_current_user)) -> models.User:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
        return current_user

    return role_checker


# Admin manages the hotel; staff and admin both manage bookings
require_admin = require_roles(models.Role.ADMIN)
require_staff = require_roles(models.Role.ADMIN, models.Role.STAFF)
