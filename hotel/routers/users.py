from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import (
    get_db,
    get_current_session,
    get_current_user,
    get_session_manager,
    require_admin,
)
from ..errors import unwrap
from ..security import create_access_token
from ..services.bookings import BookingLifecycleManager
from ..services.sessions import Session as LoginSession, SessionManager
from ..services.users import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/register", response_model=schemas.UserOut)
def register_user(user_in: schemas.UserRegister, db: Session = Depends(get_db)):
    """
    Register a new guest account.

    Self-registration always creates a ``guest``. The username must be
    3-20 letters, digits or underscores and unused; the password must
    satisfy the password policy.

    Raises
    ------
    ServiceError
        - 400 if the data is invalid or the username already exists.
    """
    return unwrap(UserService(db).register_guest(user_in.username, user_in.password, user_in.fullname))


@router.post("/login", response_model=schemas.Token, tags=["auth"])
def login_for_access_token(
    username: str,
    password: str,
    db: Session = Depends(get_db),
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Authenticate a user, open a session and return its bearer token.

    Three consecutive failures for a username lock it for the lockout
    window; while locked, even correct credentials are refused.

    Raises
    ------
    ServiceError
        - 400 if the username is malformed or the password empty.
        - 401 if the credentials are wrong.
        - 423 if logins for this username are locked.
    """
    session = unwrap(manager.authenticate_user(db, username, password))
    token = create_access_token(
        {"sub": session.username, "role": session.role, "sid": session.session_id}
    )
    return {
        "access_token": token,
        "token_type": "bearer",
        "role": session.role,
        "session_timeout_seconds": int(manager.timeout / timedelta(seconds=1)),
    }


@router.post("/logout", response_model=schemas.MessageOut, tags=["auth"])
def logout(
    session: LoginSession = Depends(get_current_session),
    manager: SessionManager = Depends(get_session_manager),
):
    """End the current session. The token stops working immediately."""
    manager.logout(session.session_id)
    return {"detail": "Logged out"}


@router.get("/me", response_model=schemas.UserOut)
def read_current_user(current_user: models.User = Depends(get_current_user)):
    """
    Get the currently authenticated user.
    """
    return current_user


@router.get("/me/session", response_model=schemas.SessionInfoOut, tags=["auth"])
def read_session_info(
    session: LoginSession = Depends(get_current_session),
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Describe the current session: login time, last activity, time left
    before the idle timeout and whether the timeout warning applies.
    """
    return manager.session_info(session.session_id)


@router.post("/me/session/refresh", response_model=schemas.SessionInfoOut, tags=["auth"])
def refresh_session(
    session: LoginSession = Depends(get_current_session),
    manager: SessionManager = Depends(get_session_manager),
):
    manager.refresh_session(session.session_id)
    return manager.session_info(session.session_id)


@router.post("/me/password", response_model=schemas.MessageOut)
def change_own_password(
    payload: schemas.PasswordChange,
    db: Session = Depends(get_db),
    session: LoginSession = Depends(get_current_session),
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Change the current user's password.

    The current password must be supplied and the new one must differ from
    it and satisfy the password policy.
    """
    result = manager.change_password(
        db, session.session_id, payload.current_password, payload.new_password
    )
    unwrap(result)
    return {"detail": result.message}


@router.get("/", response_model=List[schemas.UserOut])
def list_users(
    role: Optional[models.Role] = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    List all accounts, optionally only those with ``role``. *(Admin-only)*
    """
    service = UserService(db)
    if role is not None:
        return service.get_users_by_role(role.value)
    return service.get_all_users()


@router.post("/", response_model=schemas.UserOut)
def create_user(
    user_in: schemas.UserCreate,
    db: Session = Depends(get_db),
    session: LoginSession = Depends(get_current_session),
    manager: SessionManager = Depends(get_session_manager),
    _: models.User = Depends(require_admin),
):
    """
    Create an account with any role. *(Admin-only)*

    Raises
    ------
    ServiceError
        - 400 if the data is invalid or the username already exists.
    """
    return unwrap(
        manager.create_user_account(
            db,
            session.session_id,
            user_in.username,
            user_in.password,
            user_in.fullname,
            user_in.role.value,
        )
    )


@router.get("/{username}", response_model=schemas.UserOut)
def get_user(
    username: str,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Get a user by username. *(Admin-only)*

    Raises
    ------
    HTTPException
        - 404 if the user does not exist.
    """
    user = UserService(db).get_user_by_username(username)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.patch("/{username}/role", response_model=schemas.UserOut)
def change_user_role(
    username: str,
    payload: schemas.UserRoleUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Change a user's role. *(Admin-only)*
    """
    return unwrap(UserService(db).change_role(username, payload.role.value))


@router.post("/{username}/reset-password", response_model=schemas.MessageOut)
def reset_user_password(
    username: str,
    payload: schemas.UserPasswordReset,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Reset a user's password. *(Admin-only)*

    The new password must satisfy the password policy.

    Raises
    ------
    ServiceError
        - 400 if the password is rejected by the policy.
        - 404 if the user does not exist.
    """
    unwrap(UserService(db).set_password(username, payload.new_password))
    return {"detail": "Password reset successfully"}


@router.delete("/{username}", response_model=schemas.MessageOut)
def delete_user(
    username: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    """
    Delete a user from the system. *(Admin-only)*

    Accounts that own bookings cannot be deleted, and an administrator
    cannot delete their own account.
    """
    if current_user.username == username:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    unwrap(UserService(db).delete_user(username))
    return {"detail": "User deleted"}


@router.get("/{username}/bookings", response_model=List[schemas.BookingOut])
def get_user_booking_history(
    username: str,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    View any user's full booking history. *(Admin-only)*

    Raises
    ------
    HTTPException
        - 404 if the user does not exist.
    """
    if UserService(db).get_user_by_username(username) is None:
        raise HTTPException(status_code=404, detail="User not found")
    return BookingLifecycleManager(db).get_guest_bookings(username)
