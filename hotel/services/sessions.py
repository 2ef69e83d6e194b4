"""
Login sessions and lockout bookkeeping.

A :class:`SessionManager` holds the live sessions of one process. Sessions
expire after a period without activity; any authenticated action refreshes
them. Repeated failed logins for the same username lock further attempts
for a fixed window, whether or not the later credentials are correct.

Time comes from an injectable ``clock`` so expiry can be driven from tests.
"""
import logging
import math
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DbSession

from .. import models
from ..config import settings
from ..errors import ErrorKind, ServiceResult
from ..repository import UserRepository
from ..security import verify_password
from ..validation import validate_username_format
from .users import UserService

logger = logging.getLogger(__name__)


@dataclass
class Session:
    session_id: str
    user_id: int
    username: str
    role: str
    fullname: str
    started_at: datetime
    last_activity: datetime

    def has_role(self, role) -> bool:
        if isinstance(role, models.Role):
            role = role.value
        return role is not None and self.role.lower() == role.lower()

    def has_any_role(self, *roles) -> bool:
        return any(self.has_role(role) for role in roles)

    @property
    def is_admin(self) -> bool:
        return self.has_role(models.Role.ADMIN)

    @property
    def is_staff(self) -> bool:
        """Staff and admins both manage bookings."""
        return self.has_any_role(models.Role.ADMIN, models.Role.STAFF)

    @property
    def is_guest(self) -> bool:
        return self.has_role(models.Role.GUEST)


@dataclass
class LoginAttempts:
    failed: int = 0
    last_failed_at: Optional[datetime] = None
    locked: bool = False


@dataclass
class SessionInfo:
    active: bool
    session_id: Optional[str] = None
    username: Optional[str] = None
    role: Optional[str] = None
    login_time: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    remaining_seconds: int = 0
    total_timeout_seconds: int = 0
    warning: bool = False
    remaining: str = "00:00"


def format_remaining(remaining: timedelta) -> str:
    total = max(0, int(remaining.total_seconds()))
    minutes, seconds = divmod(total, 60)
    return f"{minutes:02d}:{seconds:02d}"


class SessionManager:
    """
    Live sessions and failed-login counters for one process.

    The manager is shared by every request thread, so both maps are only
    touched while holding ``_lock``. Stale entries are purged on each login
    and each resumed request.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        timeout: Optional[timedelta] = None,
        warning: Optional[timedelta] = None,
        max_attempts: Optional[int] = None,
        lockout: Optional[timedelta] = None,
    ):
        self.clock = clock
        self.timeout = timeout or timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES)
        self.warning = warning or timedelta(minutes=settings.SESSION_WARNING_MINUTES)
        self.max_attempts = max_attempts or settings.MAX_LOGIN_ATTEMPTS
        self.lockout = lockout or timedelta(minutes=settings.LOCKOUT_MINUTES)

        self._lock = threading.RLock()
        self._sessions: Dict[str, Session] = {}
        self._attempts: Dict[str, LoginAttempts] = {}

    def _purge(self, now: datetime) -> None:
        """Drop idle sessions and failure counters older than the lockout window."""
        with self._lock:
            for session_id, session in list(self._sessions.items()):
                if now - session.last_activity > self.timeout:
                    self._sessions.pop(session_id, None)
            for key, attempts in list(self._attempts.items()):
                if attempts.last_failed_at is None or attempts.last_failed_at + self.lockout <= now:
                    self._attempts.pop(key, None)

    # ----- lockout -----
    @staticmethod
    def _attempt_key(username: Optional[str]) -> str:
        return (username or "").strip().lower()

    def _lock_expiry(self, attempts: LoginAttempts) -> Optional[datetime]:
        if not attempts.locked or attempts.last_failed_at is None:
            return None
        return attempts.last_failed_at + self.lockout

    def remaining_lockout(self, username: str) -> timedelta:
        with self._lock:
            attempts = self._attempts.get(self._attempt_key(username))
            if attempts is None:
                return timedelta(0)
            expiry = self._lock_expiry(attempts)
        if expiry is None:
            return timedelta(0)
        return max(timedelta(0), expiry - self.clock())

    def is_locked(self, username: str) -> bool:
        return self.remaining_lockout(username) > timedelta(0)

    def _record_failure(self, key: str) -> int:
        """Count a failed attempt; returns the failure count after it."""
        with self._lock:
            attempts = self._attempts.setdefault(key, LoginAttempts())
            attempts.failed += 1
            attempts.last_failed_at = self.clock()
            if attempts.failed >= self.max_attempts:
                attempts.locked = True
                logger.warning("Login locked for '%s' after %d failed attempts", key, attempts.failed)
            return attempts.failed

    def _reset_failures(self, key: str) -> None:
        with self._lock:
            self._attempts.pop(key, None)

    # ----- authentication -----
    def authenticate_user(self, db: DbSession, username: str, password: str) -> ServiceResult:
        """
        Check credentials and open a session.

        Returns a successful result carrying the new :class:`Session`, or a
        failure of kind AccountLocked, Validation, Authentication or
        Database. Every failure except a lockout rejection counts towards
        the lockout.
        """
        logger.info("Authentication attempt for user: %s", username)
        key = self._attempt_key(username)
        self._purge(self.clock())

        remaining = self.remaining_lockout(username)
        if remaining > timedelta(0):
            minutes = max(1, math.ceil(remaining.total_seconds() / 60))
            logger.warning("Authentication blocked - login locked for user: %s", username)
            return ServiceResult.fail(
                ErrorKind.ACCOUNT_LOCKED,
                "Account locked due to multiple failed attempts. "
                f"Try again in {minutes} minute(s).",
            )

        message = validate_username_format(username)
        if message:
            self._record_failure(key)
            logger.warning("Authentication failed - invalid username format for: %s", username)
            return ServiceResult.fail(ErrorKind.VALIDATION, message)

        if password is None or not password.strip():
            self._record_failure(key)
            logger.warning("Authentication failed - empty password for user: %s", username)
            return ServiceResult.fail(ErrorKind.VALIDATION, "Password cannot be empty")

        try:
            user = UserRepository(db).get_by_username(username.strip())
        except SQLAlchemyError:
            db.rollback()
            self._record_failure(key)
            logger.exception("Authentication error for user: %s", username)
            return ServiceResult.fail(
                ErrorKind.DATABASE, "Authentication service error. Please try again later."
            )

        if user is None or not verify_password(password, user.hashed_password):
            failed = self._record_failure(key)
            logger.warning("Authentication failed - invalid credentials for user: %s", username)
            message = "Invalid username or password"
            left = self.max_attempts - failed
            if left <= 0:
                message += ". Account locked due to multiple failed attempts."
            elif left == 1:
                message += ". Account will be locked after 1 more failed attempt."
            return ServiceResult.fail(ErrorKind.AUTHENTICATION, message)

        self._reset_failures(key)
        session = self._open_session(user)
        logger.info("Authentication successful for user: %s with role: %s", user.username, user.role)
        return ServiceResult.ok("Login successful", session)

    def _open_session(self, user: models.User) -> Session:
        now = self.clock()
        session = Session(
            session_id=secrets.token_urlsafe(24),
            user_id=user.id,
            username=user.username,
            role=user.role,
            fullname=user.fullname,
            started_at=now,
            last_activity=now,
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info("Session initialized for user: %s (session %s)", user.username, session.session_id)
        return session

    def logout(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        logger.info("User logged out: %s (session %s)", session.username, session_id)
        return True

    # ----- idle timeout -----
    def _expired(self, session: Session) -> bool:
        return self.clock() - session.last_activity > self.timeout

    def get_session(self, session_id: Optional[str]) -> Optional[Session]:
        """The live session for ``session_id``, or None. Expired sessions are dropped."""
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if self._expired(session):
                self._sessions.pop(session_id, None)
                logger.info("Session expired for user: %s", session.username)
                return None
            return session

    def resume(self, session_id: Optional[str]) -> ServiceResult:
        """
        Look up a session for an incoming action and mark it active.

        Fails with SessionExpired when the session timed out, was logged
        out, or never existed.
        """
        with self._lock:
            known = session_id in self._sessions if session_id else False
            session = self.get_session(session_id)
            now = self.clock()
            if session is not None:
                session.last_activity = now
            self._purge(now)

        if session is None:
            if known:
                return ServiceResult.fail(
                    ErrorKind.SESSION_EXPIRED, "Session expired. Please log in again."
                )
            return ServiceResult.fail(ErrorKind.SESSION_EXPIRED, "Not logged in")
        return ServiceResult.ok("Session active", session)

    def is_logged_in(self, session_id: Optional[str]) -> bool:
        return self.get_session(session_id) is not None

    def refresh_session(self, session_id: Optional[str]) -> bool:
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                return False
            session.last_activity = self.clock()
        logger.debug("Session refreshed for user: %s", session.username)
        return True

    def remaining_time(self, session_id: Optional[str]) -> timedelta:
        session = self.get_session(session_id)
        if session is None:
            return timedelta(0)
        return max(timedelta(0), self.timeout - (self.clock() - session.last_activity))

    def should_warn(self, session_id: Optional[str]) -> bool:
        remaining = self.remaining_time(session_id)
        return timedelta(0) < remaining <= self.warning

    def session_info(self, session_id: Optional[str]) -> SessionInfo:
        session = self.get_session(session_id)
        if session is None:
            return SessionInfo(active=False)
        remaining = self.remaining_time(session_id)
        return SessionInfo(
            active=True,
            session_id=session.session_id,
            username=session.username,
            role=session.role,
            login_time=session.started_at,
            last_activity=session.last_activity,
            remaining_seconds=int(remaining.total_seconds()),
            total_timeout_seconds=int(self.timeout.total_seconds()),
            warning=self.should_warn(session_id),
            remaining=format_remaining(remaining),
        )

    def active_session_count(self) -> int:
        with self._lock:
            self._purge(self.clock())
            return len(self._sessions)

    # ----- role checks -----
    def has_role(self, session_id: Optional[str], role) -> bool:
        session = self.get_session(session_id)
        return session is not None and session.has_role(role)

    def has_any_role(self, session_id: Optional[str], *roles) -> bool:
        session = self.get_session(session_id)
        return session is not None and session.has_any_role(*roles)

    def is_admin(self, session_id: Optional[str]) -> bool:
        return self.has_role(session_id, models.Role.ADMIN)

    def is_staff(self, session_id: Optional[str]) -> bool:
        return self.has_any_role(session_id, models.Role.ADMIN, models.Role.STAFF)

    def is_guest(self, session_id: Optional[str]) -> bool:
        return self.has_role(session_id, models.Role.GUEST)

    # ----- account actions tied to a session -----
    def change_password(
        self,
        db: DbSession,
        session_id: str,
        current_password: str,
        new_password: str,
    ) -> ServiceResult:
        session = self.get_session(session_id)
        if session is None:
            return ServiceResult.fail(ErrorKind.SESSION_EXPIRED, "No user is currently logged in")

        try:
            user = UserRepository(db).get_by_id(session.user_id)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Error verifying current password for user: %s", session.username)
            return ServiceResult.database_error()

        if user is None or not verify_password(current_password or "", user.hashed_password):
            return ServiceResult.fail(ErrorKind.AUTHENTICATION, "Current password is incorrect")
        if current_password == new_password:
            return ServiceResult.fail(
                ErrorKind.VALIDATION, "New password must be different from current password"
            )
        return UserService(db).set_password(user.username, new_password)

    def create_user_account(
        self,
        db: DbSession,
        session_id: str,
        username: str,
        password: str,
        fullname: str,
        role: str,
    ) -> ServiceResult:
        """Create an account on behalf of the logged-in administrator."""
        session = self.get_session(session_id)
        if session is None:
            return ServiceResult.fail(ErrorKind.SESSION_EXPIRED, "No user is currently logged in")
        if not session.is_admin:
            return ServiceResult.fail(
                ErrorKind.VALIDATION, "Only administrators can create user accounts"
            )
        result = UserService(db).create_user(username, password, role, fullname)
        if result.success:
            logger.info("Account %s created by admin: %s", username, session.username)
        return result
