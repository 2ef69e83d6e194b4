"""
Tests for login sessions: authentication, lockout, idle timeout and role checks.
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from hotel import models
from hotel.errors import ErrorKind
from hotel.security import verify_password
from hotel.services.sessions import SessionManager, format_remaining


GUEST_PASSWORD = "Str0ng!Key3"
ADMIN_PASSWORD = "Str0ng!Key1"


def _login(manager, db_session, username="johndoe", password=GUEST_PASSWORD):
    result = manager.authenticate_user(db_session, username, password)
    assert result.success, result.message
    return result.value


class TestAuthentication:
    def test_login_opens_session(self, db_session, session_manager, guest_user):
        result = session_manager.authenticate_user(db_session, "johndoe", GUEST_PASSWORD)
        assert result.success
        assert result.message == "Login successful"
        session = result.value
        assert session.username == "johndoe"
        assert session.role == "guest"
        assert session.fullname == "John Doe"
        assert session_manager.is_logged_in(session.session_id)
        assert session_manager.active_session_count() == 1

    def test_wrong_password(self, db_session, session_manager, guest_user):
        result = session_manager.authenticate_user(db_session, "johndoe", "Wrong!Pass9")
        assert result.kind == ErrorKind.AUTHENTICATION
        assert result.message == "Invalid username or password"

    def test_unknown_user_same_message(self, db_session, session_manager, guest_user):
        result = session_manager.authenticate_user(db_session, "ghost", "Wrong!Pass9")
        assert result.kind == ErrorKind.AUTHENTICATION
        assert result.message == "Invalid username or password"

    def test_malformed_username(self, db_session, session_manager):
        result = session_manager.authenticate_user(db_session, "ab", "whatever")
        assert result.kind == ErrorKind.VALIDATION
        assert result.message == "Username must be at least 3 characters long"

    def test_empty_password(self, db_session, session_manager, guest_user):
        result = session_manager.authenticate_user(db_session, "johndoe", "   ")
        assert result.kind == ErrorKind.VALIDATION
        assert result.message == "Password cannot be empty"

    def test_sessions_are_independent(self, db_session, session_manager, guest_user, admin_user):
        guest = _login(session_manager, db_session)
        admin = _login(session_manager, db_session, "admin", ADMIN_PASSWORD)
        assert guest.session_id != admin.session_id
        assert session_manager.logout(guest.session_id)
        assert not session_manager.is_logged_in(guest.session_id)
        assert session_manager.is_logged_in(admin.session_id)

    def test_logout_unknown_session(self, session_manager):
        assert session_manager.logout("missing") is False


class TestLockout:
    """Three failures lock the username for fifteen minutes."""

    def test_warning_before_lock(self, db_session, session_manager, guest_user):
        session_manager.authenticate_user(db_session, "johndoe", "Wrong!Pass1")
        result = session_manager.authenticate_user(db_session, "johndoe", "Wrong!Pass2")
        assert result.message.endswith("Account will be locked after 1 more failed attempt.")

    def test_third_failure_locks(self, db_session, session_manager, guest_user):
        for _ in range(2):
            session_manager.authenticate_user(db_session, "johndoe", "Wrong!Pass1")
        result = session_manager.authenticate_user(db_session, "johndoe", "Wrong!Pass1")
        assert result.kind == ErrorKind.AUTHENTICATION
        assert result.message.endswith("Account locked due to multiple failed attempts.")
        assert session_manager.is_locked("johndoe")

    def test_correct_password_refused_while_locked(self, db_session, session_manager, guest_user):
        for _ in range(3):
            session_manager.authenticate_user(db_session, "johndoe", "Wrong!Pass1")

        result = session_manager.authenticate_user(db_session, "johndoe", GUEST_PASSWORD)
        assert result.kind == ErrorKind.ACCOUNT_LOCKED
        assert result.message == (
            "Account locked due to multiple failed attempts. Try again in 15 minute(s)."
        )

    def test_lock_expires(self, db_session, clock, session_manager, guest_user):
        for _ in range(3):
            session_manager.authenticate_user(db_session, "johndoe", "Wrong!Pass1")

        clock.advance(minutes=14)
        locked = session_manager.authenticate_user(db_session, "johndoe", GUEST_PASSWORD)
        assert locked.kind == ErrorKind.ACCOUNT_LOCKED
        assert "1 minute(s)" in locked.message

        clock.advance(minutes=1, seconds=1)
        assert session_manager.authenticate_user(db_session, "johndoe", GUEST_PASSWORD).success

    def test_success_resets_counter(self, db_session, session_manager, guest_user):
        for _ in range(2):
            session_manager.authenticate_user(db_session, "johndoe", "Wrong!Pass1")
        _login(session_manager, db_session)
        for _ in range(2):
            session_manager.authenticate_user(db_session, "johndoe", "Wrong!Pass1")
        assert not session_manager.is_locked("johndoe")

    def test_lock_is_per_username(self, db_session, session_manager, guest_user, admin_user):
        for _ in range(3):
            session_manager.authenticate_user(db_session, "johndoe", "Wrong!Pass1")
        assert session_manager.is_locked("JohnDoe")
        assert not session_manager.is_locked("admin")
        assert session_manager.authenticate_user(db_session, "admin", ADMIN_PASSWORD).success

    def test_custom_limits(self, db_session, clock, guest_user):
        manager = SessionManager(clock=clock, max_attempts=1, lockout=timedelta(minutes=2))
        manager.authenticate_user(db_session, "johndoe", "Wrong!Pass1")
        assert manager.remaining_lockout("johndoe") == timedelta(minutes=2)


class TestIdleTimeout:
    def test_expires_after_thirty_idle_minutes(self, db_session, clock, session_manager, guest_user):
        session = _login(session_manager, db_session)
        clock.advance(minutes=30)
        assert session_manager.is_logged_in(session.session_id)
        clock.advance(seconds=1)
        assert not session_manager.is_logged_in(session.session_id)
        assert session_manager.active_session_count() == 0

    def test_resume_refreshes_activity(self, db_session, clock, session_manager, guest_user):
        session = _login(session_manager, db_session)
        clock.advance(minutes=20)
        assert session_manager.resume(session.session_id).success
        clock.advance(minutes=20)
        assert session_manager.is_logged_in(session.session_id)

    def test_resume_expired(self, db_session, clock, session_manager, guest_user):
        session = _login(session_manager, db_session)
        clock.advance(minutes=31)
        result = session_manager.resume(session.session_id)
        assert result.kind == ErrorKind.SESSION_EXPIRED
        assert result.message == "Session expired. Please log in again."

    def test_resume_unknown(self, session_manager):
        result = session_manager.resume("never-issued")
        assert result.kind == ErrorKind.SESSION_EXPIRED
        assert result.message == "Not logged in"

    def test_warning_window(self, db_session, clock, session_manager, guest_user):
        session = _login(session_manager, db_session)
        clock.advance(minutes=24)
        assert not session_manager.should_warn(session.session_id)
        clock.advance(minutes=1)
        assert session_manager.should_warn(session.session_id)
        assert session_manager.session_info(session.session_id).remaining == "05:00"

    def test_refresh_session(self, db_session, clock, session_manager, guest_user):
        session = _login(session_manager, db_session)
        clock.advance(minutes=28)
        assert session_manager.refresh_session(session.session_id)
        assert session_manager.remaining_time(session.session_id) == timedelta(minutes=30)
        assert session_manager.refresh_session("missing") is False

    def test_session_info(self, db_session, clock, session_manager, guest_user):
        session = _login(session_manager, db_session)
        clock.advance(minutes=10, seconds=15)
        info = session_manager.session_info(session.session_id)
        assert info.active
        assert info.username == "johndoe"
        assert info.remaining_seconds == 19 * 60 + 45
        assert info.total_timeout_seconds == 30 * 60
        assert info.remaining == "19:45"
        assert info.warning is False

    def test_session_info_inactive(self, session_manager):
        info = session_manager.session_info(None)
        assert info.active is False
        assert info.remaining == "00:00"

    def test_format_remaining(self):
        assert format_remaining(timedelta(minutes=3, seconds=7)) == "03:07"
        assert format_remaining(timedelta(seconds=-5)) == "00:00"


class TestRoleChecks:
    def test_guest_roles(self, db_session, session_manager, guest_user):
        sid = _login(session_manager, db_session).session_id
        assert session_manager.is_guest(sid)
        assert not session_manager.is_staff(sid)
        assert not session_manager.is_admin(sid)
        assert session_manager.has_role(sid, "GUEST")

    def test_admin_counts_as_staff(self, db_session, session_manager, admin_user):
        sid = _login(session_manager, db_session, "admin", ADMIN_PASSWORD).session_id
        assert session_manager.is_admin(sid)
        assert session_manager.is_staff(sid)
        assert session_manager.has_any_role(sid, models.Role.STAFF, models.Role.ADMIN)

    def test_no_session_has_no_roles(self, session_manager):
        assert not session_manager.has_role(None, "admin")
        assert not session_manager.is_staff("missing")


class TestAccountActions:
    def test_change_password(self, db_session, session_manager, guest_user):
        sid = _login(session_manager, db_session).session_id
        result = session_manager.change_password(db_session, sid, GUEST_PASSWORD, "N3w!Secret")
        assert result.success
        db_session.refresh(guest_user)
        assert verify_password("N3w!Secret", guest_user.hashed_password)

    def test_change_password_wrong_current(self, db_session, session_manager, guest_user):
        sid = _login(session_manager, db_session).session_id
        result = session_manager.change_password(db_session, sid, "Wrong!Pass1", "N3w!Secret")
        assert result.kind == ErrorKind.AUTHENTICATION
        assert result.message == "Current password is incorrect"

    def test_change_password_must_differ(self, db_session, session_manager, guest_user):
        sid = _login(session_manager, db_session).session_id
        result = session_manager.change_password(db_session, sid, GUEST_PASSWORD, GUEST_PASSWORD)
        assert result.kind == ErrorKind.VALIDATION

    def test_change_password_policy(self, db_session, session_manager, guest_user):
        sid = _login(session_manager, db_session).session_id
        result = session_manager.change_password(db_session, sid, GUEST_PASSWORD, "short")
        assert result.kind == ErrorKind.VALIDATION

    def test_change_password_needs_session(self, db_session, session_manager):
        result = session_manager.change_password(db_session, "missing", "a", "b")
        assert result.kind == ErrorKind.SESSION_EXPIRED

    def test_admin_creates_account(self, db_session, session_manager, admin_user):
        sid = _login(session_manager, db_session, "admin", ADMIN_PASSWORD).session_id
        result = session_manager.create_user_account(
            db_session, sid, "newstaff", "Desk@Shift7", "New Staff", "staff"
        )
        assert result.success
        assert result.value.role == "staff"

    def test_guest_cannot_create_account(self, db_session, session_manager, guest_user):
        sid = _login(session_manager, db_session).session_id
        result = session_manager.create_user_account(
            db_session, sid, "newstaff", "Desk@Shift7", "New Staff", "staff"
        )
        assert not result.success
        assert result.message == "Only administrators can create user accounts"


class TestHousekeeping:
    """Idle sessions and stale failure counters do not pile up."""

    def test_idle_sessions_dropped_on_login(self, db_session, clock, session_manager, guest_user):
        for _ in range(50):
            _login(session_manager, db_session)
        clock.advance(hours=5)

        _login(session_manager, db_session)
        assert len(session_manager._sessions) == 1

    def test_idle_sessions_dropped_on_resume(self, db_session, clock, session_manager, guest_user, admin_user):
        kept = _login(session_manager, db_session)
        _login(session_manager, db_session, "admin", ADMIN_PASSWORD)
        for _ in range(2):
            clock.advance(minutes=20)
            assert session_manager.resume(kept.session_id).success

        assert list(session_manager._sessions) == [kept.session_id]

    def test_stale_failures_dropped(self, db_session, clock, session_manager):
        for i in range(200):
            session_manager.authenticate_user(db_session, f"visitor{i:03d}", "Wrong!Pass1")
        assert len(session_manager._attempts) == 200

        clock.advance(days=1)
        session_manager.resume("anything")
        assert session_manager._attempts == {}

    def test_recent_failures_kept(self, db_session, clock, session_manager, guest_user):
        session_manager.authenticate_user(db_session, "johndoe", "Wrong!Pass1")
        clock.advance(minutes=5)
        session_manager.resume("anything")
        assert session_manager._attempts["johndoe"].failed == 1

    def test_active_session_count_in_summary(self, client, admin_token, guest_token):
        response = client.get(
            "/reports/summary", headers={"Authorization": f"Bearer {admin_token}"}
        )
        assert response.json()["active_sessions"] == 2


class TestConcurrentAccess:
    """One manager serves every request thread."""

    def test_expired_session_looked_up_twice(self, db_session, clock, session_manager, guest_user):
        session = _login(session_manager, db_session)
        clock.advance(minutes=31)
        assert session_manager.get_session(session.session_id) is None
        assert session_manager.get_session(session.session_id) is None

    def test_parallel_resume_of_expired_session(self, db_session, clock, session_manager, guest_user):
        session = _login(session_manager, db_session)
        clock.advance(minutes=31)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: session_manager.resume(session.session_id), range(64)))

        assert all(result.kind == ErrorKind.SESSION_EXPIRED for result in results)
        assert session.session_id not in session_manager._sessions

    def test_parallel_failures_all_counted(self, db_session, session_manager):
        def attempt(_):
            # malformed, so rejected before any database lookup
            return session_manager.authenticate_user(db_session, "no-such-user!", "x")

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(40)))

        rejected = [r for r in results if r.kind == ErrorKind.VALIDATION]
        assert session_manager._attempts["no-such-user!"].failed == len(rejected)
        assert len(rejected) >= session_manager.max_attempts
        assert session_manager.is_locked("no-such-user!")
