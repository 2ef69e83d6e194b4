"""
Account management: creation, self-registration, password and role changes.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import models
from ..errors import ErrorKind, ServiceResult
from ..repository import BookingRepository, UserRepository
from ..security import get_password_hash
from ..validation import (
    validate_fullname,
    validate_password,
    validate_role,
    validate_username_format,
)
from .base import BaseService

logger = logging.getLogger(__name__)


class UserService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.users = UserRepository(db)
        self.bookings = BookingRepository(db)

    def validate_user_data(
        self,
        username: Optional[str],
        password: Optional[str],
        role: Optional[str],
        fullname: Optional[str],
    ) -> Optional[str]:
        return (
            validate_username_format(username)
            or validate_password(password)
            or validate_role(role)
            or validate_fullname(fullname)
        )

    def create_user(self, username: str, password: str, role: str, fullname: str) -> ServiceResult:
        """
        Create an account with any role.

        The username must be well formed and unused, and the password must
        satisfy the password policy. The stored password is hashed.
        """
        if isinstance(role, models.Role):
            role = role.value

        message = self.validate_user_data(username, password, role, fullname)
        if message:
            return ServiceResult.fail(ErrorKind.VALIDATION, message)

        def operation() -> ServiceResult:
            if not self.is_username_available(username):
                return ServiceResult.fail(ErrorKind.VALIDATION, "Username already exists")

            user = self.users.add(
                models.User(
                    username=username.strip(),
                    hashed_password=get_password_hash(password),
                    role=role,
                    fullname=fullname.strip(),
                )
            )
            self._commit()
            self.db.refresh(user)
            logger.info("User account created: %s (role: %s)", user.username, user.role)
            return ServiceResult.ok("User created successfully", user)

        return self._run(f"create user {username}", operation)

    def register_guest(self, username: str, password: str, fullname: str) -> ServiceResult:
        """Self-registration always yields a guest account."""
        return self.create_user(username, password, models.Role.GUEST.value, fullname)

    def is_username_available(self, username: str) -> bool:
        if not username or not username.strip():
            return False
        return not self.users.username_exists(username.strip())

    def get_user(self, user_id: int) -> Optional[models.User]:
        return self.users.get_by_id(user_id)

    def get_user_by_username(self, username: str) -> Optional[models.User]:
        if not username or not username.strip():
            return None
        return self.users.get_by_username(username.strip())

    def get_all_users(self) -> List[models.User]:
        return self.users.get_all()

    def get_users_by_role(self, role: str) -> List[models.User]:
        if not role or not role.strip():
            return []
        return self.users.get_by_role(role.strip())

    def get_total_user_count(self) -> int:
        return self.users.count()

    def set_password(self, username: str, new_password: str) -> ServiceResult:
        """Replace a user's password. The policy applies; the old password is not checked."""
        message = validate_password(new_password)
        if message:
            return ServiceResult.fail(ErrorKind.VALIDATION, message)

        def operation() -> ServiceResult:
            user = self.users.get_by_username(username)
            if user is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found")
            user.hashed_password = get_password_hash(new_password)
            self._commit()
            logger.info("Password changed for user: %s", username)
            return ServiceResult.ok("Password changed successfully", user)

        return self._run(f"change password of {username}", operation)

    def change_role(self, username: str, new_role: str) -> ServiceResult:
        if isinstance(new_role, models.Role):
            new_role = new_role.value
        message = validate_role(new_role)
        if message:
            return ServiceResult.fail(ErrorKind.VALIDATION, message)

        def operation() -> ServiceResult:
            user = self.users.get_by_username(username)
            if user is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found")
            previous = user.role
            user.role = new_role
            self._commit()
            self.db.refresh(user)
            logger.info("Role of %s changed from %s to %s", username, previous, new_role)
            return ServiceResult.ok("Role changed successfully", user)

        return self._run(f"change role of {username}", operation)

    def delete_user(self, username: str) -> ServiceResult:
        """Delete an account. Accounts that own bookings are kept."""

        def operation() -> ServiceResult:
            user = self.users.get_by_username(username)
            if user is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "User not found")
            if self.bookings.guest_has_bookings(user.id):
                return ServiceResult.fail(
                    ErrorKind.VALIDATION, "User has bookings and cannot be deleted"
                )
            self.users.delete(user)
            self._commit()
            logger.warning("User account deleted: %s", username)
            return ServiceResult.ok("User deleted")

        return self._run(f"delete user {username}", operation)
