"""
Input rules for accounts.

Each validator returns an error message, or ``None`` when the value is
acceptable.
"""
import re
from typing import Optional

from .models import Role

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,20}$")

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
PASSWORD_SPECIAL_CHARACTERS = "@$!%*?&"
WEAK_PASSWORD_FRAGMENTS = ("password", "123456", "admin", "guest", "hotel")


def validate_username_format(username: Optional[str]) -> Optional[str]:
    if username is None or not username.strip():
        return "Username cannot be empty"
    username = username.strip()
    if len(username) < 3:
        return "Username must be at least 3 characters long"
    if len(username) > 20:
        return "Username cannot exceed 20 characters"
    if not USERNAME_PATTERN.match(username):
        return "Username can only contain letters, numbers, and underscores"
    return None


def validate_password(password: Optional[str]) -> Optional[str]:
    """Password policy for new and changed passwords. Not applied at login."""
    if not password:
        return "Password cannot be empty"
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
    if len(password) > PASSWORD_MAX_LENGTH:
        return f"Password cannot exceed {PASSWORD_MAX_LENGTH} characters"
    if not any(c.islower() for c in password):
        return "Password must contain at least one lowercase letter"
    if not any(c.isupper() for c in password):
        return "Password must contain at least one uppercase letter"
    if not any(c.isdigit() for c in password):
        return "Password must contain at least one digit"
    if not any(c in PASSWORD_SPECIAL_CHARACTERS for c in password):
        return f"Password must contain at least one special character ({PASSWORD_SPECIAL_CHARACTERS})"

    lowered = password.lower()
    if any(fragment in lowered for fragment in WEAK_PASSWORD_FRAGMENTS):
        return "Password contains common weak patterns"
    return None


def validate_role(role: Optional[str]) -> Optional[str]:
    if role not in [r.value for r in Role]:
        return "Invalid role. Must be admin, staff, or guest"
    return None


def validate_fullname(fullname: Optional[str]) -> Optional[str]:
    if fullname is None or not fullname.strip():
        return "Full name is required"
    if len(fullname.strip()) > 100:
        return "Full name cannot exceed 100 characters"
    return None
