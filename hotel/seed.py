"""
Sample data for a fresh database: one account per role and a handful of rooms.
"""
import logging

from sqlalchemy.orm import Session

from . import models
from .repository import RoomRepository, UserRepository
from .security import get_password_hash

logger = logging.getLogger(__name__)

SAMPLE_USERS = [
    ("admin", "Welcome@101", models.Role.ADMIN, "Admin User"),
    ("staff", "Welcome@102", models.Role.STAFF, "Staff Member"),
    ("johndoe", "Welcome@103", models.Role.GUEST, "John Doe"),
]

SAMPLE_ROOMS = [
    ("101", models.RoomType.STANDARD, 100.00),
    ("102", models.RoomType.DELUXE, 150.00),
    ("103", models.RoomType.STANDARD, 100.00),
    ("201", models.RoomType.SUITE, 250.00),
    ("202", models.RoomType.DELUXE, 150.00),
]


def seed_sample_data(db: Session) -> int:
    """Insert the sample rows that are missing. Returns how many were added."""
    users = UserRepository(db)
    rooms = RoomRepository(db)
    added = 0

    for username, password, role, fullname in SAMPLE_USERS:
        if users.username_exists(username):
            continue
        users.add(
            models.User(
                username=username,
                hashed_password=get_password_hash(password),
                role=role.value,
                fullname=fullname,
            )
        )
        added += 1

    for room_number, room_type, price in SAMPLE_ROOMS:
        if rooms.number_exists(room_number):
            continue
        rooms.add(models.Room(room_number=room_number, type=room_type.value, price=price))
        added += 1

    db.commit()
    if added:
        logger.info("Seeded %d sample rows", added)
    return added
