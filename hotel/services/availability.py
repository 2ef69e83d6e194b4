"""
Room availability checks.

Stays are half-open date ranges ``[check_in, check_out)``: a guest leaving
on the 12th does not collide with one arriving on the 12th. Only bookings
in an active status (Booked, Checked In) hold a room.
"""
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import models
from ..repository import BookingRepository, RoomRepository


def overlaps(start1, end1, start2, end2) -> bool:
    """
    Check if two time intervals overlap.

    Returns True if the interval [start1, end1) overlaps with [start2, end2).
    """
    return start1 < end2 and start2 < end1


def find_conflicts(
    db: Session,
    room_id: int,
    check_in: date,
    check_out: date,
    exclude_booking_id: int = 0,
) -> List[models.Booking]:
    """Return the active bookings on ``room_id`` that intersect the requested stay."""
    return BookingRepository(db).find_overlapping(room_id, check_in, check_out, exclude_booking_id)


def has_conflict(
    db: Session,
    room_id: int,
    check_in: date,
    check_out: date,
    exclude_booking_id: int = 0,
) -> bool:
    """
    Whether any active booking on the room overlaps ``[check_in, check_out)``.

    ``exclude_booking_id`` (when positive) leaves that booking out of the
    check, so a booking can be re-validated against everything but itself.
    """
    return len(find_conflicts(db, room_id, check_in, check_out, exclude_booking_id)) > 0


def is_reservable(room: models.Room) -> bool:
    return room.status in models.RESERVABLE_ROOM_STATUSES


def available_rooms(
    db: Session,
    check_in: date,
    check_out: date,
    room_type: Optional[str] = None,
) -> List[models.Room]:
    """Rooms that can take a new reservation and are free for the whole stay."""
    rooms = RoomRepository(db).search(room_type=room_type)
    return [
        room
        for room in rooms
        if is_reservable(room) and not has_conflict(db, room.id, check_in, check_out)
    ]
