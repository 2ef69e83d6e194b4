import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from .. import models
from ..errors import ErrorKind, ServiceResult
from ..repository import RoomRepository
from .base import BaseService

logger = logging.getLogger(__name__)

ROOM_TYPES = [t.value for t in models.RoomType]
ROOM_STATUSES = [s.value for s in models.RoomStatus]


def validate_room_data(
    room_number: Optional[str],
    room_type: Optional[str],
    price: Optional[float],
    status: Optional[str],
) -> Optional[str]:
    if room_number is None or not room_number.strip():
        return "Room number is required"
    if len(room_number.strip()) > 10:
        return "Room number cannot exceed 10 characters"
    if room_type not in ROOM_TYPES:
        return "Invalid room type. Must be one of: " + ", ".join(ROOM_TYPES)
    if price is None or price <= 0:
        return "Price must be greater than zero"
    if status not in ROOM_STATUSES:
        return "Invalid room status. Must be one of: " + ", ".join(ROOM_STATUSES)
    return None


class RoomService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.rooms = RoomRepository(db)

    def create_room(
        self,
        room_number: str,
        room_type: str,
        price: float,
        status: str = models.RoomStatus.AVAILABLE.value,
    ) -> ServiceResult:
        message = validate_room_data(room_number, room_type, price, status)
        if message:
            return ServiceResult.fail(ErrorKind.VALIDATION, message)

        def operation() -> ServiceResult:
            if self.get_room_by_number(room_number.strip()) is not None:
                return ServiceResult.fail(ErrorKind.VALIDATION, "Room number already exists")
            room = self.rooms.add(
                models.Room(
                    room_number=room_number.strip(),
                    type=room_type,
                    price=price,
                    status=status,
                )
            )
            self._commit()
            self.db.refresh(room)
            logger.info("Room %s created (%s, %.2f/night)", room.room_number, room.type, room.price)
            return ServiceResult.ok("Room created successfully", room)

        return self._run(f"create room {room_number}", operation)

    def update_room(self, room_id: int, **changes) -> ServiceResult:
        """Apply ``changes`` (room_number, type, price, status) to a room."""

        def operation() -> ServiceResult:
            room = self.rooms.get_by_id(room_id)
            if room is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "Room not found")

            new_number = changes.get("room_number", room.room_number)
            message = validate_room_data(
                new_number,
                changes.get("type", room.type),
                changes.get("price", room.price),
                changes.get("status", room.status),
            )
            if message:
                return ServiceResult.fail(ErrorKind.VALIDATION, message)

            new_number = new_number.strip()
            if new_number != room.room_number and self.rooms.number_exists(new_number):
                return ServiceResult.fail(ErrorKind.VALIDATION, "Room number already exists")

            changes["room_number"] = new_number
            for field, value in changes.items():
                setattr(room, field, value)
            self._commit()
            self.db.refresh(room)
            logger.info("Room %s updated: %s", room.room_number, ", ".join(sorted(changes)))
            return ServiceResult.ok("Room updated successfully", room)

        return self._run(f"update room {room_id}", operation)

    def update_room_status(self, room_id: int, status: str) -> ServiceResult:
        if isinstance(status, models.RoomStatus):
            status = status.value
        if status not in ROOM_STATUSES:
            return ServiceResult.fail(
                ErrorKind.VALIDATION,
                "Invalid room status. Must be one of: " + ", ".join(ROOM_STATUSES),
            )

        def operation() -> ServiceResult:
            room = self.rooms.get_by_id(room_id)
            if room is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "Room not found")
            previous = room.status
            self.rooms.update_status(room, status)
            self._commit()
            self.db.refresh(room)
            logger.info("Room %s status: %s -> %s", room.room_number, previous, status)
            return ServiceResult.ok("Room status updated", room)

        return self._run(f"update status of room {room_id}", operation)

    def delete_room(self, room_id: int) -> ServiceResult:
        """Delete a room. Rooms referenced by any booking are kept."""

        def operation() -> ServiceResult:
            room = self.rooms.get_by_id(room_id)
            if room is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "Room not found")
            if self.rooms.is_referenced(room):
                return ServiceResult.fail(
                    ErrorKind.VALIDATION, "Room has bookings and cannot be deleted"
                )
            room_number = room.room_number
            self.rooms.delete(room)
            self._commit()
            logger.info("Room %s deleted", room_number)
            return ServiceResult.ok("Room deleted")

        return self._run(f"delete room {room_id}", operation)

    def get_room(self, room_id: int) -> Optional[models.Room]:
        return self.rooms.get_by_id(room_id)

    def get_room_by_number(self, room_number: str) -> Optional[models.Room]:
        return self.rooms.get_by_number(room_number)

    def list_rooms(
        self,
        room_type: Optional[str] = None,
        status: Optional[str] = None,
        only_available: bool = False,
        max_price: Optional[float] = None,
    ) -> List[models.Room]:
        if only_available:
            status = models.RoomStatus.AVAILABLE.value
        return self.rooms.search(room_type=room_type, status=status, max_price=max_price)

    def get_total_room_count(self) -> int:
        return self.rooms.count()

    def get_room_statistics(self) -> Dict[str, int]:
        return self.rooms.statistics()
