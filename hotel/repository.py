"""
Persistence gateway.

Each repository wraps one table and runs parameterized ORM queries against
the session it is given. Repositories never commit: the calling service
owns the transaction. No business rules live here.
"""
from collections import OrderedDict
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from . import models


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, user: models.User) -> models.User:
        self.db.add(user)
        self.db.flush()
        return user

    def get_by_id(self, user_id: int) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.id == user_id).first()

    def get_by_username(self, username: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.username == username).first()

    def get_all(self) -> List[models.User]:
        return self.db.query(models.User).order_by(models.User.id).all()

    def get_by_role(self, role: str) -> List[models.User]:
        return (
            self.db.query(models.User)
            .filter(models.User.role == role)
            .order_by(models.User.fullname)
            .all()
        )

    def username_exists(self, username: str) -> bool:
        return self.db.query(models.User.id).filter(models.User.username == username).first() is not None

    def count(self) -> int:
        return self.db.query(func.count(models.User.id)).scalar() or 0

    def delete(self, user: models.User) -> None:
        self.db.delete(user)


class RoomRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, room: models.Room) -> models.Room:
        self.db.add(room)
        self.db.flush()
        return room

    def get_by_id(self, room_id: int) -> Optional[models.Room]:
        return self.db.query(models.Room).filter(models.Room.id == room_id).first()

    def get_by_number(self, room_number: str) -> Optional[models.Room]:
        return self.db.query(models.Room).filter(models.Room.room_number == room_number).first()

    def number_exists(self, room_number: str) -> bool:
        return self.get_by_number(room_number) is not None

    def search(
        self,
        room_type: Optional[str] = None,
        status: Optional[str] = None,
        max_price: Optional[float] = None,
    ) -> List[models.Room]:
        query = self.db.query(models.Room)
        if room_type is not None:
            query = query.filter(models.Room.type == room_type)
        if status is not None:
            query = query.filter(models.Room.status == status)
        if max_price is not None:
            query = query.filter(models.Room.price <= max_price)
        return query.order_by(models.Room.room_number).all()

    def update_status(self, room: models.Room, status: str) -> None:
        room.status = status

    def count(self) -> int:
        return self.db.query(func.count(models.Room.id)).scalar() or 0

    def statistics(self) -> Dict[str, int]:
        rows = (
            self.db.query(models.Room.status, func.count(models.Room.id))
            .group_by(models.Room.status)
            .all()
        )
        return {status: count for status, count in rows}

    def is_referenced(self, room: models.Room) -> bool:
        return (
            self.db.query(models.Booking.id).filter(models.Booking.room_id == room.id).first()
            is not None
        )

    def delete(self, room: models.Room) -> None:
        self.db.delete(room)


class BookingRepository:
    def __init__(self, db: Session):
        self.db = db

    def _joined(self):
        return self.db.query(models.Booking).options(
            joinedload(models.Booking.room),
            joinedload(models.Booking.guest),
        )

    def add(self, booking: models.Booking) -> models.Booking:
        self.db.add(booking)
        self.db.flush()
        return booking

    def get_by_id(self, booking_id: int) -> Optional[models.Booking]:
        return self._joined().filter(models.Booking.id == booking_id).first()

    def get_all(self) -> List[models.Booking]:
        return self._joined().order_by(models.Booking.check_in_date.desc(), models.Booking.id.desc()).all()

    def get_by_username(self, username: str) -> List[models.Booking]:
        return (
            self._joined()
            .join(models.User, models.Booking.guest_id == models.User.id)
            .filter(models.User.username == username)
            .order_by(models.Booking.check_in_date.desc(), models.Booking.id.desc())
            .all()
        )

    def get_by_status(self, status: str) -> List[models.Booking]:
        return (
            self._joined()
            .filter(models.Booking.status == status)
            .order_by(models.Booking.check_in_date)
            .all()
        )

    def get_check_ins_on(self, day: date) -> List[models.Booking]:
        return (
            self._joined()
            .filter(
                models.Booking.check_in_date == day,
                models.Booking.status == models.BookingStatus.BOOKED.value,
            )
            .order_by(models.Booking.check_in_date)
            .all()
        )

    def get_check_outs_on(self, day: date) -> List[models.Booking]:
        return (
            self._joined()
            .filter(
                models.Booking.check_out_date == day,
                models.Booking.status == models.BookingStatus.CHECKED_IN.value,
            )
            .order_by(models.Booking.check_out_date)
            .all()
        )

    def find_overlapping(
        self,
        room_id: int,
        check_in: date,
        check_out: date,
        exclude_booking_id: int = 0,
    ) -> List[models.Booking]:
        """Active bookings on ``room_id`` whose [in, out) range intersects the given one."""
        query = self.db.query(models.Booking).filter(
            models.Booking.room_id == room_id,
            models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES),
            models.Booking.check_in_date < check_out,
            models.Booking.check_out_date > check_in,
        )
        if exclude_booking_id > 0:
            query = query.filter(models.Booking.id != exclude_booking_id)
        return query.all()

    def count_active_for_room(self, room_id: int, exclude_booking_id: int = 0) -> int:
        query = self.db.query(func.count(models.Booking.id)).filter(
            models.Booking.room_id == room_id,
            models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES),
        )
        if exclude_booking_id > 0:
            query = query.filter(models.Booking.id != exclude_booking_id)
        return query.scalar() or 0

    def guest_has_bookings(self, guest_id: int) -> bool:
        return (
            self.db.query(models.Booking.id).filter(models.Booking.guest_id == guest_id).first()
            is not None
        )

    def update_status(self, booking: models.Booking, status: str) -> None:
        booking.status = status

    def count(self) -> int:
        return self.db.query(func.count(models.Booking.id)).scalar() or 0

    def count_by_status(self) -> Dict[str, int]:
        rows = (
            self.db.query(models.Booking.status, func.count(models.Booking.id))
            .group_by(models.Booking.status)
            .all()
        )
        return {status: count for status, count in rows}

    def delete(self, booking: models.Booking) -> None:
        self.db.delete(booking)


class PaymentRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, payment: models.Payment) -> models.Payment:
        self.db.add(payment)
        self.db.flush()
        return payment

    def get_all(self) -> List[models.Payment]:
        return self.db.query(models.Payment).order_by(models.Payment.payment_date.desc()).all()

    def get_by_booking_id(self, booking_id: int) -> List[models.Payment]:
        return (
            self.db.query(models.Payment)
            .filter(models.Payment.booking_id == booking_id)
            .order_by(models.Payment.payment_date.desc())
            .all()
        )

    def get_by_method(self, method: str) -> List[models.Payment]:
        return (
            self.db.query(models.Payment)
            .filter(models.Payment.method == method)
            .order_by(models.Payment.payment_date.desc())
            .all()
        )

    # ----- reporting aggregates -----
    def total_revenue(self) -> float:
        return float(self.db.query(func.sum(models.Payment.amount)).scalar() or 0.0)

    def revenue_between(self, start: datetime, end: datetime) -> float:
        total = (
            self.db.query(func.sum(models.Payment.amount))
            .filter(models.Payment.payment_date >= start, models.Payment.payment_date < end)
            .scalar()
        )
        return float(total or 0.0)

    def revenue_by_month(self) -> Dict[str, float]:
        # grouped in Python so the month key does not depend on the SQL dialect
        totals: Dict[str, float] = OrderedDict()
        rows = (
            self.db.query(models.Payment.payment_date, models.Payment.amount)
            .order_by(models.Payment.payment_date)
            .all()
        )
        for paid_at, amount in rows:
            month = paid_at.strftime("%Y-%m")
            totals[month] = totals.get(month, 0.0) + amount
        return dict(totals)

    def revenue_by_method(self) -> Dict[str, float]:
        rows = (
            self.db.query(models.Payment.method, func.sum(models.Payment.amount))
            .group_by(models.Payment.method)
            .all()
        )
        return {method: float(total or 0.0) for method, total in rows}

    def count(self) -> int:
        return self.db.query(func.count(models.Payment.id)).scalar() or 0

    def count_by_method(self) -> Dict[str, int]:
        rows = (
            self.db.query(models.Payment.method, func.count(models.Payment.id))
            .group_by(models.Payment.method)
            .all()
        )
        return {method: count for method, count in rows}
