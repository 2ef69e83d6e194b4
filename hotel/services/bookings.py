"""
Booking lifecycle.

A booking starts out ``Booked``. It may be checked in, then checked out;
either of the first two states may be cancelled. ``Checked Out`` and
``Cancelled`` are terminal. Every transition that touches more than one
row (booking, payment, room) is committed as one unit and rolled back as
one unit.
"""
import logging
from datetime import date, datetime
from typing import Callable, List, Optional

from pybreaker import CircuitBreakerError
from sqlalchemy.orm import Session

from .. import models
from ..circuit_breaker import booking_circuit_breaker
from ..config import settings
from ..errors import ErrorKind, ServiceResult
from ..repository import BookingRepository, PaymentRepository, RoomRepository, UserRepository
from .availability import has_conflict, is_reservable
from .base import BaseService
from .pricing import stay_charge

logger = logging.getLogger(__name__)

BREAKER_OPEN_MESSAGE = "Booking service temporarily unavailable. Please try again later."

# status -> statuses it may move to
TRANSITIONS = {
    models.BookingStatus.BOOKED.value: {
        models.BookingStatus.CHECKED_IN.value,
        models.BookingStatus.CANCELLED.value,
    },
    models.BookingStatus.CHECKED_IN.value: {
        models.BookingStatus.CHECKED_OUT.value,
        models.BookingStatus.CANCELLED.value,
    },
    models.BookingStatus.CHECKED_OUT.value: set(),
    models.BookingStatus.CANCELLED.value: set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, set())


def validate_stay_dates(check_in: Optional[date], check_out: Optional[date], today: date) -> Optional[str]:
    """Return an error message for an invalid stay, or None."""
    if check_in is None:
        return "Check-in date is required"
    if check_out is None:
        return "Check-out date is required"
    if check_out <= check_in:
        return "Check-out date must be after check-in date"
    if check_in < today:
        return "Check-in date cannot be in the past"
    return None


def validate_booking_data(
    guest_username: Optional[str],
    room_number: Optional[str],
    check_in: Optional[date],
    check_out: Optional[date],
    payment_method: Optional[str],
    today: date,
) -> Optional[str]:
    if not guest_username or not guest_username.strip():
        return "Guest username is required"
    if not room_number or not room_number.strip():
        return "Room number is required"
    message = validate_stay_dates(check_in, check_out, today)
    if message:
        return message
    if payment_method not in [m.value for m in models.PaymentMethod]:
        return "Invalid payment method. Must be Credit Card, Cash, or Bank Transfer"
    return None


class BookingLifecycleManager(BaseService):
    """Creates bookings and moves them through their lifecycle."""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = datetime.now,
        release_room_on_checked_in_cancel: Optional[bool] = None,
    ):
        super().__init__(db)
        self.clock = clock
        if release_room_on_checked_in_cancel is None:
            release_room_on_checked_in_cancel = settings.RELEASE_ROOM_ON_CHECKED_IN_CANCEL
        self.release_room_on_checked_in_cancel = release_room_on_checked_in_cancel
        self.bookings = BookingRepository(db)
        self.rooms = RoomRepository(db)
        self.users = UserRepository(db)
        self.payments = PaymentRepository(db)

    # ----- internals -----
    def _today(self) -> date:
        return self.clock().date()

    def _commit(self) -> None:
        @booking_circuit_breaker
        def _save():
            self.db.commit()

        _save()

    def _run(self, action: str, operation: Callable[[], ServiceResult]) -> ServiceResult:
        def guarded() -> ServiceResult:
            try:
                return operation()
            except CircuitBreakerError:
                self.db.rollback()
                logger.error("Circuit open, refusing to %s", action)
                return ServiceResult.fail(ErrorKind.DATABASE, BREAKER_OPEN_MESSAGE)

        return super()._run(action, guarded)

    def _release_room(self, room: models.Room, booking_id: int) -> None:
        # another active booking keeps the room reserved
        still_held = self.bookings.count_active_for_room(room.id, exclude_booking_id=booking_id) > 0
        status = models.RoomStatus.BOOKED.value if still_held else models.RoomStatus.AVAILABLE.value
        self.rooms.update_status(room, status)

    def _refetch(self, booking_id: int) -> models.Booking:
        self.db.expire_all()
        return self.bookings.get_by_id(booking_id)

    # ----- creation -----
    def create_booking(
        self,
        guest_username: str,
        room_number: str,
        check_in: date,
        check_out: date,
        payment_method: str,
    ) -> ServiceResult:
        """
        Reserve ``room_number`` for ``guest_username`` over ``[check_in, check_out)``.

        The booking, its payment record and the room status change are
        written in one transaction. On success the result carries the
        booking re-read with its room number and guest name.
        """
        if isinstance(payment_method, models.PaymentMethod):
            payment_method = payment_method.value

        message = validate_booking_data(
            guest_username, room_number, check_in, check_out, payment_method, self._today()
        )
        if message:
            return ServiceResult.fail(ErrorKind.VALIDATION, message)

        def operation() -> ServiceResult:
            guest = self.users.get_by_username(guest_username.strip())
            if guest is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "Guest not found")

            room = self.rooms.get_by_number(room_number.strip())
            if room is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "Room not found")
            if not is_reservable(room):
                return ServiceResult.fail(ErrorKind.UNAVAILABLE, "Room is not available")

            if has_conflict(self.db, room.id, check_in, check_out, exclude_booking_id=0):
                logger.info(
                    "Rejected booking of room %s for %s..%s: dates overlap an active booking",
                    room.room_number, check_in, check_out,
                )
                return ServiceResult.fail(
                    ErrorKind.CONFLICT, "Room is already booked for the selected dates"
                )

            total = stay_charge(room.price, check_in, check_out)

            booking = self.bookings.add(
                models.Booking(
                    guest_id=guest.id,
                    room_id=room.id,
                    check_in_date=check_in,
                    check_out_date=check_out,
                    total_price=total,
                    status=models.BookingStatus.BOOKED.value,
                    created_at=self.clock(),
                )
            )
            self.payments.add(
                models.Payment(
                    booking_id=booking.id,
                    amount=total,
                    payment_date=self.clock(),
                    method=payment_method,
                )
            )
            self.rooms.update_status(room, models.RoomStatus.BOOKED.value)
            self._commit()

            logger.info(
                "Booking %s created: room %s for %s, %s..%s, total %.2f",
                booking.id, room.room_number, guest.username, check_in, check_out, total,
            )
            return ServiceResult.ok("Booking created successfully", self._refetch(booking.id))

        return self._run("create booking", operation)

    # ----- transitions -----
    def _transition(self, booking_id: int, target: str, action: str, on_success) -> ServiceResult:
        def operation() -> ServiceResult:
            booking = self.bookings.get_by_id(booking_id)
            if booking is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "Booking not found")

            previous = booking.status
            if not can_transition(previous, target):
                return ServiceResult.fail(
                    ErrorKind.VALIDATION,
                    f"Cannot {action} a booking with status '{previous}'",
                )

            self.bookings.update_status(booking, target)
            on_success(booking, previous)
            self._commit()

            logger.info("Booking %s: %s -> %s", booking_id, previous, target)
            return ServiceResult.ok(f"Booking {booking_id} is now {target}", self._refetch(booking_id))

        return self._run(action + f" booking {booking_id}", operation)

    def check_in_guest(self, booking_id: int) -> ServiceResult:
        """Booked -> Checked In. The room keeps its status."""
        return self._transition(
            booking_id,
            models.BookingStatus.CHECKED_IN.value,
            "check in",
            lambda booking, previous: None,
        )

    def check_out_guest(self, booking_id: int) -> ServiceResult:
        """Checked In -> Checked Out, releasing the room."""
        return self._transition(
            booking_id,
            models.BookingStatus.CHECKED_OUT.value,
            "check out",
            lambda booking, previous: self._release_room(booking.room, booking.id),
        )

    def cancel_booking(self, booking_id: int) -> ServiceResult:
        """
        Cancel a Booked or Checked In booking.

        Cancelling a reservation that was only Booked releases the room.
        Cancelling a Checked In stay leaves the room as it is unless the
        manager was built with ``release_room_on_checked_in_cancel``.

        Left as it is, the room stays ``Booked`` even when no active booking
        holds it any more. It is corrected by the next release on the room
        (another booking checked out, cancelled or deleted) or by staff
        setting the room status directly.
        """

        def release(booking: models.Booking, previous: str) -> None:
            if previous == models.BookingStatus.BOOKED.value or self.release_room_on_checked_in_cancel:
                self._release_room(booking.room, booking.id)

        return self._transition(booking_id, models.BookingStatus.CANCELLED.value, "cancel", release)

    def update_booking_dates(self, booking_id: int, check_in: date, check_out: date) -> ServiceResult:
        """
        Move a Booked reservation to new dates on the same room.

        The new stay is checked against every other active booking on the
        room; the total and the payment amount are recomputed.
        """
        message = validate_stay_dates(check_in, check_out, self._today())
        if message:
            return ServiceResult.fail(ErrorKind.VALIDATION, message)

        def operation() -> ServiceResult:
            booking = self.bookings.get_by_id(booking_id)
            if booking is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "Booking not found")
            if booking.status != models.BookingStatus.BOOKED.value:
                return ServiceResult.fail(
                    ErrorKind.VALIDATION,
                    f"Cannot change dates of a booking with status '{booking.status}'",
                )
            if has_conflict(self.db, booking.room_id, check_in, check_out, exclude_booking_id=booking.id):
                return ServiceResult.fail(
                    ErrorKind.CONFLICT, "Room is already booked for the selected dates"
                )

            total = stay_charge(booking.room.price, check_in, check_out)
            booking.check_in_date = check_in
            booking.check_out_date = check_out
            booking.total_price = total
            payments = self.payments.get_by_booking_id(booking.id)
            if payments:
                payments[0].amount = total
            self._commit()

            logger.info("Booking %s moved to %s..%s, total %.2f", booking_id, check_in, check_out, total)
            return ServiceResult.ok("Booking updated successfully", self._refetch(booking_id))

        return self._run(f"update booking {booking_id}", operation)

    def delete_booking(self, booking_id: int) -> ServiceResult:
        """Administrative hard delete. Ignores lifecycle rules; removes the payments too."""

        def operation() -> ServiceResult:
            booking = self.bookings.get_by_id(booking_id)
            if booking is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "Booking not found")

            room = booking.room
            was_active = booking.is_active
            self.bookings.delete(booking)
            if was_active:
                self._release_room(room, booking.id)
            self._commit()

            logger.warning("Booking %s deleted by administrative action", booking_id)
            return ServiceResult.ok("Booking deleted")

        return self._run(f"delete booking {booking_id}", operation)

    # ----- queries -----
    def get_booking(self, booking_id: int) -> Optional[models.Booking]:
        return self.bookings.get_by_id(booking_id)

    def get_all_bookings(self) -> List[models.Booking]:
        return self.bookings.get_all()

    def get_guest_bookings(self, username: str) -> List[models.Booking]:
        return self.bookings.get_by_username(username)

    def get_bookings_by_status(self, status: str) -> List[models.Booking]:
        return self.bookings.get_by_status(status)

    def get_today_check_ins(self) -> List[models.Booking]:
        return self.bookings.get_check_ins_on(self._today())

    def get_today_check_outs(self) -> List[models.Booking]:
        return self.bookings.get_check_outs_on(self._today())
