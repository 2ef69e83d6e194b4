from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db, get_current_user, require_admin, require_staff
from ..errors import unwrap
from ..repository import RoomRepository
from ..services.availability import has_conflict
from ..services.bookings import BookingLifecycleManager
from ..services.pricing import total_price

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _is_staff(user: models.User) -> bool:
    return user.role in (models.Role.ADMIN.value, models.Role.STAFF.value)


def _get_visible_booking(
    manager: BookingLifecycleManager, booking_id: int, current_user: models.User
) -> models.Booking:
    """Fetch a booking the current user may see; guests only see their own."""
    booking = manager.get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    if not _is_staff(current_user) and booking.guest_id != current_user.id:
        raise HTTPException(status_code=403, detail="Not allowed to access this booking")
    return booking


@router.get("/check", response_model=schemas.AvailabilityResponse)
def check_room_availability(
    room_id: int,
    check_in_date: date,
    check_out_date: date,
    db: Session = Depends(get_db),
):
    """
    Check if a room is free for the stay ``[check_in_date, check_out_date)``.

    This does not create a booking. It reports whether any active booking
    overlaps the requested dates, and what the stay would cost.
    """
    room = RoomRepository(db).get_by_id(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    if check_out_date <= check_in_date:
        raise HTTPException(status_code=400, detail="Check-out date must be after check-in date")

    return schemas.AvailabilityResponse(
        room_id=room_id,
        check_in_date=check_in_date,
        check_out_date=check_out_date,
        available=not has_conflict(db, room_id, check_in_date, check_out_date),
        estimated_price=total_price(room.price, check_in_date, check_out_date),
    )


@router.get("/", response_model=List[schemas.BookingOut])
def list_bookings(
    status: Optional[models.BookingStatus] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    List bookings.

    - Admin and staff see **all** bookings, optionally filtered by status.
    - Guests see **only their own** bookings.
    """
    manager = BookingLifecycleManager(db)
    if _is_staff(current_user):
        if status is not None:
            return manager.get_bookings_by_status(status.value)
        return manager.get_all_bookings()

    bookings = manager.get_guest_bookings(current_user.username)
    if status is not None:
        bookings = [b for b in bookings if b.status == status.value]
    return bookings


@router.post("/", response_model=schemas.BookingOut)
def create_booking(
    booking_in: schemas.BookingCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Reserve a room.

    Staff and admins book on behalf of ``guest_username``; guests always
    book for themselves. The booking, its payment and the room status are
    saved together.

    Raises
    ------
    ServiceError
        - 400 for invalid dates or missing fields.
        - 404 if the guest or room does not exist.
        - 409 if the room is out of service or already booked for those dates.
    """
    guest_username = booking_in.guest_username
    if not _is_staff(current_user):
        guest_username = current_user.username

    return unwrap(
        BookingLifecycleManager(db).create_booking(
            guest_username,
            booking_in.room_number,
            booking_in.check_in_date,
            booking_in.check_out_date,
            booking_in.payment_method.value,
        )
    )


@router.get("/today/check-ins", response_model=List[schemas.BookingOut])
def list_today_check_ins(
    db: Session = Depends(get_db),
    _: models.User = Depends(require_staff),
):
    """Booked reservations arriving today. *(Staff or Admin)*"""
    return BookingLifecycleManager(db).get_today_check_ins()


@router.get("/today/check-outs", response_model=List[schemas.BookingOut])
def list_today_check_outs(
    db: Session = Depends(get_db),
    _: models.User = Depends(require_staff),
):
    """Checked-in stays departing today. *(Staff or Admin)*"""
    return BookingLifecycleManager(db).get_today_check_outs()


@router.get("/{booking_id}", response_model=schemas.BookingOut)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return _get_visible_booking(BookingLifecycleManager(db), booking_id, current_user)


@router.patch("/{booking_id}", response_model=schemas.BookingOut)
def update_booking_dates(
    booking_id: int,
    booking_update: schemas.BookingDatesUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Move a booking to new dates.

    Only the guest who owns the booking, staff or an admin can change it,
    and only while it is still ``Booked``. The new dates must not overlap
    any other active booking for the room.
    """
    manager = BookingLifecycleManager(db)
    _get_visible_booking(manager, booking_id, current_user)
    return unwrap(
        manager.update_booking_dates(
            booking_id, booking_update.check_in_date, booking_update.check_out_date
        )
    )


@router.post("/{booking_id}/check-in", response_model=schemas.BookingOut)
def check_in_guest(
    booking_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_staff),
):
    """
    Check in the guest of a ``Booked`` reservation. *(Staff or Admin)*

    Raises
    ------
    ServiceError
        - 400 if the booking is not in ``Booked`` status.
        - 404 if the booking does not exist.
    """
    return unwrap(BookingLifecycleManager(db).check_in_guest(booking_id))


@router.post("/{booking_id}/check-out", response_model=schemas.BookingOut)
def check_out_guest(
    booking_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_staff),
):
    """
    Check out a ``Checked In`` guest and release the room. *(Staff or Admin)*
    """
    return unwrap(BookingLifecycleManager(db).check_out_guest(booking_id))


@router.post("/{booking_id}/cancel", response_model=schemas.BookingOut)
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Cancel a booking.

    - Guests can cancel their own bookings.
    - Staff and admins can cancel any booking.
    """
    manager = BookingLifecycleManager(db)
    _get_visible_booking(manager, booking_id, current_user)
    return unwrap(manager.cancel_booking(booking_id))


@router.delete("/{booking_id}", response_model=schemas.MessageOut)
def delete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Permanently delete a booking and its payments. *(Admin-only)*

    This bypasses the lifecycle rules; use cancellation for normal flow.
    """
    unwrap(BookingLifecycleManager(db).delete_booking(booking_id))
    return {"detail": "Booking deleted"}
