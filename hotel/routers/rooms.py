from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db, require_admin, require_staff
from ..errors import ServiceResult, ErrorKind, ServiceError, unwrap
from ..services.availability import available_rooms
from ..services.rooms import RoomService

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.post("/", response_model=schemas.RoomOut)
def create_room(
    room_in: schemas.RoomCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Create a new room. *(Admin-only)*

    The room number must be unique and the nightly price positive.

    Raises
    ------
    ServiceError
        - 400 if the room number already exists or the data is invalid.
    """
    return unwrap(
        RoomService(db).create_room(
            room_in.room_number,
            room_in.type.value,
            room_in.price,
            room_in.status.value,
        )
    )


@router.get("/", response_model=List[schemas.RoomOut])
def list_rooms(
    db: Session = Depends(get_db),
    room_type: Optional[models.RoomType] = None,
    status: Optional[models.RoomStatus] = None,
    max_price: Optional[float] = None,
    only_available: bool = False,
):
    """
    List rooms with optional filters.

    Parameters
    ----------
    room_type : RoomType, optional
        Only rooms of this type.
    status : RoomStatus, optional
        Only rooms currently in this status.
    max_price : float, optional
        Only rooms whose nightly price is at most this amount.
    only_available : bool, optional
        If True, only rooms whose status is ``Available`` are returned.
    """
    return RoomService(db).list_rooms(
        room_type=room_type.value if room_type else None,
        status=status.value if status else None,
        only_available=only_available,
        max_price=max_price,
    )


@router.get("/available", response_model=List[schemas.RoomOut])
def list_rooms_free_for_stay(
    check_in_date: date,
    check_out_date: date,
    room_type: Optional[models.RoomType] = None,
    db: Session = Depends(get_db),
):
    """
    Rooms that can be reserved for the whole stay ``[check_in_date, check_out_date)``.
    """
    if check_out_date <= check_in_date:
        raise ServiceError(
            ServiceResult.fail(ErrorKind.VALIDATION, "Check-out date must be after check-in date")
        )
    return available_rooms(
        db, check_in_date, check_out_date, room_type.value if room_type else None
    )


@router.get("/{room_id}", response_model=schemas.RoomOut)
def get_room(room_id: int, db: Session = Depends(get_db)):
    """
    Retrieve a single room by its ID.

    Raises a 404 error if the room does not exist.
    """
    room = RoomService(db).get_room(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return room


@router.patch("/{room_id}", response_model=schemas.RoomOut)
def update_room(
    room_id: int,
    room_update: schemas.RoomUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Update details of an existing room. *(Admin-only)*

    Allows modifying number, type, price and status.
    Raises a 404 error if the room is not found.
    """
    data = room_update.dict(exclude_unset=True, exclude_none=True)
    for field in ("type", "status"):
        if field in data:
            data[field] = data[field].value
    return unwrap(RoomService(db).update_room(room_id, **data))


@router.patch("/{room_id}/status", response_model=schemas.RoomOut)
def update_room_status(
    room_id: int,
    payload: schemas.RoomStatusUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_staff),
):
    """
    Set a room's status, e.g. to ``Cleaning`` or ``Maintenance``. *(Staff or Admin)*
    """
    return unwrap(RoomService(db).update_room_status(room_id, payload.status.value))


@router.delete("/{room_id}", response_model=schemas.MessageOut)
def delete_room(
    room_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Delete a room. *(Admin-only)*

    Rooms referenced by a booking cannot be deleted.
    Raises a 404 error if the room does not exist.
    """
    unwrap(RoomService(db).delete_room(room_id))
    return {"detail": "Room deleted"}
