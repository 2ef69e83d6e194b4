from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db, require_staff
from ..repository import BookingRepository, PaymentRepository

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/", response_model=List[schemas.PaymentOut])
def list_payments(
    method: Optional[models.PaymentMethod] = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_staff),
):
    """List payments, newest first, optionally for one payment method. *(Staff or Admin)*"""
    payments = PaymentRepository(db)
    if method is not None:
        return payments.get_by_method(method.value)
    return payments.get_all()


@router.get("/booking/{booking_id}", response_model=List[schemas.PaymentOut])
def list_booking_payments(
    booking_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_staff),
):
    """Payments recorded for one booking. *(Staff or Admin)*"""
    if BookingRepository(db).get_by_id(booking_id) is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    return PaymentRepository(db).get_by_booking_id(booking_id)
