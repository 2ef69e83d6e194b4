"""
Read-only aggregates for the reports screen. *(Admin-only)*

Payment and booking aggregates read the repositories directly; no business
rules apply.
"""
from datetime import datetime, timedelta
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db, get_session_manager, require_admin
from ..repository import BookingRepository, PaymentRepository
from ..services.rooms import RoomService
from ..services.sessions import SessionManager
from ..services.users import UserService

router = APIRouter(prefix="/reports", tags=["reports"])


def _today_bounds(now: datetime):
    start = datetime(now.year, now.month, now.day)
    return start, start + timedelta(days=1)


def _month_bounds(now: datetime):
    start = datetime(now.year, now.month, 1)
    if now.month == 12:
        end = datetime(now.year + 1, 1, 1)
    else:
        end = datetime(now.year, now.month + 1, 1)
    return start, end


@router.get("/summary", response_model=schemas.DashboardSummary)
def dashboard_summary(
    db: Session = Depends(get_db),
    manager: SessionManager = Depends(get_session_manager),
    _: models.User = Depends(require_admin),
):
    bookings = BookingRepository(db)
    payments = PaymentRepository(db)
    rooms = RoomService(db)
    today = datetime.now().date()
    return schemas.DashboardSummary(
        total_rooms=rooms.get_total_room_count(),
        total_users=UserService(db).get_total_user_count(),
        total_bookings=bookings.count(),
        total_payments=payments.count(),
        total_revenue=payments.total_revenue(),
        rooms_by_status=rooms.get_room_statistics(),
        bookings_by_status=bookings.count_by_status(),
        today_check_ins=len(bookings.get_check_ins_on(today)),
        today_check_outs=len(bookings.get_check_outs_on(today)),
        active_sessions=manager.active_session_count(),
    )


@router.get("/revenue", response_model=schemas.RevenueReport)
def revenue(
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    payments = PaymentRepository(db)
    now = datetime.now()
    return schemas.RevenueReport(
        total_revenue=payments.total_revenue(),
        today_revenue=payments.revenue_between(*_today_bounds(now)),
        this_month_revenue=payments.revenue_between(*_month_bounds(now)),
    )


@router.get("/revenue/monthly", response_model=Dict[str, float])
def revenue_by_month(
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """Revenue per calendar month, keyed ``YYYY-MM``."""
    return PaymentRepository(db).revenue_by_month()


@router.get("/revenue/methods", response_model=Dict[str, float])
def revenue_by_method(
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    return PaymentRepository(db).revenue_by_method()


@router.get("/payments/methods", response_model=Dict[str, int])
def payment_count_by_method(
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    return PaymentRepository(db).count_by_method()


@router.get("/rooms", response_model=Dict[str, int])
def room_statistics(
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """Number of rooms in each status."""
    return RoomService(db).get_room_statistics()
