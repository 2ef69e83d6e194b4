from pydantic import BaseModel, field_serializer
from typing import Optional, Dict
from datetime import date, datetime

from .models import Role, RoomType, RoomStatus, BookingStatus, PaymentMethod


# ----- Users -----
class UserBase(BaseModel):
    username: str
    fullname: str
    role: Role = Role.GUEST


class UserCreate(UserBase):
    password: str


class UserRegister(BaseModel):
    username: str
    fullname: str
    password: str


class UserOut(UserBase):
    id: int

    class Config:
        from_attributes = True


class UserRoleUpdate(BaseModel):
    role: Role


class UserPasswordReset(BaseModel):
    new_password: str


class PasswordChange(BaseModel):
    current_password: str
    new_password: str


# ----- Rooms -----
class RoomBase(BaseModel):
    room_number: str
    type: RoomType
    price: float
    status: RoomStatus = RoomStatus.AVAILABLE


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    room_number: Optional[str] = None
    type: Optional[RoomType] = None
    price: Optional[float] = None
    status: Optional[RoomStatus] = None


class RoomStatusUpdate(BaseModel):
    status: RoomStatus


class RoomOut(RoomBase):
    id: int

    class Config:
        from_attributes = True


# ----- Bookings -----
class BookingCreate(BaseModel):
    # guests may leave this out to book for themselves
    guest_username: Optional[str] = None
    room_number: str
    check_in_date: date
    check_out_date: date
    payment_method: PaymentMethod


class BookingDatesUpdate(BaseModel):
    check_in_date: date
    check_out_date: date


class BookingOut(BaseModel):
    id: int
    guest_id: int
    room_id: int
    check_in_date: date
    check_out_date: date
    total_price: float
    status: BookingStatus
    created_at: datetime
    room_number: Optional[str] = None
    guest_name: Optional[str] = None
    guest_username: Optional[str] = None
    nights: int

    class Config:
        from_attributes = True

    @field_serializer("total_price")
    def _two_decimals(self, value: float) -> float:
        return round(value, 2)


# ----- Payments -----
class PaymentOut(BaseModel):
    id: int
    booking_id: int
    amount: float
    payment_date: datetime
    method: PaymentMethod

    class Config:
        from_attributes = True

    @field_serializer("amount")
    def _two_decimals(self, value: float) -> float:
        return round(value, 2)


# ----- Auth / sessions -----
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: Role
    session_timeout_seconds: int


class SessionInfoOut(BaseModel):
    active: bool
    session_id: Optional[str] = None
    username: Optional[str] = None
    role: Optional[str] = None
    login_time: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    remaining_seconds: int = 0
    total_timeout_seconds: int = 0
    warning: bool = False
    remaining: str = "00:00"

    class Config:
        from_attributes = True


# ----- Availability responses -----
class AvailabilityResponse(BaseModel):
    room_id: int
    check_in_date: date
    check_out_date: date
    available: bool
    estimated_price: float


# ----- Reports -----
class RevenueReport(BaseModel):
    total_revenue: float
    today_revenue: float
    this_month_revenue: float


class DashboardSummary(BaseModel):
    total_rooms: int
    total_users: int
    total_bookings: int
    total_payments: int
    total_revenue: float
    rooms_by_status: Dict[str, int]
    bookings_by_status: Dict[str, int]
    today_check_ins: int
    today_check_outs: int
    active_sessions: int


class MessageOut(BaseModel):
    detail: str
