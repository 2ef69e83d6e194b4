import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Float, ForeignKey, Date, DateTime
from sqlalchemy.orm import relationship

from .database import Base


class Role(str, enum.Enum):
    ADMIN = "admin"
    STAFF = "staff"
    GUEST = "guest"


class RoomType(str, enum.Enum):
    STANDARD = "Standard"
    DELUXE = "Deluxe"
    SUITE = "Suite"


class RoomStatus(str, enum.Enum):
    AVAILABLE = "Available"
    BOOKED = "Booked"
    OCCUPIED = "Occupied"
    MAINTENANCE = "Maintenance"
    CLEANING = "Cleaning"
    OUT_OF_ORDER = "Out of Order"


class BookingStatus(str, enum.Enum):
    BOOKED = "Booked"
    CHECKED_IN = "Checked In"
    CHECKED_OUT = "Checked Out"
    CANCELLED = "Cancelled"


class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "Credit Card"
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"


# Bookings in these states hold the room for their dates
ACTIVE_BOOKING_STATUSES = (BookingStatus.BOOKED.value, BookingStatus.CHECKED_IN.value)

# A room in one of these states can take new reservations
RESERVABLE_ROOM_STATUSES = (RoomStatus.AVAILABLE.value, RoomStatus.BOOKED.value)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String(20), nullable=False, default=Role.GUEST.value)  # admin, staff, guest
    fullname = Column(String(100), nullable=False)

    bookings = relationship("Booking", back_populates="guest")


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    room_number = Column(String(10), unique=True, index=True, nullable=False)
    type = Column(String(20), nullable=False)
    price = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default=RoomStatus.AVAILABLE.value)

    bookings = relationship("Booking", back_populates="room")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    guest_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)
    total_price = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.BOOKED.value)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    guest = relationship("User", back_populates="bookings")
    room = relationship("Room", back_populates="bookings")
    payments = relationship("Payment", back_populates="booking", cascade="all, delete-orphan")

    # joined display fields
    @property
    def room_number(self) -> str:
        return self.room.room_number if self.room else None

    @property
    def guest_name(self) -> str:
        return self.guest.fullname if self.guest else None

    @property
    def guest_username(self) -> str:
        return self.guest.username if self.guest else None

    @property
    def nights(self) -> int:
        return (self.check_out_date - self.check_in_date).days

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    amount = Column(Float, nullable=False)
    payment_date = Column(DateTime, nullable=False, default=datetime.now)
    method = Column(String(20), nullable=False)

    booking = relationship("Booking", back_populates="payments")
