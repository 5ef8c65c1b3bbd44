# cadiapp/models.py
from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, Enum, Float, Text, Table, Index
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from cadiapp.database import Base

class UserRole(str, enum.Enum):
    golfer = "golfer"
    caddie = "caddie"
    admin = "admin"

class CaddieStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"

class CaddieCategory(str, enum.Enum):
    first = "1ra"
    second = "2da"
    third = "3ra"

class BookingStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    in_progress = "in-progress"
    completed = "completed"
    cancelled = "cancelled"
    rejected = "rejected"

# Bookings in these states hold the caddie's time.
OCCUPYING_STATUSES = (BookingStatus.pending, BookingStatus.accepted)

class PaymentStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    refunded = "refunded"

class RefundStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


def _enum(cls, name):
    # Store the enum *values* ("in-progress") rather than member names.
    return Enum(cls, name=name, values_callable=lambda e: [m.value for m in e])


def _split_slots(raw: str | None) -> list[str]:
    return [s.strip() for s in str(raw or "").split(",") if s.strip()]


def _join_slots(slots) -> str:
    return ",".join(str(s).strip() for s in (slots or []) if str(s).strip())


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(200), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    role = Column(_enum(UserRole, "user_role"), nullable=False, default=UserRole.golfer)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    phone = Column(String(50), nullable=True)
    preferred_language = Column(String(5), default="es")
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


caddie_clubs = Table(
    "caddie_clubs",
    Base.metadata,
    Column("caddie_id", Integer, ForeignKey("caddies.id"), primary_key=True),
    Column("club_id", Integer, ForeignKey("clubs.id"), primary_key=True),
)


class Club(Base):
    __tablename__ = "clubs"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    address = Column(String(255), nullable=False, default="")
    city = Column(String(120), nullable=False, default="")
    province = Column(String(120), nullable=False, default="")
    phone = Column(String(50), nullable=True)
    email = Column(String(200), nullable=True)
    # IANA zone used to place a booking's calendar date + "HH:mm" on the timeline.
    timezone = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Caddie(Base):
    __tablename__ = "caddies"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    dni = Column(String(30), unique=True, nullable=False)
    photo = Column(String(500), nullable=True)
    experience = Column(Text, nullable=False, default="")
    category = Column(_enum(CaddieCategory, "caddie_category"), nullable=False, default=CaddieCategory.third)
    suggested_rate = Column(Float, nullable=False, default=0.0)
    status = Column(_enum(CaddieStatus, "caddie_status"), default=CaddieStatus.pending)
    rating = Column(Float, default=0.0)
    total_ratings = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User")
    clubs = relationship("Club", secondary=caddie_clubs)
    recurring_availability = relationship(
        "RecurringAvailability", back_populates="caddie", cascade="all, delete-orphan"
    )
    specific_availability = relationship(
        "SpecificAvailability", back_populates="caddie", cascade="all, delete-orphan"
    )


class RecurringAvailability(Base):
    """Weekly pattern for one club. day_of_week: 0=Sunday ... 6=Saturday."""
    __tablename__ = "recurring_availability"
    id = Column(Integer, primary_key=True, index=True)
    caddie_id = Column(Integer, ForeignKey("caddies.id"), nullable=False, index=True)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    slots = Column(Text, nullable=False, default="")  # "9-12,12-15"

    caddie = relationship("Caddie", back_populates="recurring_availability")

    @property
    def time_slots(self) -> list[str]:
        return _split_slots(self.slots)

    @time_slots.setter
    def time_slots(self, value) -> None:
        self.slots = _join_slots(value)


class SpecificAvailability(Base):
    __tablename__ = "specific_availability"
    id = Column(Integer, primary_key=True, index=True)
    caddie_id = Column(Integer, ForeignKey("caddies.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    slots = Column(Text, nullable=False, default="")

    caddie = relationship("Caddie", back_populates="specific_availability")

    @property
    def time_slots(self) -> list[str]:
        return _split_slots(self.slots)

    @time_slots.setter
    def time_slots(self, value) -> None:
        self.slots = _join_slots(value)


class Golfer(Base):
    __tablename__ = "golfers"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    home_club_id = Column(Integer, ForeignKey("clubs.id"), nullable=True)
    handicap = Column(Float, nullable=True)
    rating = Column(Float, default=0.0)
    total_ratings = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User")


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True, index=True)
    golfer_id = Column(Integer, ForeignKey("golfers.id"), nullable=False, index=True)
    caddie_id = Column(Integer, ForeignKey("caddies.id"), nullable=False, index=True)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=False)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)  # "HH:mm"
    end_time = Column(String(5), nullable=False)
    total_price = Column(Float, nullable=False, default=0.0)
    status = Column(_enum(BookingStatus, "booking_status"), default=BookingStatus.pending, nullable=False)
    qr_code = Column(Text, nullable=True)
    # golfer -> caddie
    caddie_rating = Column(Integer, nullable=True)
    caddie_review = Column(Text, nullable=True)
    # caddie -> golfer
    golfer_rating = Column(Integer, nullable=True)
    golfer_review = Column(Text, nullable=True)
    payment_id = Column(Integer, nullable=True)  # payments.id, set once a payment record exists
    # Cancellation metadata
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String(10), nullable=True)  # golfer | caddie
    cancellation_reason = Column(Text, nullable=True)
    refund_amount = Column(Float, nullable=True)
    refund_percentage = Column(Float, nullable=True)
    refund_status = Column(_enum(RefundStatus, "refund_status"), nullable=True)
    refund_id = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    golfer = relationship("Golfer")
    caddie = relationship("Caddie")
    club = relationship("Club")

    __table_args__ = (
        Index("ix_bookings_caddie_date", "caddie_id", "date"),
    )


class Payment(Base):
    __tablename__ = "payments"
    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    golfer_id = Column(Integer, ForeignKey("golfers.id"), nullable=False)
    caddie_id = Column(Integer, ForeignKey("caddies.id"), nullable=False)
    amount = Column(Float, nullable=False)
    commission = Column(Float, nullable=False, default=0.0)
    caddie_amount = Column(Float, nullable=False, default=0.0)
    status = Column(_enum(PaymentStatus, "payment_status"), default=PaymentStatus.pending, nullable=False)
    provider_id = Column(String(100), nullable=True)  # preference id at the payment provider
    provider_status = Column(String(50), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    liquidated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    booking = relationship("Booking")
