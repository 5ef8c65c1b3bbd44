# cadiapp/schemas.py

from pydantic import BaseModel, EmailStr
from typing import Optional, List
from datetime import datetime, date

# ------------------------------------------------------------------
# AUTH
# ------------------------------------------------------------------

class Token(BaseModel):
    access_token: str
    token_type: str
    role: Optional[str] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    phone: Optional[str] = None

    model_config = {"from_attributes": True}


# ------------------------------------------------------------------
# CLUBS / PROFILES
# ------------------------------------------------------------------

class ClubCreate(BaseModel):
    name: str
    address: str
    city: str
    province: str
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    timezone: Optional[str] = None  # IANA zone, e.g. "America/Argentina/Buenos_Aires"


class ClubUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    timezone: Optional[str] = None


class ClubOut(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    timezone: Optional[str] = None

    model_config = {"from_attributes": True}


class CaddieOut(BaseModel):
    id: int
    user_id: int
    category: str
    suggested_rate: float
    status: str
    rating: float = 0.0
    total_ratings: int = 0
    photo: Optional[str] = None
    user: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class GolferOut(BaseModel):
    id: int
    user_id: int
    handicap: Optional[float] = None
    rating: float = 0.0
    total_ratings: int = 0
    user: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class RecentCaddieOut(BaseModel):
    caddie_id: int
    user_id: int
    first_name: str
    last_name: str
    photo: Optional[str] = None
    category: str
    suggested_rate: float
    rating: float = 0.0
    total_ratings: int = 0
    last_booking_date: date
    total_services: int


# ------------------------------------------------------------------
# AVAILABILITY
# ------------------------------------------------------------------

class RecurringAvailabilityIn(BaseModel):
    club_id: int
    day_of_week: int  # 0=Sunday ... 6=Saturday
    time_slots: List[str] = []


class SpecificAvailabilityIn(BaseModel):
    date: date
    time_slots: List[str] = []


class RecurringAvailabilityUpdate(BaseModel):
    recurring_availability: List[RecurringAvailabilityIn] = []


class SpecificAvailabilityUpdate(BaseModel):
    availability: List[SpecificAvailabilityIn] = []


# ------------------------------------------------------------------
# BOOKINGS
# ------------------------------------------------------------------

class BookingCreate(BaseModel):
    caddie_id: int
    club_id: int
    date: date
    start_time: str  # "HH:mm"
    end_time: str


class BookingStart(BaseModel):
    qr_data: str


class BookingCancel(BaseModel):
    reason: Optional[str] = None


class BookingRate(BaseModel):
    rating: int
    review: Optional[str] = None


class BookingOut(BaseModel):
    id: int
    golfer_id: int
    caddie_id: int
    club_id: int
    date: date
    start_time: str
    end_time: str
    total_price: float
    status: str
    qr_code: Optional[str] = None
    caddie_rating: Optional[int] = None
    caddie_review: Optional[str] = None
    golfer_rating: Optional[int] = None
    golfer_review: Optional[str] = None
    payment_id: Optional[int] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    refund_amount: Optional[float] = None
    refund_percentage: Optional[float] = None
    refund_status: Optional[str] = None
    created_at: Optional[datetime] = None
    club: Optional[ClubOut] = None
    caddie: Optional[CaddieOut] = None
    golfer: Optional[GolferOut] = None

    model_config = {"from_attributes": True}


# ------------------------------------------------------------------
# PAYMENTS
# ------------------------------------------------------------------

class PaymentOut(BaseModel):
    id: int
    booking_id: int
    golfer_id: int
    caddie_id: int
    amount: float
    commission: float
    caddie_amount: float
    status: str
    provider_id: Optional[str] = None
    provider_status: Optional[str] = None
    paid_at: Optional[datetime] = None
    liquidated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
