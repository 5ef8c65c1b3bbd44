# cadiapp/routers/bookings.py
from __future__ import annotations

from datetime import date as Date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cadiapp import crud, models, schemas
from cadiapp.auth import get_current_user, get_db, require_caddie, require_golfer
from cadiapp.availability import resolve_availability
from cadiapp.errors import NotFoundError
from cadiapp.i18n import get_language, translate
from cadiapp.notifications import get_notifier
from cadiapp.qr import render_data_url
from cadiapp.suggestions import check_availability, suggest_alternatives

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


def _to_status_str(value) -> Optional[str]:
    if value is None:
        return None
    return str(getattr(value, "value", value))


def _user_payload(user: Optional[models.User]) -> Optional[dict]:
    if user is None:
        return None
    return {
        "id": user.id,
        "first_name": user.first_name or "",
        "last_name": user.last_name or "",
        "phone": getattr(user, "phone", None),
    }


def booking_payload(b: models.Booking) -> dict:
    # Plain values only: enums become their string value.
    club = b.club
    caddie = b.caddie
    golfer = b.golfer
    return {
        "id": b.id,
        "golfer_id": b.golfer_id,
        "caddie_id": b.caddie_id,
        "club_id": b.club_id,
        "date": b.date,
        "start_time": b.start_time,
        "end_time": b.end_time,
        "total_price": float(b.total_price or 0.0),
        "status": _to_status_str(b.status),
        "qr_code": b.qr_code,
        "caddie_rating": b.caddie_rating,
        "caddie_review": b.caddie_review,
        "golfer_rating": b.golfer_rating,
        "golfer_review": b.golfer_review,
        "payment_id": b.payment_id,
        "cancelled_at": b.cancelled_at,
        "cancelled_by": b.cancelled_by,
        "cancellation_reason": b.cancellation_reason,
        "refund_amount": b.refund_amount,
        "refund_percentage": b.refund_percentage,
        "refund_status": _to_status_str(b.refund_status),
        "created_at": b.created_at,
        "club": {
            "id": club.id,
            "name": club.name,
            "address": club.address,
            "city": club.city,
            "timezone": club.timezone,
        } if club else None,
        "caddie": caddie_payload(caddie) if caddie else None,
        "golfer": {
            "id": golfer.id,
            "user_id": golfer.user_id,
            "handicap": golfer.handicap,
            "rating": float(golfer.rating or 0.0),
            "total_ratings": int(golfer.total_ratings or 0),
            "user": _user_payload(golfer.user),
        } if golfer else None,
    }


def caddie_payload(c: models.Caddie) -> dict:
    return {
        "id": c.id,
        "user_id": c.user_id,
        "category": _to_status_str(c.category),
        "suggested_rate": float(c.suggested_rate or 0.0),
        "status": _to_status_str(c.status),
        "rating": float(c.rating or 0.0),
        "total_ratings": int(c.total_ratings or 0),
        "photo": c.photo,
        "user": _user_payload(c.user),
    }


def _ok(key: str, lang: str, data=None) -> dict:
    return {"message": translate(key, lang), "data": data}

# ------------------------------------------------------------------
# Availability
# ------------------------------------------------------------------

@router.get("/check-availability")
def check_caddie_availability(
    caddie_id: int,
    club_id: int,
    date: Date,
    start_time: str,
    end_time: str,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return check_availability(db, caddie_id, date, club_id, start_time, end_time)


@router.get("/caddie/{caddie_id}/availability")
def caddie_availability(
    caddie_id: int,
    club_id: int,
    date: Date,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return resolve_availability(db, caddie_id, date, club_id, start_time, end_time).as_dict()


@router.get("/caddie/{caddie_id}/alternatives")
def caddie_alternatives(
    caddie_id: int,
    club_id: int,
    date: Date,
    start_time: str,
    end_time: str,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return suggest_alternatives(db, caddie_id, date, club_id, start_time, end_time)

# ------------------------------------------------------------------
# Create / list
# ------------------------------------------------------------------

@router.post("/", status_code=201)
def create_booking(
    booking_in: schemas.BookingCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_golfer),
    notifier=Depends(get_notifier),
    lang: str = Depends(get_language),
):
    booking = crud.create_booking(db, current_user, booking_in, notifier=notifier)
    return _ok("booking.created", lang, booking_payload(booking))


@router.get("/golfer", response_model=List[schemas.BookingOut])
def golfer_bookings(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_golfer),
):
    return [booking_payload(b) for b in crud.list_bookings_for_golfer(db, current_user, status)]


@router.get("/caddie", response_model=List[schemas.BookingOut])
def caddie_bookings(
    status: Optional[str] = Query(None),
    date: Optional[Date] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_caddie),
):
    return [booking_payload(b) for b in crud.list_bookings_for_caddie(db, current_user, status, date)]


@router.get("/me", response_model=List[schemas.BookingOut])
def my_bookings(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return [booking_payload(b) for b in crud.list_my_bookings(db, current_user, status)]


@router.get("/next-service")
def next_service(db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    booking = crud.get_next_service(db, current_user)
    return {"data": booking_payload(booking) if booking else None}


@router.get("/today-schedule", response_model=List[schemas.BookingOut])
def today_schedule(db: Session = Depends(get_db), current_user: models.User = Depends(require_caddie)):
    return [booking_payload(b) for b in crud.get_today_schedule(db, current_user)]

# ------------------------------------------------------------------
# Single booking
# ------------------------------------------------------------------

@router.get("/{booking_id}", response_model=schemas.BookingOut)
def get_booking(booking_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return booking_payload(crud.get_booking(db, booking_id, current_user))


@router.get("/{booking_id}/qr")
def booking_qr(booking_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    booking = crud.get_booking(db, booking_id, current_user)
    if not booking.qr_code:
        raise NotFoundError("booking.qrMissing")
    return {"booking_id": booking.id, "payload": booking.qr_code, "image": render_data_url(booking.qr_code)}


@router.put("/{booking_id}/accept")
def accept_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    notifier=Depends(get_notifier),
    lang: str = Depends(get_language),
):
    booking = crud.accept_booking(db, booking_id, current_user, notifier=notifier)
    return _ok("booking.accepted", lang, booking_payload(booking))


@router.put("/{booking_id}/reject")
def reject_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    notifier=Depends(get_notifier),
    lang: str = Depends(get_language),
):
    booking = crud.reject_booking(db, booking_id, current_user, notifier=notifier)
    return _ok("booking.rejected", lang, booking_payload(booking))


@router.post("/{booking_id}/start")
def start_booking(
    booking_id: int,
    req: schemas.BookingStart,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    notifier=Depends(get_notifier),
    lang: str = Depends(get_language),
):
    booking = crud.start_booking(db, booking_id, current_user, req.qr_data, notifier=notifier)
    return _ok("booking.started", lang, booking_payload(booking))


@router.put("/{booking_id}/complete")
def complete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    notifier=Depends(get_notifier),
    lang: str = Depends(get_language),
):
    booking = crud.complete_booking(db, booking_id, current_user, notifier=notifier)
    return _ok("booking.completed", lang, booking_payload(booking))


@router.put("/{booking_id}/cancel")
def cancel_booking(
    booking_id: int,
    req: Optional[schemas.BookingCancel] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    notifier=Depends(get_notifier),
    lang: str = Depends(get_language),
):
    reason = req.reason if req else None
    booking, refund = crud.cancel_booking(db, booking_id, current_user, reason=reason, notifier=notifier)
    data = booking_payload(booking)
    data["refund_info"] = refund.as_dict()
    return _ok("booking.cancelled", lang, data)


@router.put("/{booking_id}/rate")
def rate_caddie(
    booking_id: int,
    req: schemas.BookingRate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    notifier=Depends(get_notifier),
    lang: str = Depends(get_language),
):
    booking = crud.rate_caddie(db, booking_id, current_user, req.rating, req.review, notifier=notifier)
    return _ok("booking.rated", lang, booking_payload(booking))


@router.put("/{booking_id}/rate-golfer")
def rate_golfer(
    booking_id: int,
    req: schemas.BookingRate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    notifier=Depends(get_notifier),
    lang: str = Depends(get_language),
):
    booking = crud.rate_golfer(db, booking_id, current_user, req.rating, req.review, notifier=notifier)
    return _ok("booking.rated", lang, booking_payload(booking))
