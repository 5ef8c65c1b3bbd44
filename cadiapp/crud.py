# cadiapp/crud.py
from __future__ import annotations
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from cadiapp import models, schemas
from cadiapp.auth import create_access_token, verify_password
from cadiapp.availability import (
    booking_interval,
    load_caddie,
    occupying_bookings,
    requested_window,
    resolve_for_caddie,
)
from cadiapp.booking_rules import (
    Party,
    coerce_status,
    ensure_transition,
    require_party,
    resolve_party,
    service_start,
)
from cadiapp.errors import (
    BadRequestError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from cadiapp.models import BookingStatus
from cadiapp.notifications import BOOKING_CREATED, BOOKING_UPDATED, publish_booking_event
from cadiapp.qr import build_payload, verify_binding
from cadiapp.ratings import recompute_caddie_rating, recompute_golfer_rating
from cadiapp.refunds import RefundInfo, compute_refund, hours_until
from cadiapp.time_utils import Interval, parse_slot, round_half_up


def _role(user: models.User) -> str:
    return str(getattr(user.role, "value", user.role) or "")


def authenticate_user(db: Session, email: str, password: str):
    user = db.query(models.User).filter(models.User.email == email).first()
    if not user or not verify_password(password, user.password):
        raise UnauthorizedError("auth.invalidCredentials")
    token = create_access_token({
        "sub": user.email,
        "role": _role(user),
    })
    return {
        "access_token": token,
        "token_type": "bearer",
        "role": _role(user),
    }

# ------------------------------------------------------------------
# Profile lookups
# ------------------------------------------------------------------

def golfer_for_user(db: Session, user: models.User) -> models.Golfer:
    golfer = db.query(models.Golfer).filter(models.Golfer.user_id == user.id).first()
    if not golfer:
        raise NotFoundError("golfer.notFound")
    return golfer


def caddie_for_user(db: Session, user: models.User) -> models.Caddie:
    caddie = db.query(models.Caddie).filter(models.Caddie.user_id == user.id).first()
    if not caddie:
        raise NotFoundError("caddie.notFound")
    return caddie


def _booking_query(db: Session):
    return db.query(models.Booking).options(
        joinedload(models.Booking.club),
        joinedload(models.Booking.golfer).joinedload(models.Golfer.user),
        joinedload(models.Booking.caddie).joinedload(models.Caddie.user),
    )


def load_booking(db: Session, booking_id: int) -> models.Booking:
    booking = _booking_query(db).filter(models.Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError("booking.notFound")
    return booking


def _commit(db: Session, booking: models.Booking) -> models.Booking:
    db.commit()
    db.refresh(booking)
    return booking

# ------------------------------------------------------------------
# Booking creation
# ------------------------------------------------------------------

def _find_overlap(db: Session, caddie_id: int, target_date: date, requested: Interval) -> Optional[models.Booking]:
    for existing in occupying_bookings(db, caddie_id, target_date):
        interval = booking_interval(existing)
        if interval is not None and interval.overlaps(requested):
            return existing
    return None


def create_booking(db: Session, user: models.User, booking_in: schemas.BookingCreate, notifier=None) -> models.Booking:
    golfer = golfer_for_user(db, user)
    caddie = load_caddie(db, booking_in.caddie_id)
    if coerce_caddie_status(caddie.status) != models.CaddieStatus.approved:
        raise BadRequestError("caddie.pending")

    club = db.query(models.Club).filter(models.Club.id == booking_in.club_id).first()
    if not club:
        raise NotFoundError("club.notFound")

    requested = requested_window(booking_in.start_time, booking_in.end_time)

    if _find_overlap(db, caddie.id, booking_in.date, requested):
        raise BadRequestError("booking.alreadyBooked")

    result = resolve_for_caddie(db, caddie, booking_in.date, club.id, requested)
    if not result.fits:
        raise BadRequestError("caddie.notAvailable")

    total_price = round_half_up(float(caddie.suggested_rate or 0) * requested.duration / 60)

    booking = models.Booking(
        golfer_id=golfer.id,
        caddie_id=caddie.id,
        club_id=club.id,
        date=booking_in.date,
        start_time=booking_in.start_time.strip(),
        end_time=booking_in.end_time.strip(),
        total_price=total_price,
        status=BookingStatus.pending,
    )

    # Another request may have taken the window while we were resolving.
    if _find_overlap(db, caddie.id, booking_in.date, requested):
        raise BadRequestError("booking.alreadyBooked")

    db.add(booking)
    db.commit()
    booking = load_booking(db, booking.id)
    print(f"[BOOKING] Created {booking.id}: caddie={caddie.id} club={club.id} {booking.date} {requested} price={total_price}")

    publish_booking_event(notifier, BOOKING_CREATED, booking)
    return booking


def coerce_caddie_status(value) -> models.CaddieStatus:
    return models.CaddieStatus(str(getattr(value, "value", value)))

# ------------------------------------------------------------------
# Transitions
# ------------------------------------------------------------------

def accept_booking(db: Session, booking_id: int, user: models.User, notifier=None) -> models.Booking:
    booking = load_booking(db, booking_id)
    require_party(db, booking, user, Party.caddie)
    ensure_transition(booking, BookingStatus.accepted)

    booking.status = BookingStatus.accepted
    booking.qr_code = build_payload(booking.id, service_start(booking))
    booking = _commit(db, booking)
    print(f"[BOOKING] Accepted {booking.id}")

    publish_booking_event(notifier, BOOKING_UPDATED, booking)
    return booking


def reject_booking(db: Session, booking_id: int, user: models.User, notifier=None) -> models.Booking:
    booking = load_booking(db, booking_id)
    require_party(db, booking, user, Party.caddie)
    ensure_transition(booking, BookingStatus.rejected)

    booking.status = BookingStatus.rejected
    booking = _commit(db, booking)
    print(f"[BOOKING] Rejected {booking.id}")

    publish_booking_event(notifier, BOOKING_UPDATED, booking)
    return booking


def start_booking(db: Session, booking_id: int, user: models.User, qr_data: str, notifier=None) -> models.Booking:
    booking = load_booking(db, booking_id)
    require_party(db, booking, user, Party.caddie)
    ensure_transition(booking, BookingStatus.in_progress)
    verify_binding(qr_data, booking.id, service_start(booking))

    booking.status = BookingStatus.in_progress
    booking = _commit(db, booking)
    print(f"[BOOKING] Started {booking.id}")

    publish_booking_event(notifier, BOOKING_UPDATED, booking)
    return booking


def complete_booking(db: Session, booking_id: int, user: models.User, notifier=None) -> models.Booking:
    booking = load_booking(db, booking_id)
    require_party(db, booking, user, Party.caddie)
    ensure_transition(booking, BookingStatus.completed)

    booking.status = BookingStatus.completed
    booking = _commit(db, booking)
    print(f"[BOOKING] Completed {booking.id}")

    publish_booking_event(notifier, BOOKING_UPDATED, booking)
    return booking


def cancel_booking(
    db: Session,
    booking_id: int,
    user: models.User,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
    notifier=None,
) -> Tuple[models.Booking, RefundInfo]:
    booking = load_booking(db, booking_id)
    party = resolve_party(db, booking, user)
    ensure_transition(booking, BookingStatus.cancelled, translation_key="booking.cannotCancel")

    now = now or datetime.now(timezone.utc)
    refund = compute_refund(
        booking.status,
        party,
        hours_until(service_start(booking), now),
        booking.total_price,
    )

    booking.status = BookingStatus.cancelled
    booking.cancelled_by = party.value
    booking.cancelled_at = now.astimezone(timezone.utc).replace(tzinfo=None)
    booking.cancellation_reason = (reason or "").strip() or None
    booking.refund_amount = refund.refund_amount
    booking.refund_percentage = refund.refund_percentage
    booking.refund_status = (
        models.RefundStatus.pending if booking.payment_id and refund.refund_amount > 0 else None
    )
    booking = _commit(db, booking)
    print(
        f"[BOOKING] Cancelled {booking.id} by {party.value}: "
        f"{refund.refund_percentage}% ({refund.refund_amount}) at {refund.hours_until_service}h before service"
    )

    publish_booking_event(notifier, BOOKING_UPDATED, booking)
    return booking, refund

# ------------------------------------------------------------------
# Ratings
# ------------------------------------------------------------------

def _validate_rating(rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("validation.invalidRating")
    return rating


def rate_caddie(db: Session, booking_id: int, user: models.User, rating, review: Optional[str] = None,
                notifier=None) -> models.Booking:
    """Golfer rates the caddie of a completed booking, once."""
    booking = load_booking(db, booking_id)
    require_party(db, booking, user, Party.golfer)
    if coerce_status(booking.status) != BookingStatus.completed:
        raise InvalidStateError(params={"status": coerce_status(booking.status).value})
    if booking.caddie_rating is not None:
        raise BadRequestError("booking.alreadyRated")

    booking.caddie_rating = _validate_rating(rating)
    booking.caddie_review = review
    db.flush()
    caddie = recompute_caddie_rating(db, booking.caddie_id)
    booking = _commit(db, booking)
    print(f"[BOOKING] Caddie {caddie.id} rated {rating} on {booking.id} -> {caddie.rating:.2f} ({caddie.total_ratings})")

    publish_booking_event(notifier, BOOKING_UPDATED, booking)
    return booking


def rate_golfer(db: Session, booking_id: int, user: models.User, rating, review: Optional[str] = None,
                notifier=None) -> models.Booking:
    """Caddie rates the golfer of a completed booking, once."""
    booking = load_booking(db, booking_id)
    require_party(db, booking, user, Party.caddie)
    if coerce_status(booking.status) != BookingStatus.completed:
        raise InvalidStateError(params={"status": coerce_status(booking.status).value})
    if booking.golfer_rating is not None:
        raise BadRequestError("booking.alreadyRated")

    booking.golfer_rating = _validate_rating(rating)
    booking.golfer_review = review
    db.flush()
    golfer = recompute_golfer_rating(db, booking.golfer_id)
    booking = _commit(db, booking)
    print(f"[BOOKING] Golfer {golfer.id} rated {rating} on {booking.id} -> {golfer.rating:.2f} ({golfer.total_ratings})")

    publish_booking_event(notifier, BOOKING_UPDATED, booking)
    return booking

# ------------------------------------------------------------------
# Reads
# ------------------------------------------------------------------

def get_booking(db: Session, booking_id: int, user: models.User) -> models.Booking:
    booking = load_booking(db, booking_id)
    if _role(user) != models.UserRole.admin.value:
        resolve_party(db, booking, user)
    return booking


def _filter_status(query, status: Optional[str]):
    if status:
        try:
            query = query.filter(models.Booking.status == BookingStatus(status))
        except ValueError:
            raise ValidationError("validation.invalidFormat")
    return query


def list_bookings_for_golfer(db: Session, user: models.User, status: Optional[str] = None) -> List[models.Booking]:
    golfer = golfer_for_user(db, user)
    query = _filter_status(_booking_query(db).filter(models.Booking.golfer_id == golfer.id), status)
    return query.order_by(models.Booking.date.desc(), models.Booking.start_time.desc()).all()


def list_bookings_for_caddie(db: Session, user: models.User, status: Optional[str] = None,
                             target_date: Optional[date] = None) -> List[models.Booking]:
    caddie = caddie_for_user(db, user)
    query = _filter_status(_booking_query(db).filter(models.Booking.caddie_id == caddie.id), status)
    if target_date:
        query = query.filter(models.Booking.date == target_date)
    return query.order_by(models.Booking.date.desc(), models.Booking.start_time.desc()).all()


def list_my_bookings(db: Session, user: models.User, status: Optional[str] = None) -> List[models.Booking]:
    if _role(user) == models.UserRole.caddie.value:
        return list_bookings_for_caddie(db, user, status)
    if _role(user) == models.UserRole.golfer.value:
        return list_bookings_for_golfer(db, user, status)
    raise ForbiddenError()


_ACTIVE_STATUSES = (BookingStatus.accepted, BookingStatus.in_progress)


def get_next_service(db: Session, user: models.User, today: Optional[date] = None) -> Optional[models.Booking]:
    today = today or date.today()
    query = _booking_query(db).filter(
        models.Booking.date >= today,
        models.Booking.status.in_(_ACTIVE_STATUSES),
    )
    role = _role(user)
    if role == models.UserRole.golfer.value:
        golfer = db.query(models.Golfer).filter(models.Golfer.user_id == user.id).first()
        if not golfer:
            return None
        query = query.filter(models.Booking.golfer_id == golfer.id)
    elif role == models.UserRole.caddie.value:
        caddie = db.query(models.Caddie).filter(models.Caddie.user_id == user.id).first()
        if not caddie:
            return None
        query = query.filter(models.Booking.caddie_id == caddie.id)
    else:
        raise ForbiddenError()
    return query.order_by(models.Booking.date, models.Booking.start_time).first()


def get_today_schedule(db: Session, user: models.User, today: Optional[date] = None) -> List[models.Booking]:
    caddie = db.query(models.Caddie).filter(models.Caddie.user_id == user.id).first()
    if not caddie:
        return []
    today = today or date.today()
    return (
        _booking_query(db)
        .filter(
            models.Booking.caddie_id == caddie.id,
            models.Booking.date == today,
            models.Booking.status.in_(_ACTIVE_STATUSES),
        )
        .order_by(models.Booking.start_time)
        .all()
    )

# ------------------------------------------------------------------
# Caddie availability / vetting
# ------------------------------------------------------------------

def _validate_slots(slots) -> List[str]:
    cleaned = []
    for slot in slots or []:
        try:
            parse_slot(slot)
        except ValueError:
            raise ValidationError("validation.invalidSlot", params={"slot": slot})
        cleaned.append(str(slot).strip())
    return cleaned


def update_recurring_availability(db: Session, user: models.User,
                                  entries: List[schemas.RecurringAvailabilityIn]) -> models.Caddie:
    """Replace the caddie's weekly pattern. Every club must be one the caddie works at."""
    caddie = load_caddie(db, caddie_for_user(db, user).id)
    club_ids = {c.id for c in caddie.clubs}

    rows = []
    for entry in entries or []:
        if entry.club_id not in club_ids:
            raise BadRequestError("club.notAssigned", params={"clubId": entry.club_id})
        if not 0 <= entry.day_of_week <= 6:
            raise ValidationError("validation.invalidDayOfWeek", params={"day": entry.day_of_week})
        row = models.RecurringAvailability(club_id=entry.club_id, day_of_week=entry.day_of_week)
        row.time_slots = _validate_slots(entry.time_slots)
        rows.append(row)

    caddie.recurring_availability = rows
    db.commit()
    db.refresh(caddie)
    print(f"[AVAIL] Caddie {caddie.id} recurring availability replaced ({len(rows)} entries)")
    return caddie


def update_specific_availability(db: Session, user: models.User,
                                 entries: List[schemas.SpecificAvailabilityIn]) -> models.Caddie:
    caddie = load_caddie(db, caddie_for_user(db, user).id)

    rows = []
    for entry in entries or []:
        row = models.SpecificAvailability(date=entry.date)
        row.time_slots = _validate_slots(entry.time_slots)
        rows.append(row)

    caddie.specific_availability = rows
    db.commit()
    db.refresh(caddie)
    print(f"[AVAIL] Caddie {caddie.id} specific availability replaced ({len(rows)} dates)")
    return caddie


def _set_caddie_status(db: Session, caddie_id: int, status: models.CaddieStatus) -> models.Caddie:
    caddie = db.query(models.Caddie).filter(models.Caddie.id == caddie_id).first()
    if not caddie:
        raise NotFoundError("caddie.notFound")
    caddie.status = status
    db.commit()
    db.refresh(caddie)
    print(f"[CADDIE] {caddie.id} -> {status.value}")
    return caddie


def approve_caddie(db: Session, caddie_id: int) -> models.Caddie:
    return _set_caddie_status(db, caddie_id, models.CaddieStatus.approved)


def reject_caddie(db: Session, caddie_id: int) -> models.Caddie:
    return _set_caddie_status(db, caddie_id, models.CaddieStatus.rejected)


def caddie_month_stats(db: Session, user: models.User, today: Optional[date] = None) -> dict:
    caddie = caddie_for_user(db, user)
    today = today or date.today()
    first_day = today.replace(day=1)
    next_month = date(first_day.year + (first_day.month // 12), first_day.month % 12 + 1, 1)

    bookings = (
        db.query(models.Booking)
        .filter(
            models.Booking.caddie_id == caddie.id,
            models.Booking.date >= first_day,
            models.Booking.date < next_month,
        )
        .all()
    )

    def count(status: BookingStatus) -> int:
        return sum(1 for b in bookings if coerce_status(b.status) == status)

    earnings = sum(float(b.total_price or 0) for b in bookings if coerce_status(b.status) == BookingStatus.completed)
    return {
        "month": first_day.strftime("%Y-%m"),
        "total_bookings": len(bookings),
        "completed_bookings": count(BookingStatus.completed),
        "pending_bookings": count(BookingStatus.pending),
        "accepted_bookings": count(BookingStatus.accepted),
        "estimated_earnings": round_half_up(earnings),
    }

# ------------------------------------------------------------------
# Clubs
# ------------------------------------------------------------------

def _pagination(page: int, limit: int, total: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "pages": -(-total // limit) if limit else 0}


def _validate_timezone(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip() or None
    if value is None:
        return None
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError("validation.invalidTimezone", params={"timezone": value})
    return value


def get_club(db: Session, club_id: int) -> models.Club:
    club = db.query(models.Club).filter(models.Club.id == club_id).first()
    if not club:
        raise NotFoundError("club.notFound")
    return club


def list_clubs(db: Session, page: int = 1, limit: int = 10) -> Tuple[List[models.Club], dict]:
    query = db.query(models.Club)
    total = query.count()
    clubs = query.order_by(models.Club.name, models.Club.id).offset((page - 1) * limit).limit(limit).all()
    return clubs, _pagination(page, limit, total)


def create_club(db: Session, club_in: schemas.ClubCreate) -> models.Club:
    data = club_in.model_dump()
    data["timezone"] = _validate_timezone(data.get("timezone"))
    club = models.Club(**data)
    db.add(club)
    db.commit()
    db.refresh(club)
    print(f"[CLUB] Created {club.id}: {club.name}")
    return club


def update_club(db: Session, club_id: int, club_in: schemas.ClubUpdate) -> models.Club:
    club = get_club(db, club_id)
    data = club_in.model_dump(exclude_unset=True)
    if "timezone" in data:
        data["timezone"] = _validate_timezone(data["timezone"])
    for field, value in data.items():
        if value is None and field in ("name", "address", "city", "province"):
            continue
        setattr(club, field, value)
    db.commit()
    db.refresh(club)
    print(f"[CLUB] Updated {club.id}: {sorted(data)}")
    return club


def delete_club(db: Session, club_id: int) -> None:
    """Only clubs with no bookings and no caddies assigned can go."""
    club = get_club(db, club_id)
    has_bookings = db.query(models.Booking.id).filter(models.Booking.club_id == club.id).first() is not None
    has_caddies = db.query(models.Caddie.id).filter(models.Caddie.clubs.any(models.Club.id == club.id)).first() is not None
    if has_bookings or has_caddies:
        raise BadRequestError("club.inUse")

    db.query(models.RecurringAvailability).filter(models.RecurringAvailability.club_id == club.id).delete()
    db.query(models.Golfer).filter(models.Golfer.home_club_id == club.id).update({"home_club_id": None})
    db.delete(club)
    db.commit()
    print(f"[CLUB] Deleted {club_id}")

# ------------------------------------------------------------------
# Caddie directory
# ------------------------------------------------------------------

def get_caddie(db: Session, caddie_id: int) -> models.Caddie:
    return load_caddie(db, caddie_id)


def list_caddies(db: Session, page: int = 1, limit: int = 10,
                 status: Optional[str] = None) -> Tuple[List[models.Caddie], dict]:
    query = db.query(models.Caddie)
    if status:
        try:
            query = query.filter(models.Caddie.status == models.CaddieStatus(status))
        except ValueError:
            raise ValidationError("validation.invalidFormat")
    total = query.count()
    caddies = (
        query.options(joinedload(models.Caddie.user))
        .order_by(models.Caddie.created_at.desc(), models.Caddie.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return caddies, _pagination(page, limit, total)

# ------------------------------------------------------------------
# Golfer history
# ------------------------------------------------------------------

def recent_caddies(db: Session, user: models.User, limit: int = 5) -> List[dict]:
    """Caddies the golfer has completed services with, most recent first."""
    golfer = db.query(models.Golfer).filter(models.Golfer.user_id == user.id).first()
    if not golfer:
        return []

    last_date = func.max(models.Booking.date)
    rows = (
        db.query(models.Booking.caddie_id, last_date, func.count(models.Booking.id))
        .filter(
            models.Booking.golfer_id == golfer.id,
            models.Booking.status == BookingStatus.completed,
        )
        .group_by(models.Booking.caddie_id)
        .order_by(last_date.desc(), models.Booking.caddie_id)
        .limit(limit)
        .all()
    )
    if not rows:
        return []

    caddies = {
        c.id: c
        for c in db.query(models.Caddie)
        .options(joinedload(models.Caddie.user))
        .filter(models.Caddie.id.in_([caddie_id for caddie_id, _, _ in rows]))
        .all()
    }

    recent = []
    for caddie_id, last_booking_date, total_services in rows:
        caddie = caddies.get(caddie_id)
        if caddie is None:
            continue
        recent.append({
            "caddie_id": caddie.id,
            "user_id": caddie.user_id,
            "first_name": caddie.user.first_name if caddie.user else "",
            "last_name": caddie.user.last_name if caddie.user else "",
            "photo": caddie.photo,
            "category": str(getattr(caddie.category, "value", caddie.category)),
            "suggested_rate": float(caddie.suggested_rate or 0.0),
            "rating": float(caddie.rating or 0.0),
            "total_ratings": int(caddie.total_ratings or 0),
            "last_booking_date": last_booking_date,
            "total_services": int(total_services),
        })
    return recent
