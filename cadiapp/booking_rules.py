from __future__ import annotations

import enum
import os
from datetime import datetime
from typing import Dict, FrozenSet

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from cadiapp import models
from cadiapp.errors import ForbiddenError, InvalidStateError
from cadiapp.models import BookingStatus
from cadiapp.time_utils import combine_local

load_dotenv()

# Booking dates are timezone-less calendar dates; this zone places them on the
# timeline when a club has no zone of its own.
DEFAULT_CLUB_TIMEZONE = os.getenv("DEFAULT_CLUB_TIMEZONE", "America/Argentina/Buenos_Aires")


class Party(str, enum.Enum):
    golfer = "golfer"
    caddie = "caddie"


TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.pending: frozenset({BookingStatus.accepted, BookingStatus.rejected, BookingStatus.cancelled}),
    # Completing straight from accepted is allowed: the QR start step is best-effort.
    BookingStatus.accepted: frozenset({BookingStatus.in_progress, BookingStatus.completed, BookingStatus.cancelled}),
    BookingStatus.in_progress: frozenset({BookingStatus.completed}),
    BookingStatus.completed: frozenset(),
    BookingStatus.cancelled: frozenset(),
    BookingStatus.rejected: frozenset(),
}


def coerce_status(value) -> BookingStatus:
    if isinstance(value, BookingStatus):
        return value
    return BookingStatus(str(getattr(value, "value", value)))


def can_transition(current, target) -> bool:
    return coerce_status(target) in TRANSITIONS.get(coerce_status(current), frozenset())


def ensure_transition(booking: models.Booking, target: BookingStatus, translation_key: str = "booking.invalidStatus") -> None:
    if not can_transition(booking.status, target):
        raise InvalidStateError(
            translation_key,
            params={"status": coerce_status(booking.status).value, "target": target.value},
        )


def resolve_party(db: Session, booking: models.Booking, user: models.User) -> Party:
    """
    Map the caller to the side of the booking they own.

    The role on the token only picks which profile to look up; ownership is
    always checked against the booking's golfer/caddie ids.
    """
    role = str(getattr(user.role, "value", user.role) or "")
    if role == Party.golfer.value:
        golfer = db.query(models.Golfer).filter(models.Golfer.user_id == user.id).first()
        if golfer and golfer.id == booking.golfer_id:
            return Party.golfer
    elif role == Party.caddie.value:
        caddie = db.query(models.Caddie).filter(models.Caddie.user_id == user.id).first()
        if caddie and caddie.id == booking.caddie_id:
            return Party.caddie
    raise ForbiddenError()


def require_party(db: Session, booking: models.Booking, user: models.User, party: Party) -> None:
    if resolve_party(db, booking, user) != party:
        raise ForbiddenError()


def club_zone(club: models.Club | None) -> str:
    return (getattr(club, "timezone", None) or "").strip() or DEFAULT_CLUB_TIMEZONE


def service_start(booking: models.Booking) -> datetime:
    """Scheduled start as an aware datetime in the club's reference zone."""
    return combine_local(booking.date, booking.start_time, club_zone(booking.club))
