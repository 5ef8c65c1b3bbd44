from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session, selectinload

from cadiapp import models
from cadiapp.errors import NotFoundError, ValidationError
from cadiapp.time_utils import (
    Interval,
    find_containing,
    merge_intervals,
    parse_hhmm,
    parse_slot,
    subtract_intervals,
)


def day_of_week(target_date: date) -> int:
    # Stored convention: 0=Sunday ... 6=Saturday. Python weekday(): Monday=0.
    return (target_date.weekday() + 1) % 7


def _parse_slots(slots: Iterable[str], source: str) -> List[Interval]:
    parsed: List[Interval] = []
    for slot in slots:
        try:
            parsed.append(parse_slot(slot))
        except ValueError:
            print(f"[AVAIL] Skipping unparseable slot {slot!r} ({source})")
    return parsed


def slots_for_date(recurring, specific, target_date: date, club_id: int) -> List[Interval]:
    """Raw intervals from recurring rows for (club, weekday) plus specific rows for the date."""
    dow = day_of_week(target_date)
    intervals: List[Interval] = []
    for row in recurring or []:
        if row.club_id == club_id and row.day_of_week == dow:
            intervals.extend(_parse_slots(row.time_slots, f"recurring club={club_id} dow={dow}"))
    for row in specific or []:
        if row.date == target_date:
            intervals.extend(_parse_slots(row.time_slots, f"specific date={target_date}"))
    return intervals


def requested_window(start_time: str, end_time: str) -> Interval:
    """Validate a strict "HH:mm" window, raising the matching validation error."""
    try:
        start = parse_hhmm(start_time)
        end = parse_hhmm(end_time, end_of_day=True)
    except ValueError:
        raise ValidationError("validation.invalidTime")
    if end <= start:
        raise ValidationError("validation.endBeforeStart")
    return Interval(start, end)


def booking_interval(booking: models.Booking) -> Optional[Interval]:
    try:
        return Interval(parse_hhmm(booking.start_time), parse_hhmm(booking.end_time, end_of_day=True))
    except ValueError:
        print(f"[AVAIL] Booking {booking.id} has malformed times {booking.start_time}-{booking.end_time}")
        return None


def resolve_free_intervals(recurring, specific, bookings, target_date: date, club_id: int) -> List[Interval]:
    """
    Free time for one caddie on one date at one club.

    Recurring and specific slots are merged (touching slots coalesce, so a
    booking may span 9-12 and 12-15), then every occupying booking is cut out.
    """
    merged = merge_intervals(slots_for_date(recurring, specific, target_date, club_id))
    busy = [iv for iv in (booking_interval(b) for b in bookings or []) if iv is not None]
    return subtract_intervals(merged, busy)


@dataclass
class AvailabilityResult:
    caddie_id: int
    date: date
    club_id: int
    free: List[Interval] = field(default_factory=list)
    requested: Optional[Interval] = None
    containing: Optional[Interval] = None

    @property
    def fits(self) -> Optional[bool]:
        if self.requested is None:
            return None
        return self.containing is not None

    def as_dict(self) -> dict:
        return {
            "caddie_id": self.caddie_id,
            "date": self.date.isoformat(),
            "club_id": self.club_id,
            "available_blocks": [iv.as_dict() for iv in self.free],
            "fits": self.fits,
        }


def occupying_bookings(db: Session, caddie_id: int, target_date: date, exclude_booking_id: Optional[int] = None):
    # Across all clubs: a caddie can only be in one place at a time.
    query = db.query(models.Booking).filter(
        models.Booking.caddie_id == caddie_id,
        models.Booking.date == target_date,
        models.Booking.status.in_(models.OCCUPYING_STATUSES),
    )
    if exclude_booking_id is not None:
        query = query.filter(models.Booking.id != exclude_booking_id)
    return query.all()


def load_caddie(db: Session, caddie_id: int) -> models.Caddie:
    caddie = (
        db.query(models.Caddie)
        .options(
            selectinload(models.Caddie.recurring_availability),
            selectinload(models.Caddie.specific_availability),
        )
        .filter(models.Caddie.id == caddie_id)
        .first()
    )
    if not caddie:
        raise NotFoundError("caddie.notFound")
    return caddie


def resolve_for_caddie(db: Session, caddie: models.Caddie, target_date: date, club_id: int,
                       requested: Optional[Interval] = None) -> AvailabilityResult:
    free = resolve_free_intervals(
        caddie.recurring_availability,
        caddie.specific_availability,
        occupying_bookings(db, caddie.id, target_date),
        target_date,
        club_id,
    )
    result = AvailabilityResult(caddie_id=caddie.id, date=target_date, club_id=club_id, free=free, requested=requested)
    if requested is not None:
        result.containing = find_containing(free, requested)
    return result


def resolve_availability(
    db: Session,
    caddie_id: int,
    target_date: date,
    club_id: int,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
) -> AvailabilityResult:
    if bool(start_time) != bool(end_time):
        raise ValidationError("validation.invalidTime")
    requested = requested_window(start_time, end_time) if start_time else None
    caddie = load_caddie(db, caddie_id)
    return resolve_for_caddie(db, caddie, target_date, club_id, requested)


def is_available(db: Session, caddie_id: int, target_date: date, club_id: int, start_time: str, end_time: str) -> bool:
    return bool(resolve_availability(db, caddie_id, target_date, club_id, start_time, end_time).fits)


def search_available_caddies(db: Session, club_id: int, target_date: date, start_time: str, end_time: str) -> List[models.Caddie]:
    """Approved caddies working at the club whose free time fully covers the window."""
    requested = requested_window(start_time, end_time)
    caddies = (
        db.query(models.Caddie)
        .options(
            selectinload(models.Caddie.recurring_availability),
            selectinload(models.Caddie.specific_availability),
        )
        .filter(
            models.Caddie.status == models.CaddieStatus.approved,
            models.Caddie.clubs.any(models.Club.id == club_id),
        )
        .order_by(models.Caddie.rating.desc(), models.Caddie.id)
        .all()
    )
    return [c for c in caddies if resolve_for_caddie(db, c, target_date, club_id, requested).fits]
