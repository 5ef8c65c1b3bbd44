from __future__ import annotations

from typing import Iterable, Tuple

from sqlalchemy.orm import Session

from cadiapp import models


def aggregate(ratings: Iterable[int]) -> Tuple[float, int]:
    values = [float(r) for r in ratings if r is not None]
    if not values:
        return 0.0, 0
    return sum(values) / len(values), len(values)


def recompute_caddie_rating(db: Session, caddie_id: int) -> models.Caddie:
    """
    Full re-scan of the caddie's rated, completed bookings.

    Recomputing instead of incrementing keeps the aggregate correct even if an
    earlier write only partially succeeded.
    """
    caddie = db.query(models.Caddie).filter(models.Caddie.id == caddie_id).first()
    rows = (
        db.query(models.Booking.caddie_rating)
        .filter(
            models.Booking.caddie_id == caddie_id,
            models.Booking.status == models.BookingStatus.completed,
            models.Booking.caddie_rating.isnot(None),
        )
        .all()
    )
    caddie.rating, caddie.total_ratings = aggregate(r[0] for r in rows)
    return caddie


def recompute_golfer_rating(db: Session, golfer_id: int) -> models.Golfer:
    golfer = db.query(models.Golfer).filter(models.Golfer.id == golfer_id).first()
    rows = (
        db.query(models.Booking.golfer_rating)
        .filter(
            models.Booking.golfer_id == golfer_id,
            models.Booking.status == models.BookingStatus.completed,
            models.Booking.golfer_rating.isnot(None),
        )
        .all()
    )
    golfer.rating, golfer.total_ratings = aggregate(r[0] for r in rows)
    return golfer
