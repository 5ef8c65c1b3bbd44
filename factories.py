"""
Shared fixtures for the test modules: an isolated in-memory database per test
and small builders for users, clubs, caddies, golfers and bookings.
"""
import os
import unittest
from datetime import date, datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite://")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cadiapp import models
from cadiapp.database import Base
from cadiapp.notifications import RecordingSink

# 2030-01-07 is a Monday (day_of_week=1), 2030-01-08 a Tuesday.
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
CLUB_TZ = "America/Argentina/Buenos_Aires"  # UTC-3, no DST

_counter = {"n": 0}


def _next() -> int:
    _counter["n"] += 1
    return _counter["n"]


def make_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


class DatabaseTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine()
        self.SessionTesting = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self.db = self.SessionTesting()
        self.sink = RecordingSink()

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()


def create_user(db, role=models.UserRole.golfer, email=None, password="not-a-real-hash", first_name="Test", last_name="User"):
    user = models.User(
        email=email or f"user{_next()}@example.com",
        password=password,
        role=role,
        first_name=first_name,
        last_name=last_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_club(db, name="Jockey Club", timezone_name=CLUB_TZ):
    club = models.Club(name=name, address="Av. Márquez 1702", city="San Isidro", province="Buenos Aires",
                       timezone=timezone_name)
    db.add(club)
    db.commit()
    db.refresh(club)
    return club


def create_caddie(db, clubs=(), rate=1000.0, status=models.CaddieStatus.approved, recurring=(), specific=(), user=None):
    """recurring: [(club, day_of_week, ["9-12", ...])]; specific: [(date, ["14-18", ...])]"""
    user = user or create_user(db, role=models.UserRole.caddie)
    caddie = models.Caddie(
        user_id=user.id,
        dni=f"DNI{_next():08d}",
        experience="5 years",
        category=models.CaddieCategory.first,
        suggested_rate=rate,
        status=status,
        rating=0.0,
        total_ratings=0,
    )
    caddie.clubs = list(clubs)
    for club, dow, slots in recurring:
        row = models.RecurringAvailability(club_id=club.id, day_of_week=dow)
        row.time_slots = slots
        caddie.recurring_availability.append(row)
    for day, slots in specific:
        row = models.SpecificAvailability(date=day)
        row.time_slots = slots
        caddie.specific_availability.append(row)
    db.add(caddie)
    db.commit()
    db.refresh(caddie)
    return caddie


def create_golfer(db, user=None, home_club=None):
    user = user or create_user(db, role=models.UserRole.golfer)
    golfer = models.Golfer(user_id=user.id, home_club_id=home_club.id if home_club else None, handicap=12.0,
                           rating=0.0, total_ratings=0)
    db.add(golfer)
    db.commit()
    db.refresh(golfer)
    return golfer


def create_booking(db, golfer, caddie, club, day=MONDAY, start="09:00", end="10:00",
                   status=models.BookingStatus.pending, total_price=1000.0, **extra):
    booking = models.Booking(
        golfer_id=golfer.id,
        caddie_id=caddie.id,
        club_id=club.id,
        date=day,
        start_time=start,
        end_time=end,
        total_price=total_price,
        status=status,
        **extra,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def service_start_utc(day: date, hhmm: str) -> datetime:
    # Buenos Aires is a fixed UTC-3 offset.
    hours, minutes = (int(p) for p in hhmm.split(":"))
    return datetime(day.year, day.month, day.day, hours, minutes, tzinfo=timezone.utc) + timedelta(hours=3)
