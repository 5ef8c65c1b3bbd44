import unittest
from types import SimpleNamespace

import factories
from factories import MONDAY, TUESDAY, create_booking, create_caddie, create_club, create_golfer
from cadiapp import models
from cadiapp.availability import (
    day_of_week,
    is_available,
    resolve_availability,
    resolve_free_intervals,
    search_available_caddies,
)
from cadiapp.errors import NotFoundError, ValidationError
from cadiapp.time_utils import Interval


def _row(**kw):
    slots = kw.pop("slots")
    return SimpleNamespace(time_slots=slots, **kw)


class PureResolverTests(unittest.TestCase):
    def test_day_of_week_counts_from_sunday(self):
        self.assertEqual(day_of_week(MONDAY), 1)
        self.assertEqual(day_of_week(TUESDAY), 2)
        self.assertEqual(day_of_week(MONDAY.replace(day=6)), 0)  # Sunday
        self.assertEqual(day_of_week(MONDAY.replace(day=12)), 6)  # Saturday

    def test_recurring_is_club_scoped_and_specific_is_not(self):
        recurring = [
            _row(club_id=1, day_of_week=1, slots=["9-12"]),
            _row(club_id=2, day_of_week=1, slots=["14-18"]),
        ]
        specific = [_row(date=MONDAY, slots=["12-15"]), _row(date=TUESDAY, slots=["7-8"])]
        free = resolve_free_intervals(recurring, specific, [], MONDAY, 1)
        self.assertEqual(free, [Interval(540, 900)])

    def test_unparseable_slots_are_skipped(self):
        recurring = [_row(club_id=1, day_of_week=1, slots=["9-12", "garbage", "15-14"])]
        self.assertEqual(resolve_free_intervals(recurring, [], [], MONDAY, 1), [Interval(540, 720)])

    def test_no_entries_is_empty_not_error(self):
        self.assertEqual(resolve_free_intervals([], [], [], TUESDAY, 1), [])

    def test_bookings_are_cut_out(self):
        recurring = [_row(club_id=1, day_of_week=1, slots=["9-15"])]
        bookings = [SimpleNamespace(id=1, start_time="10:00", end_time="11:00")]
        free = resolve_free_intervals(recurring, [], bookings, MONDAY, 1)
        self.assertEqual(free, [Interval(540, 600), Interval(660, 900)])


class ResolverDatabaseTests(factories.DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.club = create_club(self.db)
        self.other_club = create_club(self.db, name="San Andrés")
        self.caddie = create_caddie(
            self.db,
            clubs=[self.club, self.other_club],
            recurring=[(self.club, 1, ["9-12", "12-15"]), (self.other_club, 1, ["16-18"])],
        )
        self.golfer = create_golfer(self.db)

    def test_merged_window_fits(self):
        result = resolve_availability(self.db, self.caddie.id, MONDAY, self.club.id, "10:00", "13:00")
        self.assertTrue(result.fits)
        self.assertEqual(result.as_dict()["available_blocks"], [{"start": "09:00", "end": "15:00"}])

    def test_window_past_the_block_does_not_fit(self):
        self.assertFalse(is_available(self.db, self.caddie.id, MONDAY, self.club.id, "10:00", "16:00"))

    def test_fits_is_none_without_window(self):
        result = resolve_availability(self.db, self.caddie.id, MONDAY, self.club.id)
        self.assertIsNone(result.fits)

    def test_occupying_bookings_are_subtracted(self):
        create_booking(self.db, self.golfer, self.caddie, self.club, start="10:00", end="11:00",
                       status=models.BookingStatus.accepted)
        create_booking(self.db, self.golfer, self.caddie, self.club, start="13:00", end="14:00",
                       status=models.BookingStatus.cancelled)
        result = resolve_availability(self.db, self.caddie.id, MONDAY, self.club.id)
        self.assertEqual(result.free, [Interval(540, 600), Interval(660, 900)])

    def test_bookings_at_other_clubs_block_the_caddie(self):
        create_booking(self.db, self.golfer, self.caddie, self.other_club, start="11:00", end="12:00")
        self.assertFalse(is_available(self.db, self.caddie.id, MONDAY, self.club.id, "10:30", "11:30"))

    def test_unknown_caddie(self):
        with self.assertRaises(NotFoundError):
            resolve_availability(self.db, 9999, MONDAY, self.club.id)

    def test_invalid_window(self):
        with self.assertRaises(ValidationError) as ctx:
            resolve_availability(self.db, self.caddie.id, MONDAY, self.club.id, "9:00", "10:00")
        self.assertEqual(ctx.exception.translation_key, "validation.invalidTime")
        with self.assertRaises(ValidationError) as ctx:
            resolve_availability(self.db, self.caddie.id, MONDAY, self.club.id, "11:00", "10:00")
        self.assertEqual(ctx.exception.translation_key, "validation.endBeforeStart")

    def test_half_window_is_rejected(self):
        for start, end in (("10:00", None), (None, "11:00")):
            with self.assertRaises(ValidationError) as ctx:
                resolve_availability(self.db, self.caddie.id, MONDAY, self.club.id, start, end)
            self.assertEqual(ctx.exception.translation_key, "validation.invalidTime")

    def test_search_returns_only_free_approved_caddies(self):
        busy = create_caddie(self.db, clubs=[self.club], recurring=[(self.club, 1, ["9-12"])])
        create_booking(self.db, self.golfer, busy, self.club, start="09:00", end="10:00")
        create_caddie(self.db, clubs=[self.club], recurring=[(self.club, 1, ["9-12"])],
                      status=models.CaddieStatus.pending)
        elsewhere = create_caddie(self.db, clubs=[self.other_club], recurring=[(self.other_club, 1, ["9-12"])])

        found = search_available_caddies(self.db, self.club.id, MONDAY, "09:00", "10:00")
        ids = [c.id for c in found]
        self.assertEqual(ids, [self.caddie.id])
        self.assertNotIn(elsewhere.id, ids)


if __name__ == "__main__":
    unittest.main()
