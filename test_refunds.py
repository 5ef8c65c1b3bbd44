import unittest
from datetime import datetime, timedelta, timezone

from cadiapp.booking_rules import Party
from cadiapp.models import BookingStatus
from cadiapp.refunds import compute_refund, hours_until, refund_percentage_for


class RefundPolicyTests(unittest.TestCase):
    def test_caddie_cancellation_is_always_full(self):
        for hours in (100, 24, 13, 5, 0.5, -2):
            self.assertEqual(refund_percentage_for(BookingStatus.accepted, Party.caddie, hours), 100)

    def test_golfer_cancellation_by_lead_time(self):
        self.assertEqual(refund_percentage_for(BookingStatus.accepted, Party.golfer, 25), 100)
        self.assertEqual(refund_percentage_for(BookingStatus.accepted, Party.golfer, 24), 100)
        self.assertEqual(refund_percentage_for(BookingStatus.accepted, Party.golfer, 13), 50)
        self.assertEqual(refund_percentage_for(BookingStatus.accepted, Party.golfer, 12), 50)
        self.assertEqual(refund_percentage_for(BookingStatus.accepted, Party.golfer, 5), 0)

    def test_pending_booking_is_fully_refunded(self):
        self.assertEqual(refund_percentage_for(BookingStatus.pending, Party.golfer, 5), 100)
        self.assertEqual(refund_percentage_for("pending", "golfer", 1), 100)

    def test_amount_is_rounded_half_up(self):
        info = compute_refund(BookingStatus.accepted, Party.golfer, 13, 1001)
        self.assertEqual(info.refund_percentage, 50)
        self.assertEqual(info.refund_amount, 501)

    def test_hours_reported_with_one_decimal(self):
        info = compute_refund(BookingStatus.accepted, Party.golfer, 12.345, 2000)
        self.assertEqual(info.hours_until_service, 12.3)
        self.assertEqual(info.as_dict()["refund_amount"], 1000)

    def test_hours_until(self):
        start = datetime(2030, 1, 7, 13, 0, tzinfo=timezone.utc)
        self.assertAlmostEqual(hours_until(start, start - timedelta(hours=25, minutes=30)), 25.5)
        self.assertLess(hours_until(start, start + timedelta(hours=1)), 0)


if __name__ == "__main__":
    unittest.main()
