import json
import unittest
from datetime import datetime, timedelta, timezone

from cadiapp.errors import BadRequestError
from cadiapp.qr import build_payload, parse_payload, render_data_url, to_epoch_ms, verify_binding

START = datetime(2030, 1, 7, 13, 0, tzinfo=timezone.utc)


class QRBindingTests(unittest.TestCase):
    def assertKey(self, ctx, key):
        self.assertEqual(ctx.exception.translation_key, key)

    def test_payload_round_trip(self):
        raw = build_payload(42, START)
        self.assertEqual(json.loads(raw), {"bookingId": "42", "timestamp": to_epoch_ms(START)})
        data = verify_binding(raw, 42, START)
        self.assertEqual(data.booking_id, "42")

    def test_not_json(self):
        with self.assertRaises(BadRequestError) as ctx:
            parse_payload("not json")
        self.assertKey(ctx, "booking.invalidQR")

    def test_missing_booking_id(self):
        with self.assertRaises(BadRequestError) as ctx:
            parse_payload(json.dumps({"timestamp": 1}))
        self.assertKey(ctx, "booking.invalidQR")

    def test_other_booking(self):
        with self.assertRaises(BadRequestError) as ctx:
            verify_binding(build_payload(7, START), 42, START)
        self.assertKey(ctx, "booking.qrMismatch")

    def test_non_numeric_timestamp(self):
        for raw in (
            json.dumps({"bookingId": "42", "timestamp": "soon"}),
            '{"bookingId": "42", "timestamp": 1e999}',
            '{"bookingId": "42", "timestamp": Infinity}',
            '{"bookingId": "42", "timestamp": NaN}',
        ):
            with self.assertRaises(BadRequestError, msg=raw) as ctx:
                verify_binding(raw, 42, START)
            self.assertKey(ctx, "booking.qrInvalidTimestamp")

    def test_skew_within_a_day_is_accepted(self):
        verify_binding(build_payload(42, START + timedelta(hours=23)), 42, START)

    def test_distant_date_is_rejected(self):
        with self.assertRaises(BadRequestError) as ctx:
            verify_binding(build_payload(42, START + timedelta(days=2)), 42, START)
        self.assertKey(ctx, "booking.qrDateMismatch")

    def test_render_data_url(self):
        url = render_data_url(build_payload(42, START))
        self.assertTrue(url.startswith("data:image/png;base64,"))


if __name__ == "__main__":
    unittest.main()
