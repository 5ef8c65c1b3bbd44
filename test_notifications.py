import threading
import unittest

import factories
from factories import create_booking, create_caddie, create_club, create_golfer
from cadiapp.notifications import (
    BOOKING_UPDATED,
    LiveConnectionRegistry,
    RecordingSink,
    get_notifier,
    publish_booking_event,
)


class RegistryTests(unittest.TestCase):
    def test_fans_out_to_every_session(self):
        registry = LiveConnectionRegistry()
        received = []
        registry.connect(1, "phone", lambda event, payload: received.append(("phone", event)))
        registry.connect(1, "tablet", lambda event, payload: received.append(("tablet", event)))
        registry.connect(2, "phone", lambda event, payload: received.append(("other", event)))

        registry.publish(1, BOOKING_UPDATED, {"id": 5})
        self.assertEqual(sorted(received), [("phone", BOOKING_UPDATED), ("tablet", BOOKING_UPDATED)])

    def test_failing_session_does_not_stop_others(self):
        registry = LiveConnectionRegistry()
        received = []

        def broken(event, payload):
            raise ConnectionError("gone")

        registry.connect(1, "a", broken)
        registry.connect(1, "b", lambda event, payload: received.append(event))
        registry.publish(1, BOOKING_UPDATED, {})
        self.assertEqual(received, [BOOKING_UPDATED])

    def test_disconnect(self):
        registry = LiveConnectionRegistry()
        registry.connect(1, "a", lambda e, p: None)
        registry.disconnect(1, "a")
        registry.disconnect(1, "missing")
        self.assertEqual(registry.connection_count(1), 0)

    def test_default_notifier_is_the_shared_registry(self):
        self.assertIsInstance(get_notifier(), LiveConnectionRegistry)
        self.assertIs(get_notifier(), get_notifier())

    def test_concurrent_connects_and_disconnects(self):
        registry = LiveConnectionRegistry()

        def churn(worker):
            for i in range(50):
                registry.connect(1, f"{worker}-{i}", lambda e, p: None)
                registry.publish(1, BOOKING_UPDATED, {})
                registry.disconnect(1, f"{worker}-{i}")

        threads = [threading.Thread(target=churn, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(registry.connection_count(1), 0)


class PublishBookingEventTests(factories.DatabaseTestCase):
    def test_payload_carries_both_parties(self):
        club = create_club(self.db)
        caddie = create_caddie(self.db, clubs=[club])
        golfer = create_golfer(self.db)
        booking = create_booking(self.db, golfer, caddie, club)

        sink = RecordingSink()
        publish_booking_event(sink, BOOKING_UPDATED, booking)
        self.assertEqual({uid for uid, _, _ in sink.events}, {golfer.user_id, caddie.user_id})
        payload = sink.events[0][2]
        self.assertEqual(payload["status"], "pending")
        self.assertEqual(payload["caddie"], {"id": caddie.id, "user_id": caddie.user_id})

    def test_no_sink_is_a_no_op(self):
        publish_booking_event(None, BOOKING_UPDATED, object())


if __name__ == "__main__":
    unittest.main()
