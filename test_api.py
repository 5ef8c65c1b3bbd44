import json
import unittest

from fastapi.testclient import TestClient

import factories
from factories import MONDAY, TUESDAY, create_booking, create_caddie, create_club, create_golfer, create_user
from cadiapp import models
from cadiapp.auth import create_access_token, get_db, get_password_hash, get_session_factory
from cadiapp.main import app
from cadiapp.notifications import get_notifier


class ApiTestCase(factories.DatabaseTestCase):
    def setUp(self):
        super().setUp()

        def override_get_db():
            db = self.SessionTesting()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_session_factory] = lambda: self.SessionTesting
        app.dependency_overrides[get_notifier] = lambda: self.sink
        self.client = TestClient(app)

        self.club = create_club(self.db)
        self.caddie = create_caddie(self.db, clubs=[self.club], rate=1200.0, recurring=[(self.club, 1, ["9-12", "12-15"])])
        self.golfer = create_golfer(self.db)
        self.admin = create_user(self.db, role=models.UserRole.admin)

    def tearDown(self):
        app.dependency_overrides.clear()
        super().tearDown()

    def headers(self, user, lang=None):
        headers = {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}
        if lang:
            headers["X-App-Language"] = lang
        return headers

    def create(self, start="10:00", end="13:00", day=MONDAY):
        return self.client.post(
            "/api/bookings/",
            json={"caddie_id": self.caddie.id, "club_id": self.club.id, "date": str(day),
                  "start_time": start, "end_time": end},
            headers=self.headers(self.golfer.user, "en"),
        )


class BookingApiTests(ApiTestCase):
    def test_health(self):
        res = self.client.get("/health")
        self.assertEqual(res.status_code, 200)
        self.assertIn("ok", res.json())

    def test_requires_token(self):
        res = self.client.get("/api/bookings/golfer")
        self.assertEqual(res.status_code, 401)

    def test_full_lifecycle(self):
        res = self.create()
        self.assertEqual(res.status_code, 201, res.text)
        body = res.json()
        self.assertEqual(body["message"], "Booking created successfully")
        booking_id = body["data"]["id"]
        self.assertEqual(body["data"]["status"], "pending")
        self.assertEqual(body["data"]["total_price"], 3600)

        caddie_headers = self.headers(self.caddie.user)
        res = self.client.put(f"/api/bookings/{booking_id}/accept", headers=caddie_headers)
        self.assertEqual(res.status_code, 200, res.text)
        qr_payload = res.json()["data"]["qr_code"]
        self.assertEqual(json.loads(qr_payload)["bookingId"], str(booking_id))

        res = self.client.get(f"/api/bookings/{booking_id}/qr", headers=caddie_headers)
        self.assertTrue(res.json()["image"].startswith("data:image/png;base64,"))

        res = self.client.post(f"/api/bookings/{booking_id}/start", json={"qr_data": qr_payload}, headers=caddie_headers)
        self.assertEqual(res.json()["data"]["status"], "in-progress")

        res = self.client.put(f"/api/bookings/{booking_id}/complete", headers=caddie_headers)
        self.assertEqual(res.json()["data"]["status"], "completed")

        res = self.client.put(f"/api/bookings/{booking_id}/rate", json={"rating": 4},
                              headers=self.headers(self.golfer.user))
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["data"]["caddie"]["rating"], 4.0)

        res = self.client.get(f"/api/bookings/{booking_id}", headers=self.headers(self.golfer.user))
        self.assertEqual(res.json()["caddie_rating"], 4)

        events = [event for _, event, _ in self.sink.events]
        self.assertIn("booking:created", events)
        self.assertIn("booking:updated", events)

    def test_errors_are_localized(self):
        self.assertEqual(self.create().status_code, 201)
        res = self.create(start="11:00", end="12:00")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json(), {
            "status": "error",
            "kind": "bad_request",
            "key": "booking.alreadyBooked",
            "message": "Caddie already has a booking at that time",
        })

        res = self.client.get(f"/api/bookings/{999}", headers=self.headers(self.golfer.user))
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["message"], "Reserva no encontrada")

    def test_wrong_state_is_conflict(self):
        booking_id = self.create().json()["data"]["id"]
        res = self.client.put(f"/api/bookings/{booking_id}/complete", headers=self.headers(self.caddie.user))
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["kind"], "invalid_state")

    def test_cancel_returns_refund_info(self):
        booking_id = self.create().json()["data"]["id"]
        res = self.client.put(f"/api/bookings/{booking_id}/cancel", json={"reason": "rain"},
                              headers=self.headers(self.golfer.user))
        self.assertEqual(res.status_code, 200, res.text)
        data = res.json()["data"]
        self.assertEqual(data["status"], "cancelled")
        self.assertEqual(data["refund_info"]["refund_percentage"], 100)

    def test_caddie_cannot_create_bookings(self):
        res = self.client.post(
            "/api/bookings/",
            json={"caddie_id": self.caddie.id, "club_id": self.club.id, "date": str(MONDAY),
                  "start_time": "09:00", "end_time": "10:00"},
            headers=self.headers(self.caddie.user),
        )
        self.assertEqual(res.status_code, 403)

    def test_availability_and_alternatives(self):
        headers = self.headers(self.golfer.user)
        params = {"club_id": self.club.id, "date": str(MONDAY), "start_time": "10:00", "end_time": "14:00"}
        res = self.client.get(f"/api/bookings/caddie/{self.caddie.id}/availability", params=params, headers=headers)
        self.assertEqual(res.json()["available_blocks"], [{"start": "09:00", "end": "15:00"}])
        self.assertTrue(res.json()["fits"])

        params["date"] = str(TUESDAY)
        res = self.client.get(f"/api/bookings/caddie/{self.caddie.id}/alternatives", params=params, headers=headers)
        self.assertFalse(res.json()["is_available"])
        self.assertEqual(res.json()["alternatives"][0]["suggested_start"], "10:00")

        res = self.client.get("/api/bookings/check-availability",
                              params={**params, "caddie_id": self.caddie.id}, headers=headers)
        self.assertFalse(res.json()["available"])

        res = self.client.get("/api/caddies/search", params={**params, "date": str(MONDAY)}, headers=headers)
        self.assertEqual([c["id"] for c in res.json()], [self.caddie.id])


class CaddieAndPaymentApiTests(ApiTestCase):
    def test_admin_approves_caddie(self):
        pending = create_caddie(self.db, clubs=[self.club], status=models.CaddieStatus.pending)
        res = self.client.put(f"/api/caddies/{pending.id}/approve", headers=self.headers(self.golfer.user))
        self.assertEqual(res.status_code, 403)
        res = self.client.put(f"/api/caddies/{pending.id}/approve", headers=self.headers(self.admin, "en"))
        self.assertEqual(res.json()["message"], "Caddie approved")
        self.assertEqual(res.json()["data"]["status"], "approved")

    def test_caddie_updates_availability(self):
        res = self.client.put(
            "/api/caddies/me/recurring-availability",
            json={"recurring_availability": [{"club_id": self.club.id, "day_of_week": 2, "time_slots": ["8-10"]}]},
            headers=self.headers(self.caddie.user),
        )
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["data"]["recurring_availability"],
                         [{"club_id": self.club.id, "day_of_week": 2, "time_slots": ["8-10"]}])

        res = self.client.put(
            "/api/caddies/me/availability",
            json={"availability": [{"date": str(TUESDAY), "time_slots": ["nonsense"]}]},
            headers=self.headers(self.caddie.user),
        )
        self.assertEqual(res.status_code, 422)
        self.assertEqual(res.json()["key"], "validation.invalidSlot")

    def test_payment_webhook_flow(self):
        booking_id = self.create().json()["data"]["id"]
        self.client.put(f"/api/bookings/{booking_id}/accept", headers=self.headers(self.caddie.user))

        res = self.client.post(f"/api/payments/booking/{booking_id}", headers=self.headers(self.golfer.user))
        self.assertEqual(res.status_code, 201, res.text)
        payment = res.json()["data"]["payment"]
        self.assertEqual(payment["amount"], 1200.0)

        res = self.client.post("/api/payments/webhook", json={
            "type": "payment",
            "action": "payment.updated",
            "data": {"id": "MP-1", "status": "approved"},
            "external_reference": str(payment["id"]),
        })
        self.assertEqual(res.json(), {"received": True})

        res = self.client.get(f"/api/payments/booking/{booking_id}", headers=self.headers(self.golfer.user))
        self.assertEqual(res.json()["status"], "completed")

        res = self.client.get("/api/payments/pending-liquidations", headers=self.headers(self.admin))
        self.assertEqual([p["id"] for p in res.json()], [payment["id"]])
        res = self.client.put(f"/api/payments/{payment['id']}/liquidate", headers=self.headers(self.admin))
        self.assertEqual(res.status_code, 200, res.text)


class DirectoryApiTests(ApiTestCase):
    def test_club_crud_is_admin_only(self):
        body = {"name": "Olivos Golf Club", "address": "Ruta 8 km 33", "city": "Olivos", "province": "Buenos Aires",
                "timezone": "America/Argentina/Buenos_Aires"}
        res = self.client.post("/api/clubs/", json=body, headers=self.headers(self.golfer.user))
        self.assertEqual(res.status_code, 403)

        res = self.client.post("/api/clubs/", json=body, headers=self.headers(self.admin, "en"))
        self.assertEqual(res.status_code, 201, res.text)
        self.assertEqual(res.json()["message"], "Club created")
        club_id = res.json()["data"]["id"]

        res = self.client.put(f"/api/clubs/{club_id}", json={"phone": "011-4444"}, headers=self.headers(self.admin))
        self.assertEqual(res.json()["data"]["phone"], "011-4444")
        self.assertEqual(res.json()["data"]["name"], "Olivos Golf Club")

        res = self.client.get("/api/clubs/", params={"limit": 1})
        self.assertEqual(res.json()["pagination"], {"page": 1, "limit": 1, "total": 2, "pages": 2})
        self.assertEqual(res.json()["clubs"][0]["name"], "Jockey Club")

        res = self.client.delete(f"/api/clubs/{club_id}", headers=self.headers(self.admin))
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(self.client.get(f"/api/clubs/{club_id}").status_code, 404)

    def test_club_with_caddies_cannot_be_deleted(self):
        res = self.client.delete(f"/api/clubs/{self.club.id}", headers=self.headers(self.admin))
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["key"], "club.inUse")

    def test_unknown_timezone_is_rejected(self):
        res = self.client.put(f"/api/clubs/{self.club.id}", json={"timezone": "Mars/Olympus"},
                              headers=self.headers(self.admin))
        self.assertEqual(res.status_code, 422)
        self.assertEqual(res.json()["key"], "validation.invalidTimezone")

    def test_caddie_list_and_detail(self):
        pending = create_caddie(self.db, clubs=[self.club], status=models.CaddieStatus.pending)
        headers = self.headers(self.golfer.user)

        res = self.client.get("/api/caddies/", params={"status": "pending"}, headers=headers)
        self.assertEqual([c["id"] for c in res.json()["caddies"]], [pending.id])
        self.assertEqual(res.json()["pagination"]["total"], 1)

        res = self.client.get("/api/caddies/", params={"status": "retired"}, headers=headers)
        self.assertEqual(res.status_code, 422)

        res = self.client.get(f"/api/caddies/{self.caddie.id}", headers=headers)
        self.assertEqual(res.status_code, 200, res.text)
        detail = res.json()
        self.assertEqual([c["id"] for c in detail["clubs"]], [self.club.id])
        self.assertEqual(detail["recurring_availability"],
                         [{"club_id": self.club.id, "day_of_week": 1, "time_slots": ["9-12", "12-15"]}])

        self.assertEqual(self.client.get("/api/caddies/999", headers=headers).status_code, 404)

    def test_recent_caddies(self):
        other = create_caddie(self.db, clubs=[self.club])
        create_booking(self.db, self.golfer, self.caddie, self.club, day=MONDAY, status=models.BookingStatus.completed)
        create_booking(self.db, self.golfer, self.caddie, self.club, day=TUESDAY, status=models.BookingStatus.completed)
        create_booking(self.db, self.golfer, other, self.club, day=MONDAY, status=models.BookingStatus.completed)
        create_booking(self.db, self.golfer, other, self.club, day=TUESDAY, status=models.BookingStatus.cancelled)

        res = self.client.get("/api/golfers/me/recent-caddies", headers=self.headers(self.golfer.user))
        self.assertEqual(res.status_code, 200, res.text)
        rows = res.json()
        self.assertEqual([r["caddie_id"] for r in rows], [self.caddie.id, other.id])
        self.assertEqual(rows[0]["total_services"], 2)
        self.assertEqual(rows[0]["last_booking_date"], str(TUESDAY))
        self.assertEqual(rows[1]["total_services"], 1)

        res = self.client.get("/api/golfers/me/recent-caddies", headers=self.headers(self.caddie.user))
        self.assertEqual(res.status_code, 403)


class LoginTests(ApiTestCase):
    def test_login(self):
        user = create_user(self.db, role=models.UserRole.golfer, email="golfer@example.com",
                           password=get_password_hash("secret123"))
        res = self.client.post("/login", json={"email": user.email, "password": "secret123"})
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["role"], "golfer")

        res = self.client.post("/login", json={"email": user.email, "password": "nope"})
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["key"], "auth.invalidCredentials")


if __name__ == "__main__":
    unittest.main()
