# cadiapp/notifications.py
"""
Booking change notifications.

The booking core only knows the `NotificationSink` interface: given a user id,
an event name and a payload, deliver it to that user's live channels. Which
transport sits behind it (websockets, push, nothing at all) is decided where
the app is assembled, never inside the core.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Protocol

from cadiapp import models


BOOKING_CREATED = "booking:created"
BOOKING_UPDATED = "booking:updated"


class NotificationSink(Protocol):
    def publish(self, user_id: int, event: str, payload: dict) -> None:
        ...


class RecordingSink:
    """Keeps every published event in memory; used by tests and local tooling."""

    def __init__(self):
        self.events: List[tuple[int, str, dict]] = []

    def publish(self, user_id: int, event: str, payload: dict) -> None:
        self.events.append((user_id, event, payload))

    def for_user(self, user_id: int) -> List[tuple[str, dict]]:
        return [(event, payload) for uid, event, payload in self.events if uid == user_id]


class LiveConnectionRegistry:
    """
    In-process registry of live sessions per user; the app-wide default sink.

    A transport (websocket endpoint, SSE stream) registers one callback per
    open connection; `publish` logs the event and fans it out to all of them.
    A failing callback does not stop the others. Every access to the session
    table holds the lock.
    """

    def __init__(self):
        self._connections: Dict[int, Dict[str, Callable[[str, dict], None]]] = defaultdict(dict)
        self._lock = threading.Lock()

    def connect(self, user_id: int, connection_id: str, send: Callable[[str, dict], None]) -> None:
        with self._lock:
            self._connections[user_id][connection_id] = send

    def disconnect(self, user_id: int, connection_id: str) -> None:
        with self._lock:
            sessions = self._connections.get(user_id)
            if not sessions:
                return
            sessions.pop(connection_id, None)
            if not sessions:
                self._connections.pop(user_id, None)

    def connection_count(self, user_id: int) -> int:
        with self._lock:
            return len(self._connections.get(user_id, {}))

    def publish(self, user_id: int, event: str, payload: dict) -> None:
        with self._lock:
            targets = list(self._connections.get(user_id, {}).items())
        print(
            f"[NOTIFY] {event} -> user:{user_id} booking={payload.get('id')} "
            f"status={payload.get('status')} sessions={len(targets)}"
        )
        # Callbacks run outside the lock.
        for connection_id, send in targets:
            try:
                send(event, payload)
            except Exception as e:
                print(f"[NOTIFY] Delivery to user:{user_id} ({connection_id}) failed: {str(e)[:240]}")


def booking_event_payload(booking: models.Booking) -> dict:
    status = getattr(booking.status, "value", booking.status)
    golfer_user_id = booking.golfer.user_id if booking.golfer else None
    caddie_user_id = booking.caddie.user_id if booking.caddie else None
    return {
        "id": booking.id,
        "status": status,
        "date": booking.date.isoformat() if booking.date else None,
        "start_time": booking.start_time,
        "end_time": booking.end_time,
        "club_id": booking.club_id,
        "total_price": booking.total_price,
        "golfer": {"id": booking.golfer_id, "user_id": golfer_user_id},
        "caddie": {"id": booking.caddie_id, "user_id": caddie_user_id},
    }


def publish_booking_event(sink: Optional[NotificationSink], event: str, booking: models.Booking) -> None:
    """Notify both parties. Never raises: a failed notification must not fail the booking."""
    if sink is None:
        return
    try:
        payload = booking_event_payload(booking)
        recipients = [p["user_id"] for p in (payload["golfer"], payload["caddie"]) if p["user_id"] is not None]
    except Exception as e:
        print(f"[NOTIFY] Could not build payload for booking {getattr(booking, 'id', None)}: {str(e)[:240]}")
        return

    for user_id in recipients:
        try:
            sink.publish(user_id, event, payload)
        except Exception as e:
            print(f"[NOTIFY] {event} to user:{user_id} failed: {str(e)[:240]}")


live_connections = LiveConnectionRegistry()


def get_notifier() -> NotificationSink:
    return live_connections
