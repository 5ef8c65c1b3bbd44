from __future__ import annotations

import base64
import io
import json
import math
from dataclasses import dataclass
from datetime import datetime

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from cadiapp.errors import BadRequestError


# Scans within this distance of the scheduled start are accepted (clock / zone skew).
MAX_SKEW_MS = 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class QRData:
    booking_id: str
    timestamp: int  # epoch milliseconds of the scheduled service start


def to_epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def build_payload(booking_id, start: datetime) -> str:
    """Minimal payload: just enough to bind a scan to one booking and its start."""
    return json.dumps({"bookingId": str(booking_id), "timestamp": to_epoch_ms(start)})


def parse_payload(raw: str) -> QRData:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        raise BadRequestError("booking.invalidQR")
    if not isinstance(data, dict) or not data.get("bookingId"):
        raise BadRequestError("booking.invalidQR")

    raw_ts = data.get("timestamp")
    try:
        value = float(raw_ts)
    except (TypeError, ValueError):
        value = 0.0
    # inf / nan (e.g. 1e999) count as missing, like any other non-number.
    timestamp = int(value) if math.isfinite(value) else 0
    return QRData(booking_id=str(data["bookingId"]), timestamp=timestamp)


def verify_binding(raw: str, booking_id, start: datetime) -> QRData:
    data = parse_payload(raw)
    if data.booking_id != str(booking_id):
        raise BadRequestError("booking.qrMismatch")
    if data.timestamp <= 0:
        raise BadRequestError("booking.qrInvalidTimestamp")
    if abs(to_epoch_ms(start) - data.timestamp) > MAX_SKEW_MS:
        raise BadRequestError("booking.qrDateMismatch")
    return data


def render_data_url(payload: str) -> str:
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=1)
    qr.add_data(payload)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()
