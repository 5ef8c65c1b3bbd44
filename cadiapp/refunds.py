from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime

from dotenv import load_dotenv

from cadiapp.booking_rules import Party, coerce_status
from cadiapp.models import BookingStatus
from cadiapp.time_utils import round_half_up

load_dotenv()

FULL_REFUND_HOURS_BEFORE = float(os.getenv("REFUND_FULL_HOURS", 24))
PARTIAL_REFUND_HOURS_BEFORE = float(os.getenv("REFUND_PARTIAL_HOURS", 12))
PARTIAL_REFUND_PERCENTAGE = int(os.getenv("REFUND_PARTIAL_PERCENTAGE", 50))


@dataclass(frozen=True)
class RefundInfo:
    refund_percentage: int
    refund_amount: int
    hours_until_service: float

    def as_dict(self) -> dict:
        return {
            "refund_amount": self.refund_amount,
            "refund_percentage": self.refund_percentage,
            "hours_until_service": self.hours_until_service,
        }


def hours_until(service_start: datetime, now: datetime) -> float:
    return (service_start - now).total_seconds() / 3600.0


def refund_percentage_for(status, cancelled_by: Party, hours_until_service: float) -> int:
    if Party(cancelled_by) == Party.caddie:
        return 100
    # Nothing was confirmed yet.
    if coerce_status(status) == BookingStatus.pending:
        return 100
    if hours_until_service >= FULL_REFUND_HOURS_BEFORE:
        return 100
    if hours_until_service >= PARTIAL_REFUND_HOURS_BEFORE:
        return PARTIAL_REFUND_PERCENTAGE
    return 0


def compute_refund(status, cancelled_by: Party, hours_until_service: float, total_price: float) -> RefundInfo:
    percentage = refund_percentage_for(status, cancelled_by, hours_until_service)
    amount = round_half_up(float(total_price or 0) * percentage / 100)
    return RefundInfo(
        refund_percentage=percentage,
        refund_amount=amount,
        hours_until_service=round(hours_until_service, 1),
    )
