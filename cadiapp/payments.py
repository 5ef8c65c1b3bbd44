# cadiapp/payments.py
from __future__ import annotations
import os
from datetime import datetime, timezone
from typing import List, Optional

from dotenv import load_dotenv
from sqlalchemy.orm import Session, joinedload

from cadiapp import models
from cadiapp.booking_rules import Party, can_transition, coerce_status, require_party, resolve_party
from cadiapp.database import SessionLocal
from cadiapp.errors import BadRequestError, NotFoundError
from cadiapp.integrations import mercadopago
from cadiapp.models import BookingStatus, PaymentStatus
from cadiapp.notifications import BOOKING_UPDATED, publish_booking_event
from cadiapp.time_utils import round_half_up

load_dotenv()

COMMISSION_PERCENTAGE = float(os.getenv("COMMISSION_PERCENTAGE", 10))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def split_amount(amount: float, commission_percentage: float = None) -> tuple[int, int]:
    """(commission, caddie_amount) for a payable amount."""
    pct = COMMISSION_PERCENTAGE if commission_percentage is None else commission_percentage
    commission = round_half_up(float(amount or 0) * pct / 100)
    return commission, round_half_up(float(amount or 0)) - commission


def create_payment(db: Session, booking_id: int, user: Optional[models.User] = None, provider=None) -> dict:
    """
    Create (or refresh) the pending payment for an accepted booking and a
    checkout preference for it at the provider.
    """
    provider = provider or mercadopago
    booking = (
        db.query(models.Booking)
        .options(joinedload(models.Booking.club), joinedload(models.Booking.caddie))
        .filter(models.Booking.id == booking_id)
        .first()
    )
    if not booking:
        raise NotFoundError("booking.notFound")
    if user is not None:
        require_party(db, booking, user, Party.golfer)

    if coerce_status(booking.status) != BookingStatus.accepted:
        raise BadRequestError("payment.bookingNotAccepted")

    existing = db.query(models.Payment).filter(models.Payment.booking_id == booking.id).first()
    if existing and existing.status == PaymentStatus.completed:
        raise BadRequestError("payment.alreadyPaid")

    caddie = booking.caddie
    if not caddie:
        raise NotFoundError("caddie.notFound")

    amount = float(caddie.suggested_rate or 0)
    commission, caddie_amount = split_amount(amount)

    if existing:
        payment = existing
        payment.amount = amount
        payment.commission = commission
        payment.caddie_amount = caddie_amount
    else:
        payment = models.Payment(
            booking_id=booking.id,
            golfer_id=booking.golfer_id,
            caddie_id=booking.caddie_id,
            amount=amount,
            commission=commission,
            caddie_amount=caddie_amount,
            status=PaymentStatus.pending,
        )
        db.add(payment)
    db.flush()

    club_name = booking.club.name if booking.club else ""
    try:
        preference = provider.create_preference(
            title=f"Servicio de Caddie - {club_name}".strip(" -"),
            amount=amount,
            external_reference=str(payment.id),
        )
    except Exception as e:
        db.rollback()
        print(f"[PAYMENT] Preference creation failed for booking {booking.id}: {str(e)[:240]}")
        raise BadRequestError("payment.creationFailed")

    payment.provider_id = preference.get("id")
    booking.payment_id = payment.id
    db.commit()
    db.refresh(payment)
    print(f"[PAYMENT] Payment {payment.id} for booking {booking.id}: {amount} (commission {commission})")

    return {
        "payment": payment,
        "preference_id": preference.get("id"),
        "init_point": preference.get("init_point"),
    }


def apply_webhook(db: Session, data: dict, notifier=None) -> Optional[models.Payment]:
    """
    Apply one provider notification. Returns the touched payment, or None when
    the notification is not about one of our payments.
    """
    if not isinstance(data, dict) or data.get("type") != "payment":
        return None
    body = data.get("data") or {}
    if not body.get("id"):
        return None

    reference = data.get("external_reference")
    if not reference:
        return None
    try:
        payment_id = int(reference)
    except (TypeError, ValueError):
        print(f"[PAYMENT] Webhook with unknown reference {reference!r}")
        return None

    payment = db.query(models.Payment).filter(models.Payment.id == payment_id).first()
    if not payment:
        print(f"[PAYMENT] Webhook for missing payment {payment_id}")
        return None
    if data.get("action") not in ("payment.created", "payment.updated"):
        return payment

    provider_status = body.get("status") or "pending"
    payment.provider_status = provider_status

    booking = None
    if provider_status == "approved":
        payment.status = PaymentStatus.completed
        payment.paid_at = _utcnow()
        booking = db.query(models.Booking).filter(models.Booking.id == payment.booking_id).first()
        if booking and can_transition(booking.status, BookingStatus.completed):
            booking.status = BookingStatus.completed
        elif booking:
            print(f"[PAYMENT] Booking {booking.id} left as {coerce_status(booking.status).value} on approval")
            booking = None

    db.commit()
    print(f"[PAYMENT] Webhook applied to payment {payment.id}: {provider_status}")
    if booking is not None:
        db.refresh(booking)
        publish_booking_event(notifier, BOOKING_UPDATED, booking)
    return payment


def process_webhook(data: dict, session_factory=None, notifier=None) -> None:
    """
    Background entry point: owns its session and never raises. The provider
    retries on its own schedule, so failures only need to be logged.
    """
    db = (session_factory or SessionLocal)()
    try:
        apply_webhook(db, data, notifier=notifier)
    except Exception as e:
        db.rollback()
        print(f"[PAYMENT] Webhook processing failed: {type(e).__name__}: {str(e)[:240]}")
    finally:
        db.close()


def get_payment_for_booking(db: Session, booking_id: int, user: Optional[models.User] = None) -> models.Payment:
    payment = (
        db.query(models.Payment)
        .options(joinedload(models.Payment.booking))
        .filter(models.Payment.booking_id == booking_id)
        .first()
    )
    if not payment:
        raise NotFoundError("payment.notFound")
    if user is not None and str(getattr(user.role, "value", user.role)) != models.UserRole.admin.value:
        booking = db.query(models.Booking).filter(models.Booking.id == booking_id).first()
        resolve_party(db, booking, user)
    return payment


def mark_as_liquidated(db: Session, payment_id: int) -> models.Payment:
    payment = db.query(models.Payment).filter(models.Payment.id == payment_id).first()
    if not payment:
        raise NotFoundError("payment.notFound")
    if payment.status != PaymentStatus.completed:
        raise BadRequestError("payment.notCompleted")
    if payment.liquidated_at:
        raise BadRequestError("payment.alreadyLiquidated")

    payment.liquidated_at = _utcnow()
    db.commit()
    db.refresh(payment)
    print(f"[PAYMENT] Payment {payment.id} liquidated: {payment.caddie_amount} to caddie {payment.caddie_id}")
    return payment


def list_pending_liquidations(db: Session) -> List[models.Payment]:
    return (
        db.query(models.Payment)
        .options(joinedload(models.Payment.booking))
        .filter(
            models.Payment.status == PaymentStatus.completed,
            models.Payment.liquidated_at.is_(None),
        )
        .order_by(models.Payment.paid_at.desc())
        .all()
    )
