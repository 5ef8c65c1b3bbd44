# cadiapp/routers/payments.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from cadiapp import models, payments, schemas
from cadiapp.auth import get_current_user, get_db, get_session_factory, require_admin, require_golfer
from cadiapp.i18n import get_language, translate
from cadiapp.notifications import get_notifier

router = APIRouter(prefix="/api/payments", tags=["payments"])


def payment_payload(p: models.Payment) -> dict:
    return {
        "id": p.id,
        "booking_id": p.booking_id,
        "golfer_id": p.golfer_id,
        "caddie_id": p.caddie_id,
        "amount": float(p.amount or 0.0),
        "commission": float(p.commission or 0.0),
        "caddie_amount": float(p.caddie_amount or 0.0),
        "status": str(getattr(p.status, "value", p.status)),
        "provider_id": p.provider_id,
        "provider_status": p.provider_status,
        "paid_at": p.paid_at,
        "liquidated_at": p.liquidated_at,
        "created_at": p.created_at,
    }


@router.post("/booking/{booking_id}", status_code=201)
def create_payment(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_golfer),
    lang: str = Depends(get_language),
):
    result = payments.create_payment(db, booking_id, current_user)
    return {
        "message": translate("payment.created", lang),
        "data": {
            "payment": payment_payload(result["payment"]),
            "preference_id": result["preference_id"],
            "init_point": result["init_point"],
        },
    }


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    session_factory=Depends(get_session_factory),
    notifier=Depends(get_notifier),
):
    """
    Acknowledge immediately; the notification is applied after the response
    is sent, with its own database session.
    """
    try:
        data = await request.json()
    except Exception as e:
        print(f"[PAYMENT] Webhook body is not JSON: {str(e)[:240]}")
        data = {}
    background_tasks.add_task(payments.process_webhook, data, session_factory, notifier)
    return {"received": True}


@router.get("/booking/{booking_id}", response_model=schemas.PaymentOut)
def get_booking_payment(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return payment_payload(payments.get_payment_for_booking(db, booking_id, current_user))


@router.put("/{payment_id}/liquidate")
def liquidate_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
    lang: str = Depends(get_language),
):
    payment = payments.mark_as_liquidated(db, payment_id)
    return {"message": translate("payment.liquidated", lang), "data": payment_payload(payment)}


@router.get("/pending-liquidations", response_model=List[schemas.PaymentOut])
def pending_liquidations(db: Session = Depends(get_db), _=Depends(require_admin)):
    return [payment_payload(p) for p in payments.list_pending_liquidations(db)]
