# cadiapp/routers/caddies.py
from __future__ import annotations

from datetime import date as Date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cadiapp import crud, models, schemas
from cadiapp.auth import get_current_user, get_db, require_admin, require_caddie
from cadiapp.availability import search_available_caddies
from cadiapp.i18n import get_language, translate
from cadiapp.routers.bookings import caddie_payload

router = APIRouter(prefix="/api/caddies", tags=["caddies"])


def _availability_payload(caddie: models.Caddie) -> dict:
    return {
        "caddie_id": caddie.id,
        "recurring_availability": [
            {"club_id": r.club_id, "day_of_week": r.day_of_week, "time_slots": r.time_slots}
            for r in sorted(caddie.recurring_availability, key=lambda r: (r.club_id, r.day_of_week))
        ],
        "availability": [
            {"date": s.date, "time_slots": s.time_slots}
            for s in sorted(caddie.specific_availability, key=lambda s: s.date)
        ],
    }


@router.get("/search", response_model=List[schemas.CaddieOut])
def search_caddies(
    club_id: int,
    date: Date,
    start_time: str,
    end_time: str,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """Approved caddies at the club who are free for the whole window."""
    return [caddie_payload(c) for c in search_available_caddies(db, club_id, date, start_time, end_time)]


@router.put("/me/recurring-availability")
def update_recurring_availability(
    req: schemas.RecurringAvailabilityUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_caddie),
    lang: str = Depends(get_language),
):
    caddie = crud.update_recurring_availability(db, current_user, req.recurring_availability)
    return {"message": translate("caddie.availabilityUpdated", lang), "data": _availability_payload(caddie)}


@router.put("/me/availability")
def update_specific_availability(
    req: schemas.SpecificAvailabilityUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_caddie),
    lang: str = Depends(get_language),
):
    caddie = crud.update_specific_availability(db, current_user, req.availability)
    return {"message": translate("caddie.availabilityUpdated", lang), "data": _availability_payload(caddie)}


@router.get("/me/stats")
def month_stats(db: Session = Depends(get_db), current_user: models.User = Depends(require_caddie)):
    return crud.caddie_month_stats(db, current_user)


@router.put("/{caddie_id}/approve")
def approve_caddie(
    caddie_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
    lang: str = Depends(get_language),
):
    caddie = crud.approve_caddie(db, caddie_id)
    return {"message": translate("caddie.approved", lang), "data": caddie_payload(caddie)}


@router.put("/{caddie_id}/reject")
def reject_caddie(
    caddie_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
    lang: str = Depends(get_language),
):
    caddie = crud.reject_caddie(db, caddie_id)
    return {"message": translate("caddie.rejected", lang), "data": caddie_payload(caddie)}


@router.get("/")
def list_caddies(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    caddies, pagination = crud.list_caddies(db, page, limit, status)
    return {"caddies": [caddie_payload(c) for c in caddies], "pagination": pagination}


@router.get("/{caddie_id}")
def get_caddie(caddie_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    """Public profile with clubs and the published schedule."""
    caddie = crud.get_caddie(db, caddie_id)
    availability = _availability_payload(caddie)
    return {
        **caddie_payload(caddie),
        "clubs": [schemas.ClubOut.model_validate(c).model_dump() for c in sorted(caddie.clubs, key=lambda c: c.id)],
        "recurring_availability": availability["recurring_availability"],
        "availability": availability["availability"],
    }
