# cadiapp/routers/clubs.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cadiapp import crud, models, schemas
from cadiapp.auth import get_db, require_admin
from cadiapp.i18n import get_language, translate

router = APIRouter(prefix="/api/clubs", tags=["clubs"])


def club_payload(club: models.Club) -> dict:
    return schemas.ClubOut.model_validate(club).model_dump()


@router.get("/")
def list_clubs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    clubs, pagination = crud.list_clubs(db, page, limit)
    return {"clubs": [club_payload(c) for c in clubs], "pagination": pagination}


@router.get("/{club_id}", response_model=schemas.ClubOut)
def get_club(club_id: int, db: Session = Depends(get_db)):
    return crud.get_club(db, club_id)


@router.post("/", status_code=201)
def create_club(
    req: schemas.ClubCreate,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
    lang: str = Depends(get_language),
):
    club = crud.create_club(db, req)
    return {"message": translate("club.created", lang), "data": club_payload(club)}


@router.put("/{club_id}")
def update_club(
    club_id: int,
    req: schemas.ClubUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
    lang: str = Depends(get_language),
):
    club = crud.update_club(db, club_id, req)
    return {"message": translate("club.updated", lang), "data": club_payload(club)}


@router.delete("/{club_id}")
def delete_club(
    club_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
    lang: str = Depends(get_language),
):
    crud.delete_club(db, club_id)
    return {"message": translate("club.deleted", lang), "data": None}
