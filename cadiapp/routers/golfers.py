# cadiapp/routers/golfers.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cadiapp import crud, models, schemas
from cadiapp.auth import get_db, require_golfer

router = APIRouter(prefix="/api/golfers", tags=["golfers"])


@router.get("/me/recent-caddies", response_model=List[schemas.RecentCaddieOut])
def recent_caddies(
    limit: int = Query(5, ge=1, le=20),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_golfer),
):
    """Caddies this golfer finished rounds with, latest first."""
    return crud.recent_caddies(db, current_user, limit)
