from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import Unit
from ..settings import settings
from .auth import User, get_current_user


router = APIRouter(prefix="/units", tags=["units"])


class UnitCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=256)
    words: List[str] = Field(min_length=1)
    test_type: Optional[str] = None


class UnitResponse(BaseModel):
    id: str
    title: str
    words: List[str]
    test_type: str


def _to_response(unit: Unit) -> UnitResponse:
    return UnitResponse(id=unit.id, title=unit.title, words=unit.words, test_type=unit.test_type)


@router.post("", response_model=UnitResponse, status_code=201)
def create_unit(req: UnitCreateRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    words: List[str] = []
    seen = set()
    for word in req.words:
        cleaned = word.strip()
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            words.append(cleaned)
    if not words:
        raise HTTPException(status_code=400, detail="a unit needs at least one word")
    unit = Unit(title=req.title.strip(), test_type=(req.test_type or settings.default_test_type).strip())
    unit.words = words
    db.add(unit)
    db.commit()
    db.refresh(unit)
    return _to_response(unit)


@router.get("", response_model=List[UnitResponse])
def list_units(test_type: Optional[str] = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    query = db.query(Unit)
    if test_type:
        query = query.filter(Unit.test_type == test_type)
    return [_to_response(u) for u in query.order_by(Unit.created_at).all()]


@router.get("/{unit_id}", response_model=UnitResponse)
def get_unit(unit_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    unit = db.get(Unit, unit_id)
    if unit is None:
        raise HTTPException(status_code=404, detail="Unit not found")
    return _to_response(unit)
