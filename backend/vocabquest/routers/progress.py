from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import LeaderboardEntry, Profile, UserProgress
from .auth import User, get_current_user


router = APIRouter(tags=["progress"])


class ProgressRow(BaseModel):
    unit_id: str
    game_type: str
    best_score: int
    attempts: int
    total_time_seconds: int
    total_xp: int
    completed: bool


class ProfileResponse(BaseModel):
    username: str
    total_xp: int
    level: int
    study_streak: int
    longest_streak: int
    last_study_date: Optional[date]
    progress: List[ProgressRow]


class LeaderboardRow(BaseModel):
    rank: int
    username: str
    total_xp: int
    level: int
    study_streak: int


@router.get("/progress/me", response_model=ProfileResponse)
def my_progress(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    profile = db.get(Profile, user.username)
    rows = (
        db.query(UserProgress)
        .filter(UserProgress.username == user.username)
        .order_by(UserProgress.unit_id, UserProgress.game_type)
        .all()
    )
    return ProfileResponse(
        username=user.username,
        total_xp=profile.total_xp if profile else 0,
        level=profile.level if profile else 1,
        study_streak=profile.study_streak if profile else 0,
        longest_streak=profile.longest_streak if profile else 0,
        last_study_date=profile.last_study_date if profile else None,
        progress=[
            ProgressRow(
                unit_id=r.unit_id,
                game_type=r.game_type,
                best_score=r.best_score,
                attempts=r.attempts,
                total_time_seconds=r.total_time_seconds,
                total_xp=r.total_xp,
                completed=r.completed,
            )
            for r in rows
        ],
    )


@router.get("/leaderboard/{test_type}", response_model=List[LeaderboardRow])
def leaderboard(
    test_type: str,
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    entries = (
        db.query(LeaderboardEntry)
        .filter(LeaderboardEntry.test_type == test_type)
        .order_by(LeaderboardEntry.total_xp.desc(), LeaderboardEntry.study_streak.desc(), LeaderboardEntry.username)
        .limit(limit)
        .all()
    )
    return [
        LeaderboardRow(rank=i, username=e.username, total_xp=e.total_xp, level=e.level, study_streak=e.study_streak)
        for i, e in enumerate(entries, start=1)
    ]
