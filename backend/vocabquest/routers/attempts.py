from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..games import get_policy, presented_question_count
from ..history import has_prior_attempt, list_attempts, missed_for_attempt
from ..models import Attempt, Unit
from ..recorder import Submission, record_attempt
from .auth import User, get_current_user


router = APIRouter(prefix="/attempts", tags=["attempts"])


class ChoiceAnswer(BaseModel):
    question_id: str
    selected_index: Optional[int] = None


class WordAnswer(BaseModel):
    word: str
    user_answer: Optional[str] = None


class SubmitRequest(BaseModel):
    unit_id: str
    game_type: str
    # Optional; when sent it must match the server-side session size
    question_count: Optional[int] = None
    elapsed_seconds: float
    answers: List[ChoiceAnswer] = Field(default_factory=list)
    words: List[WordAnswer] = Field(default_factory=list)


class SubmitResponse(BaseModel):
    success: bool
    attempt_id: str
    score: int
    correct_count: int
    total_questions: int
    xp_earned: int
    is_perfect: bool
    total_xp: int
    level: int
    study_streak: int


class AttemptSummary(BaseModel):
    id: str
    unit_id: str
    game_type: str
    score: int
    correct_answers: int
    total_questions: int
    time_spent_seconds: int
    xp_earned: int
    created_at: datetime


class MissedItem(BaseModel):
    question_id: Optional[str]
    word: Optional[str]
    user_answer: Optional[str]
    prompt: Optional[str]
    correct_answer: Optional[str]
    explanation: Optional[str]


@router.post("/submit", response_model=SubmitResponse)
def submit(req: SubmitRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    submission = Submission(
        unit_id=req.unit_id,
        game_type=req.game_type,
        question_count=req.question_count,
        elapsed_seconds=req.elapsed_seconds,
        answers=[a.model_dump() for a in req.answers],
        words=[w.model_dump() for w in req.words],
    )
    outcome = record_attempt(db, user.username, submission)
    return outcome.as_response()


@router.get("/status")
def status(unit_id: str, game_type: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    policy = get_policy(db, game_type)
    if policy is None:
        raise HTTPException(status_code=404, detail="Game not found")
    unit = db.get(Unit, unit_id)
    if unit is None:
        raise HTTPException(status_code=404, detail="Unit not found")
    attempted = has_prior_attempt(db, user.username, unit_id, game_type)
    return {
        "unit_id": unit_id,
        "game_type": game_type,
        "single_attempt": policy.single_attempt,
        "attempted": attempted,
        "already_completed": policy.single_attempt and attempted,
        "question_count": presented_question_count(db, policy, unit),
    }


@router.get("", response_model=List[AttemptSummary])
def history(unit_id: Optional[str] = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [
        AttemptSummary(
            id=a.id,
            unit_id=a.unit_id,
            game_type=a.game_type,
            score=a.score,
            correct_answers=a.correct_answers,
            total_questions=a.total_questions,
            time_spent_seconds=a.time_spent_seconds,
            xp_earned=a.xp_earned,
            created_at=a.created_at,
        )
        for a in list_attempts(db, user.username, unit_id)
    ]


@router.get("/{attempt_id}/review", response_model=List[MissedItem])
def review(attempt_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    attempt = db.get(Attempt, attempt_id)
    if attempt is None or attempt.username != user.username:
        raise HTTPException(status_code=404, detail="Attempt not found")
    return [MissedItem(**item) for item in missed_for_attempt(db, attempt.id)]
