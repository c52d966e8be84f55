from __future__ import annotations

import random
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..content import QuestionGenerator, ensure_question_bank
from ..db import get_db
from ..errors import DuplicateAttempt
from ..games import FREE_TEXT, GamePolicy, get_policy
from ..history import has_prior_attempt, prior_missed_words
from ..models import Question, Unit
from ..selection import select_practice_words
from ..settings import settings
from .auth import User, get_current_user


router = APIRouter(prefix="/practice", tags=["practice"])


class PracticeWordsResponse(BaseModel):
    unit_id: str
    words: List[str]
    review_words: List[str]


class PracticeQuestion(BaseModel):
    id: str
    word: Optional[str]
    prompt: str
    options: List[str]


class PracticeQuestionsResponse(BaseModel):
    unit_id: str
    game_type: str
    question_count: int
    questions: List[PracticeQuestion]


def get_question_generator() -> QuestionGenerator:
    return QuestionGenerator()


def _load_unit(db: Session, unit_id: str) -> Unit:
    unit = db.get(Unit, unit_id)
    if unit is None:
        raise HTTPException(status_code=404, detail="Unit not found")
    return unit


def _load_policy(db: Session, game_type: str) -> GamePolicy:
    policy = get_policy(db, game_type)
    if policy is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return policy


def _session_size(count: Optional[int]) -> int:
    return count if count is not None else settings.practice_session_size


@router.get("/{unit_id}/words", response_model=PracticeWordsResponse)
def practice_words(
    unit_id: str,
    count: Optional[int] = Query(default=None, ge=1, le=100),
    game_type: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    unit = _load_unit(db, unit_id)
    target = _session_size(count)
    if game_type is not None:
        # A dictation session is sized by its game so the submission count matches
        target = _load_policy(db, game_type).questions_per_game
    missed = prior_missed_words(db, user.username, unit.id)
    words = select_practice_words(unit.words, missed, target)
    return PracticeWordsResponse(
        unit_id=unit.id,
        words=words,
        review_words=[w for w in words if w.lower() in missed],
    )


@router.get("/{unit_id}/{game_type}/questions", response_model=PracticeQuestionsResponse)
async def practice_questions(
    unit_id: str,
    game_type: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    generator: QuestionGenerator = Depends(get_question_generator),
):
    unit = _load_unit(db, unit_id)
    policy = _load_policy(db, game_type)
    if policy.answer_mode == FREE_TEXT:
        raise HTTPException(status_code=400, detail="Dictation games practise words, not questions")
    if policy.single_attempt and has_prior_attempt(db, user.username, unit.id, policy.game_type):
        raise DuplicateAttempt()

    bank = await ensure_question_bank(db, unit, policy, generator)
    by_word: Dict[str, List[Question]] = {}
    for q in bank:
        if q.word:
            by_word.setdefault(q.word.lower(), []).append(q)

    missed = prior_missed_words(db, user.username, unit.id)
    words = select_practice_words(list(by_word), missed, policy.questions_per_game)
    questions: List[PracticeQuestion] = []
    for word in words:
        q = random.choice(by_word[word])
        # selected_index is resolved against the stored option order
        questions.append(PracticeQuestion(id=q.id, word=q.word, prompt=q.prompt, options=q.options))
    return PracticeQuestionsResponse(
        unit_id=unit.id,
        game_type=policy.game_type,
        question_count=len(questions),
        questions=questions,
    )
