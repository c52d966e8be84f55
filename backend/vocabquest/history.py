from __future__ import annotations
from typing import List, Optional, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import Attempt, MissedAnswer, Question


def has_prior_attempt(db: Session, username: str, unit_id: str, game_type: str) -> bool:
	stmt = (
		select(Attempt.id)
		.where(Attempt.username == username, Attempt.unit_id == unit_id, Attempt.game_type == game_type)
		.limit(1)
	)
	return db.execute(stmt).first() is not None


def prior_missed_words(db: Session, username: str, unit_id: str) -> Set[str]:
	"""Lower-cased words this user got wrong in any earlier attempt on the unit."""
	stmt = (
		select(MissedAnswer.word, Question.word)
		.join(Attempt, MissedAnswer.attempt_id == Attempt.id)
		.outerjoin(Question, MissedAnswer.question_id == Question.id)
		.where(Attempt.username == username, Attempt.unit_id == unit_id)
	)
	words: Set[str] = set()
	for missed_word, question_word in db.execute(stmt).all():
		word = missed_word or question_word
		if word and word.strip():
			words.add(word.strip().lower())
	return words


def list_attempts(db: Session, username: str, unit_id: Optional[str] = None, limit: int = 50) -> List[Attempt]:
	query = db.query(Attempt).filter(Attempt.username == username)
	if unit_id:
		query = query.filter(Attempt.unit_id == unit_id)
	return query.order_by(Attempt.created_at.desc()).limit(limit).all()


def missed_for_attempt(db: Session, attempt_id: str) -> List[dict]:
	rows = (
		db.query(MissedAnswer, Question)
		.outerjoin(Question, MissedAnswer.question_id == Question.id)
		.filter(MissedAnswer.attempt_id == attempt_id)
		.order_by(MissedAnswer.id)
		.all()
	)
	review: List[dict] = []
	for missed, question in rows:
		review.append(
			{
				"question_id": missed.question_id,
				"word": missed.word or (question.word if question else None),
				"user_answer": missed.user_answer,
				"prompt": question.prompt if question else None,
				"correct_answer": question.correct_answer if question else missed.word,
				"explanation": question.explanation if question else None,
			}
		)
	return review
