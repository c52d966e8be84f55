"""Scorer, XP calculator and level derivation.

Everything here is pure: inputs in, numbers out. The answer key is always the
server-held copy (question bank rows or unit vocabulary); a correct answer is
never taken from the client.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .errors import InvalidSubmission

XP_PER_LEVEL = 100
BASE_XP_RATE = Fraction(1, 2)
MAX_SPEED_BONUS = 25
FAST_SECONDS_PER_QUESTION = 5
SLOW_SECONDS_PER_QUESTION = 30


def round_half_up(value: float | Fraction) -> int:
	# Python's round() is banker's rounding; percentages and XP round .5 up
	return math.floor(Fraction(value) + Fraction(1, 2))


@dataclass(frozen=True)
class AnswerKeyEntry:
	question_id: str
	options: Sequence[str]
	correct_answer: str
	word: Optional[str] = None


@dataclass(frozen=True)
class MissedItem:
	question_id: Optional[str]
	word: Optional[str]
	user_answer: Optional[str]


@dataclass(frozen=True)
class ScoreResult:
	correct_count: int
	total_questions: int
	score_percent: int
	missed: List[MissedItem] = field(default_factory=list)

	@property
	def is_perfect(self) -> bool:
		return self.correct_count == self.total_questions


def score_percent(correct_count: int, total_questions: int) -> int:
	if total_questions <= 0:
		raise InvalidSubmission("No questions were answered")
	if correct_count < 0 or correct_count > total_questions:
		raise InvalidSubmission("Correct count out of range")
	return round_half_up(Fraction(100 * correct_count, total_questions))


def score_choice_answers(answers: Sequence[Mapping[str, Any]], answer_key: Mapping[str, AnswerKeyEntry]) -> ScoreResult:
	"""Score multiple-choice answers ``[{question_id, selected_index}]``.

	The selected option's text is compared with the stored correct answer, so a
	client that reorders options still scores correctly. ``selected_index`` of
	``None`` means the question was left unanswered.
	"""
	if not answers:
		raise InvalidSubmission("No questions were answered")
	seen: set[str] = set()
	correct = 0
	missed: List[MissedItem] = []
	for answer in answers:
		question_id = answer.get("question_id")
		entry = answer_key.get(question_id) if question_id is not None else None
		if entry is None:
			raise InvalidSubmission("Invalid question in answers")
		if question_id in seen:
			raise InvalidSubmission("Question answered more than once")
		seen.add(question_id)

		index = answer.get("selected_index")
		if index is None:
			user_answer = None
		else:
			if not isinstance(index, int) or isinstance(index, bool) or not (0 <= index < len(entry.options)):
				raise InvalidSubmission("Selected option out of range")
			user_answer = entry.options[index]

		if user_answer is not None and user_answer == entry.correct_answer:
			correct += 1
		else:
			missed.append(MissedItem(question_id=question_id, word=entry.word, user_answer=user_answer))
	total = len(answers)
	return ScoreResult(correct, total, score_percent(correct, total), missed)


def _normalize(text: Optional[str]) -> str:
	return (text or "").strip().lower()


def score_free_text_answers(answers: Sequence[Mapping[str, Any]], vocabulary: Iterable[str]) -> ScoreResult:
	"""Score dictation answers ``[{word, user_answer}]`` against the unit vocabulary."""
	if not answers:
		raise InvalidSubmission("No questions were answered")
	known = {_normalize(w) for w in vocabulary}
	seen: set[str] = set()
	correct = 0
	missed: List[MissedItem] = []
	for answer in answers:
		word = answer.get("word")
		if not word or _normalize(word) not in known:
			raise InvalidSubmission("Invalid word in answers")
		if _normalize(word) in seen:
			raise InvalidSubmission("Word answered more than once")
		seen.add(_normalize(word))
		typed = answer.get("user_answer")
		if _normalize(typed) == _normalize(word):
			correct += 1
		else:
			missed.append(MissedItem(question_id=None, word=word, user_answer=typed))
	total = len(answers)
	return ScoreResult(correct, total, score_percent(correct, total), missed)


def speed_bonus(avg_seconds_per_question: float) -> int:
	if avg_seconds_per_question <= FAST_SECONDS_PER_QUESTION:
		return MAX_SPEED_BONUS
	if avg_seconds_per_question >= SLOW_SECONDS_PER_QUESTION:
		return 0
	decayed = MAX_SPEED_BONUS - (Fraction(avg_seconds_per_question) - FAST_SECONDS_PER_QUESTION)
	return max(0, round_half_up(decayed))


def calculate_xp(score: int, elapsed_seconds: float, question_count: int, *, xp_enabled: bool = True) -> int:
	"""XP for one attempt: half the score plus a speed bonus of up to 25."""
	if not xp_enabled:
		return 0
	if question_count <= 0:
		raise InvalidSubmission("No questions were answered")
	if not 0 <= score <= 100:
		raise InvalidSubmission("Score out of range")
	base = round_half_up(Fraction(score) * BASE_XP_RATE)
	avg = Fraction(elapsed_seconds) / question_count
	return base + speed_bonus(avg)


def level_for_xp(total_xp: int) -> int:
	return max(0, total_xp) // XP_PER_LEVEL + 1


def build_answer_key(questions: Iterable[Any]) -> Dict[str, AnswerKeyEntry]:
	"""Index question bank rows (anything with id/options/correct_answer/word) by id."""
	return {
		q.id: AnswerKeyEntry(question_id=q.id, options=list(q.options), correct_answer=q.correct_answer, word=q.word)
		for q in questions
	}
