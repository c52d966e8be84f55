"""Attempt Recorder: the transactional boundary for one game submission.

A submission is validated, scored, rewarded and persisted inside a single
database transaction. Either the attempt is stored together with the derived
progress, profile and leaderboard rows, or nothing is written at all.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import DuplicateAttempt, InvalidSubmission, PersistenceError, Unauthorized, VocabQuestError
from .games import FREE_TEXT, GamePolicy, get_policy, presented_question_count
from .history import has_prior_attempt
from .models import (
	Attempt,
	LeaderboardEntry,
	MissedAnswer,
	Profile,
	Question,
	SingleAttemptClaim,
	Unit,
	UserProgress,
)
from .scoring import (
	ScoreResult,
	build_answer_key,
	calculate_xp,
	level_for_xp,
	round_half_up,
	score_choice_answers,
	score_free_text_answers,
)
from .settings import settings
from .streaks import longest_streak, next_streak, utc_today

logger = logging.getLogger(__name__)


@dataclass
class Submission:
	unit_id: str
	game_type: str
	# Optional client echo of the session size; checked against the server's count
	question_count: Optional[int]
	elapsed_seconds: float
	# Multiple choice: [{question_id, selected_index}]
	answers: List[Dict[str, Any]] = field(default_factory=list)
	# Dictation: [{word, user_answer}]
	words: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class AttemptOutcome:
	attempt_id: str
	score: int
	correct_count: int
	total_questions: int
	xp_earned: int
	is_perfect: bool
	total_xp: int
	level: int
	study_streak: int

	def as_response(self) -> Dict[str, Any]:
		return {
			"success": True,
			"attempt_id": self.attempt_id,
			"score": self.score,
			"correct_count": self.correct_count,
			"total_questions": self.total_questions,
			"xp_earned": self.xp_earned,
			"is_perfect": self.is_perfect,
			"total_xp": self.total_xp,
			"level": self.level,
			"study_streak": self.study_streak,
		}


def _validate_shape(submission: Submission, policy: GamePolicy, expected: int, min_elapsed: int, max_elapsed: int) -> None:
	items = submission.words if policy.answer_mode == FREE_TEXT else submission.answers
	if expected <= 0 or not items:
		raise InvalidSubmission("No questions were answered")
	if len(items) != expected or submission.question_count not in (None, expected):
		raise InvalidSubmission("Answer count does not match the number of questions")
	if not (min_elapsed <= submission.elapsed_seconds <= max_elapsed):
		raise InvalidSubmission("Invalid time spent")


def _score(db: Session, submission: Submission, policy: GamePolicy, unit: Unit) -> ScoreResult:
	if policy.answer_mode == FREE_TEXT:
		return score_free_text_answers(submission.words, unit.words)
	question_ids = [a.get("question_id") for a in submission.answers if a.get("question_id")]
	questions = (
		db.query(Question)
		.filter(
			Question.id.in_(question_ids),
			Question.unit_id == unit.id,
			Question.game_type == policy.game_type,
		)
		.all()
	)
	# A session presents one question per word
	words = {(q.word or q.id).lower() for q in questions}
	if len(words) != len(questions):
		raise InvalidSubmission("More than one question for the same word")
	return score_choice_answers(submission.answers, build_answer_key(questions))


def _claim_single_attempt(db: Session, username: str, submission: Submission, attempt_id: str) -> None:
	db.add(
		SingleAttemptClaim(
			username=username,
			unit_id=submission.unit_id,
			game_type=submission.game_type,
			attempt_id=attempt_id,
		)
	)
	try:
		db.flush()
	except IntegrityError as exc:
		# A concurrent submission won the race for this (user, unit, game)
		raise DuplicateAttempt() from exc


def _progress_stmt(username: str, unit_id: str, game_type: str) -> Select:
	return (
		select(UserProgress)
		.where(
			UserProgress.username == username,
			UserProgress.unit_id == unit_id,
			UserProgress.game_type == game_type,
		)
		.with_for_update()
	)


def _profile_stmt(username: str) -> Select:
	return select(Profile).where(Profile.username == username).with_for_update()


def _leaderboard_stmt(username: str, test_type: str) -> Select:
	return (
		select(LeaderboardEntry)
		.where(LeaderboardEntry.username == username, LeaderboardEntry.test_type == test_type)
		.with_for_update()
	)


def _locked_row(db: Session, stmt: Select):
	# Read-modify-write rows are locked until commit; concurrent submitters queue here
	return db.execute(stmt.execution_options(populate_existing=True)).scalar_one_or_none()


def _upsert_progress(
	db: Session, username: str, submission: Submission, policy: GamePolicy, result: ScoreResult, xp: int, seconds: int
) -> UserProgress:
	progress = _locked_row(db, _progress_stmt(username, submission.unit_id, submission.game_type))
	completed = policy.is_completed(result.score_percent)
	if progress is None:
		progress = UserProgress(
			username=username,
			unit_id=submission.unit_id,
			game_type=submission.game_type,
			best_score=result.score_percent,
			attempts=1,
			total_time_seconds=seconds,
			total_xp=xp,
			completed=completed,
		)
		db.add(progress)
	else:
		progress.attempts = (progress.attempts or 0) + 1
		progress.total_time_seconds = (progress.total_time_seconds or 0) + seconds
		progress.best_score = max(progress.best_score or 0, result.score_percent)
		progress.total_xp = policy.accumulate_xp(progress.total_xp or 0, xp)
		progress.completed = bool(progress.completed) or completed
	return progress


def _refresh_profile(db: Session, username: str, today: date) -> Profile:
	# Lock before summing so the total includes any submission that committed first
	profile = _locked_row(db, _profile_stmt(username))
	if profile is None:
		profile = Profile(username=username, total_xp=0, level=1, study_streak=0, longest_streak=0)
		db.add(profile)
	total_xp = (
		db.query(func.coalesce(func.sum(UserProgress.total_xp), 0))
		.filter(UserProgress.username == username)
		.scalar()
	)
	profile.total_xp = int(total_xp or 0)
	profile.level = level_for_xp(profile.total_xp)
	profile.study_streak = next_streak(profile.last_study_date, today, profile.study_streak or 0)
	profile.longest_streak = longest_streak(profile.longest_streak or 0, profile.study_streak)
	profile.last_study_date = today
	return profile


def _refresh_leaderboard(db: Session, username: str, test_type: str, today: date) -> LeaderboardEntry:
	entry = _locked_row(db, _leaderboard_stmt(username, test_type))
	if entry is None:
		entry = LeaderboardEntry(username=username, test_type=test_type, total_xp=0, level=1, study_streak=0)
		db.add(entry)
	total_xp = (
		db.query(func.coalesce(func.sum(UserProgress.total_xp), 0))
		.join(Unit, Unit.id == UserProgress.unit_id)
		.filter(UserProgress.username == username, Unit.test_type == test_type)
		.scalar()
	)
	entry.total_xp = int(total_xp or 0)
	entry.level = level_for_xp(entry.total_xp)
	entry.study_streak = next_streak(entry.last_study_date, today, entry.study_streak or 0)
	entry.last_study_date = today
	return entry


def record_attempt(
	db: Session,
	username: Optional[str],
	submission: Submission,
	*,
	today: Optional[date] = None,
	min_elapsed_seconds: Optional[int] = None,
	max_elapsed_seconds: Optional[int] = None,
) -> AttemptOutcome:
	if not username:
		raise Unauthorized()
	min_elapsed = settings.min_elapsed_seconds if min_elapsed_seconds is None else min_elapsed_seconds
	max_elapsed = settings.max_elapsed_seconds if max_elapsed_seconds is None else max_elapsed_seconds
	today = today or utc_today()

	try:
		policy = get_policy(db, submission.game_type)
		if policy is None:
			raise InvalidSubmission("Invalid game")
		unit = db.get(Unit, submission.unit_id)
		if unit is None:
			raise InvalidSubmission("Invalid unit")
		if policy.single_attempt and has_prior_attempt(db, username, unit.id, policy.game_type):
			logger.info("Rejected repeat of single-attempt game %s on unit %s for %s", policy.game_type, unit.id, username)
			raise DuplicateAttempt()
		expected = presented_question_count(db, policy, unit)
		_validate_shape(submission, policy, expected, min_elapsed, max_elapsed)
		seconds = round_half_up(submission.elapsed_seconds)

		result = _score(db, submission, policy, unit)
		xp = calculate_xp(
			result.score_percent,
			submission.elapsed_seconds,
			result.total_questions,
			xp_enabled=policy.xp_enabled,
		)

		attempt = Attempt(
			username=username,
			unit_id=unit.id,
			game_type=policy.game_type,
			score=result.score_percent,
			correct_answers=result.correct_count,
			total_questions=result.total_questions,
			time_spent_seconds=seconds,
			xp_earned=xp,
			completed=True,
		)
		db.add(attempt)
		db.flush()
		if policy.single_attempt:
			_claim_single_attempt(db, username, submission, attempt.id)
		for missed in result.missed:
			db.add(
				MissedAnswer(
					attempt_id=attempt.id,
					question_id=missed.question_id,
					word=missed.word,
					user_answer=missed.user_answer,
				)
			)
		_upsert_progress(db, username, submission, policy, result, xp, seconds)
		db.flush()
		profile = _refresh_profile(db, username, today)
		_refresh_leaderboard(db, username, unit.test_type, today)
		outcome = AttemptOutcome(
			attempt_id=attempt.id,
			score=result.score_percent,
			correct_count=result.correct_count,
			total_questions=result.total_questions,
			xp_earned=xp,
			is_perfect=result.is_perfect,
			total_xp=profile.total_xp,
			level=profile.level,
			study_streak=profile.study_streak,
		)
		db.commit()
	except VocabQuestError:
		db.rollback()
		raise
	except SQLAlchemyError as exc:
		db.rollback()
		logger.exception("Failed to record %s attempt for %s", submission.game_type, username)
		raise PersistenceError() from exc

	logger.info(
		"Recorded %s attempt %s for %s: score=%s xp=%s",
		policy.game_type,
		outcome.attempt_id,
		username,
		outcome.score,
		outcome.xp_earned,
	)
	return outcome
