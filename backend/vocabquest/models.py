from __future__ import annotations
import json
import uuid
from datetime import datetime
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from .db import Base


def _new_id() -> str:
	return uuid.uuid4().hex


class AuthUser(Base):
	__tablename__ = "auth_users"
	# Primary key is username
	username = Column(String(128), primary_key=True, index=True)
	password_hash = Column(String(256), nullable=False)
	email = Column(String(256), nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	session_id = Column(String(64), primary_key=True)
	username = Column(String(128), nullable=False, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Unit(Base):
	__tablename__ = "units"
	id = Column(String(32), primary_key=True, default=_new_id)
	title = Column(String(256), nullable=False)
	# Ordered vocabulary list, JSON encoded
	words_json = Column(Text, nullable=False, default="[]")
	test_type = Column(String(64), nullable=False, default="general", index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	@property
	def words(self) -> list[str]:
		return list(json.loads(self.words_json or "[]"))

	@words.setter
	def words(self, value: list[str]) -> None:
		self.words_json = json.dumps(list(value))


class Game(Base):
	"""Per-game policy row; see ``vocabquest.games`` for the defaults."""

	__tablename__ = "games"
	game_type = Column(String(32), primary_key=True)
	name = Column(String(128), nullable=False)
	answer_mode = Column(String(16), nullable=False, default="choice")
	single_attempt = Column(Boolean, nullable=False, default=False)
	xp_enabled = Column(Boolean, nullable=False, default=True)
	xp_policy = Column(String(16), nullable=False, default="cumulative")
	completion_score = Column(Integer, nullable=False, default=100)
	questions_per_word = Column(Integer, nullable=False, default=3)
	# Questions presented per session; submissions must answer exactly this many
	questions_per_game = Column(Integer, nullable=False, default=10)


class Question(Base):
	__tablename__ = "question_bank"
	id = Column(String(32), primary_key=True, default=_new_id)
	unit_id = Column(String(32), ForeignKey("units.id"), nullable=False, index=True)
	game_type = Column(String(32), ForeignKey("games.game_type"), nullable=False, index=True)
	word = Column(String(128), nullable=True)
	prompt = Column(Text, nullable=False)
	options_json = Column(Text, nullable=False, default="[]")
	correct_answer = Column(Text, nullable=False)
	explanation = Column(Text, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	@property
	def options(self) -> list[str]:
		return list(json.loads(self.options_json or "[]"))

	@options.setter
	def options(self, value: list[str]) -> None:
		self.options_json = json.dumps(list(value))


class Attempt(Base):
	__tablename__ = "game_attempts"
	# Append-only: rows are never updated after insert
	id = Column(String(32), primary_key=True, default=_new_id)
	username = Column(String(128), nullable=False, index=True)
	unit_id = Column(String(32), ForeignKey("units.id"), nullable=False, index=True)
	game_type = Column(String(32), ForeignKey("games.game_type"), nullable=False)
	score = Column(Integer, nullable=False)
	correct_answers = Column(Integer, nullable=False)
	total_questions = Column(Integer, nullable=False)
	time_spent_seconds = Column(Integer, nullable=False)
	xp_earned = Column(Integer, nullable=False, default=0)
	completed = Column(Boolean, nullable=False, default=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class MissedAnswer(Base):
	__tablename__ = "attempt_missed_answers"
	id = Column(Integer, primary_key=True, autoincrement=True)
	attempt_id = Column(String(32), ForeignKey("game_attempts.id"), nullable=False, index=True)
	# Multiple-choice misses point at a question; dictation misses only carry the word
	question_id = Column(String(32), ForeignKey("question_bank.id"), nullable=True)
	word = Column(String(128), nullable=True)
	user_answer = Column(Text, nullable=True)


class SingleAttemptClaim(Base):
	__tablename__ = "single_attempt_claims"
	__table_args__ = (UniqueConstraint("username", "unit_id", "game_type", name="uq_single_attempt_claim"),)
	id = Column(Integer, primary_key=True, autoincrement=True)
	username = Column(String(128), nullable=False)
	unit_id = Column(String(32), nullable=False)
	game_type = Column(String(32), nullable=False)
	attempt_id = Column(String(32), nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class UserProgress(Base):
	__tablename__ = "user_progress"
	__table_args__ = (UniqueConstraint("username", "unit_id", "game_type", name="uq_user_progress"),)
	id = Column(Integer, primary_key=True, autoincrement=True)
	username = Column(String(128), nullable=False, index=True)
	unit_id = Column(String(32), ForeignKey("units.id"), nullable=False)
	game_type = Column(String(32), ForeignKey("games.game_type"), nullable=False)
	best_score = Column(Integer, default=0, nullable=False)
	attempts = Column(Integer, default=0, nullable=False)
	total_time_seconds = Column(Integer, default=0, nullable=False)
	total_xp = Column(Integer, default=0, nullable=False)
	completed = Column(Boolean, default=False, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Profile(Base):
	__tablename__ = "profiles"
	username = Column(String(128), primary_key=True)
	total_xp = Column(Integer, default=0, nullable=False)
	level = Column(Integer, default=1, nullable=False)
	study_streak = Column(Integer, default=0, nullable=False)
	longest_streak = Column(Integer, default=0, nullable=False)
	last_study_date = Column(Date, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class LeaderboardEntry(Base):
	__tablename__ = "leaderboard"
	__table_args__ = (UniqueConstraint("username", "test_type", name="uq_leaderboard_user_test_type"),)
	id = Column(Integer, primary_key=True, autoincrement=True)
	username = Column(String(128), nullable=False, index=True)
	test_type = Column(String(64), nullable=False, index=True)
	total_xp = Column(Integer, default=0, nullable=False)
	level = Column(Integer, default=1, nullable=False)
	study_streak = Column(Integer, default=0, nullable=False)
	last_study_date = Column(Date, nullable=True)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
