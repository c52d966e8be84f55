"""Game catalogue and per-game scoring policy.

Every game type is scored by the same engine; what differs between them
(single attempt or repeatable, XP or no XP, how XP accumulates) lives in the
``games`` table. The defaults below are seeded on startup and can be edited in
the database without touching code.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import Game, Question, Unit

CHOICE = "choice"
FREE_TEXT = "free_text"

CUMULATIVE = "cumulative"
LATEST = "latest"


@dataclass(frozen=True)
class GamePolicy:
	game_type: str
	name: str
	answer_mode: str = CHOICE
	single_attempt: bool = False
	xp_enabled: bool = True
	xp_policy: str = CUMULATIVE
	completion_score: int = 100
	questions_per_word: int = 3
	questions_per_game: int = 10

	@classmethod
	def from_row(cls, row: Game) -> "GamePolicy":
		return cls(
			game_type=row.game_type,
			name=row.name,
			answer_mode=row.answer_mode,
			single_attempt=bool(row.single_attempt),
			xp_enabled=bool(row.xp_enabled),
			xp_policy=row.xp_policy,
			completion_score=int(row.completion_score),
			questions_per_word=int(row.questions_per_word),
			questions_per_game=int(row.questions_per_game),
		)

	def accumulate_xp(self, current_total: int, award: int) -> int:
		if self.xp_policy == LATEST:
			return award
		return current_total + award

	def is_completed(self, score: int) -> bool:
		return score >= self.completion_score


DEFAULT_GAMES: Dict[str, GamePolicy] = {
	p.game_type: p
	for p in (
		GamePolicy("reading", "Reading Quest", xp_policy=LATEST),
		GamePolicy("listening", "Audio Challenge", answer_mode=FREE_TEXT),
		GamePolicy("writing", "Story Creator", answer_mode=FREE_TEXT),
		GamePolicy("speaking", "Voice Master", answer_mode=FREE_TEXT),
		GamePolicy("matching", "Matching"),
		GamePolicy("flashcard", "Flashcards"),
		GamePolicy("context-quiz", "Context Master", single_attempt=True, questions_per_game=15),
		# Practice drill: recorded and marked complete, never rewarded
		GamePolicy("intuition", "Word Intuition", xp_enabled=False, completion_score=0),
	)
}


def seed_games(db: Session) -> int:
	"""Insert any default game that is missing. Existing rows are left as edited."""
	existing = {row.game_type for row in db.query(Game.game_type).all()}
	added = 0
	for policy in DEFAULT_GAMES.values():
		if policy.game_type in existing:
			continue
		db.add(
			Game(
				game_type=policy.game_type,
				name=policy.name,
				answer_mode=policy.answer_mode,
				single_attempt=policy.single_attempt,
				xp_enabled=policy.xp_enabled,
				xp_policy=policy.xp_policy,
				completion_score=policy.completion_score,
				questions_per_word=policy.questions_per_word,
				questions_per_game=policy.questions_per_game,
			)
		)
		added += 1
	db.commit()
	return added


def get_policy(db: Session, game_type: str) -> Optional[GamePolicy]:
	row = db.get(Game, game_type)
	if row is None:
		return None
	return GamePolicy.from_row(row)


def presented_question_count(db: Session, policy: GamePolicy, unit: Unit) -> int:
	"""How many questions a session of this game on this unit presents.

	Practice serves one item per distinct word, capped at ``questions_per_game``:
	unit words for dictation, words with banked questions otherwise.
	"""
	if policy.answer_mode == FREE_TEXT:
		available = len({w.strip().lower() for w in unit.words if w.strip()})
	else:
		stmt = select(func.count(func.distinct(func.lower(Question.word)))).where(
			Question.unit_id == unit.id,
			Question.game_type == policy.game_type,
			Question.word.is_not(None),
			Question.word != "",
		)
		available = db.execute(stmt).scalar() or 0
	return min(policy.questions_per_game, available)
