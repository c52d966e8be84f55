from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import PersistenceError, UpstreamGenerationError
from .games import GamePolicy
from .gemini_client import GeminiClient
from .models import Question, Unit

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert educational content creator specializing in vocabulary assessments. "
    "Create challenging but fair questions that test genuine understanding. "
    "Return only valid JSON with no markdown formatting or code blocks."
)

# How each multiple-choice game frames its questions
_QUESTION_STYLES: Dict[str, str] = {
    "context-quiz": "a context-based question: a sentence using the word, asking what the word most likely means there",
    "reading": "a short two or three sentence passage using the word, followed by a vocabulary-in-context question",
    "matching": "a definition-matching question: the prompt is the word, the options are four short definitions",
    "flashcard": "a recall question: the prompt is a short definition, the options are four vocabulary words",
    "intuition": "a word-sense question: a sentence with the word, asking which option best captures the feeling it conveys",
}


@dataclass(frozen=True)
class GeneratedQuestion:
    word: str
    prompt: str
    options: List[str]
    correct_answer: str
    explanation: Optional[str] = None


class TextGenerator(Protocol):
    async def generate(self, prompt: str, *, system: Optional[str] = None) -> str: ...

    async def aclose(self) -> None: ...


def _extract_json_array(text: str) -> List[Any]:
    try:
        data = json.loads(text)
        if isinstance(data, list):
            return data
    except Exception:
        pass
    code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
    if code_block:
        try:
            data = json.loads(code_block.group(1))
            if isinstance(data, list):
                return data
        except Exception:
            pass
    first = text.find("[")
    last = text.rfind("]")
    if first != -1 and last > first:
        try:
            data = json.loads(text[first : last + 1])
            if isinstance(data, list):
                return data
        except Exception:
            pass
    raise UpstreamGenerationError("Content generator did not return valid JSON")


def build_question_prompt(game_type: str, words_needed: Dict[str, int]) -> str:
    style = _QUESTION_STYLES.get(game_type, "a multiple-choice vocabulary question about the word's meaning")
    requests = ", ".join(f"{word} (generate {count} questions)" for word, count in words_needed.items())
    return (
        "Generate vocabulary quiz questions for school students.\n"
        f"Words to create questions for: {requests}\n"
        f"Each question is {style}.\n"
        "Every question has exactly 4 options; exactly one is correct and the three distractors are plausible "
        "but wrong on careful reading.\n"
        "Return ONLY a JSON array of objects with keys: word, question_text, options (array of 4 strings), "
        "correct_answer (the exact text of the correct option), explanation."
    )


def parse_generated_questions(raw: str, allowed_words: List[str]) -> List[GeneratedQuestion]:
    allowed = {w.lower() for w in allowed_words}
    items: List[GeneratedQuestion] = []
    for item in _extract_json_array(raw):
        if not isinstance(item, dict):
            continue
        word = str(item.get("word") or "").strip().lower()
        prompt = str(item.get("question_text") or "").strip()
        options = item.get("options")
        correct = str(item.get("correct_answer") or "").strip()
        if word not in allowed or not prompt or not isinstance(options, list) or len(options) != 4:
            continue
        options = [str(o).strip() for o in options]
        if correct not in options or len(set(options)) != 4:
            continue
        explanation = (str(item.get("explanation") or "").strip()) or None
        items.append(GeneratedQuestion(word, prompt, options, correct, explanation))
    if not items:
        raise UpstreamGenerationError("Content generator returned no usable questions")
    return items


class QuestionGenerator:
    """Question-bank filler on top of an LLM text generator."""

    def __init__(self, client: Optional[TextGenerator] = None) -> None:
        self._client = client

    async def generate(self, game_type: str, words_needed: Dict[str, int]) -> List[GeneratedQuestion]:
        client = self._client or GeminiClient()
        try:
            raw = await client.generate(build_question_prompt(game_type, words_needed), system=SYSTEM_PROMPT)
        finally:
            if self._client is None:
                await client.aclose()
        return parse_generated_questions(raw, list(words_needed))


def words_needing_questions(unit: Unit, existing: List[Question], per_word: int) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for q in existing:
        if q.word:
            key = q.word.lower()
            counts[key] = counts.get(key, 0) + 1
    needed: Dict[str, int] = {}
    for word in unit.words:
        key = word.lower()
        shortfall = per_word - counts.get(key, 0)
        if shortfall > 0 and key not in needed:
            needed[key] = shortfall
    return needed


async def ensure_question_bank(db: Session, unit: Unit, policy: GamePolicy, generator: QuestionGenerator) -> List[Question]:
    """Return the unit's questions for a game, generating any shortfall first.

    Generation failures fall back to whatever was generated before; they only
    surface when the bank is still empty.
    """
    existing = (
        db.query(Question)
        .filter(Question.unit_id == unit.id, Question.game_type == policy.game_type)
        .order_by(Question.created_at)
        .all()
    )
    needed = words_needing_questions(unit, existing, policy.questions_per_word)
    if not needed:
        return existing

    try:
        generated = await generator.generate(policy.game_type, needed)
    except UpstreamGenerationError as exc:
        if existing:
            logger.warning("Question generation failed for unit %s (%s); using existing bank", unit.id, exc.message)
            return existing
        raise

    rows: List[Question] = []
    per_word_left = dict(needed)
    for item in generated:
        if per_word_left.get(item.word, 0) <= 0:
            continue
        per_word_left[item.word] -= 1
        row = Question(
            unit_id=unit.id,
            game_type=policy.game_type,
            word=item.word,
            prompt=item.prompt,
            correct_answer=item.correct_answer,
            explanation=item.explanation,
        )
        row.options = item.options
        rows.append(row)
    try:
        db.add_all(rows)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to save generated questions for unit %s", unit.id)
        raise PersistenceError() from exc
    logger.info("Generated %d %s questions for unit %s", len(rows), policy.game_type, unit.id)
    return existing + rows
