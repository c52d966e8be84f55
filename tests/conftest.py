from __future__ import annotations

import os
from collections.abc import Iterator

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vocabquest.db import Base, get_db
from vocabquest.games import seed_games
from vocabquest.main import app
from vocabquest.models import Question, Unit
from vocabquest.routers.auth import open_session

UNIT_WORDS = [
    "abate",
    "zealous",
    "candid",
    "benevolent",
    "diligent",
    "frugal",
    "meticulous",
    "obscure",
    "resilient",
    "tenacious",
]


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    session = session_factory()
    seed_games(session)
    try:
        yield session
    finally:
        session.close()


def make_unit(db: Session, words: list[str] | None = None, test_type: str = "general", title: str = "Unit 1") -> Unit:
    unit = Unit(title=title, test_type=test_type)
    unit.words = list(words if words is not None else UNIT_WORDS)
    db.add(unit)
    db.commit()
    return unit


def make_question(db: Session, unit: Unit, game_type: str, word: str) -> Question:
    """Question whose correct option is always index 0 as stored."""
    question = Question(
        unit_id=unit.id,
        game_type=game_type,
        word=word,
        prompt=f"What does '{word}' mean?",
        correct_answer=f"meaning of {word}",
    )
    question.options = [f"meaning of {word}", f"opposite of {word}", "a kind of fruit", "a colour"]
    db.add(question)
    db.commit()
    return question


@pytest.fixture
def unit(db) -> Unit:
    return make_unit(db)


@pytest.fixture
def quiz_questions(db, unit) -> list[Question]:
    return [make_question(db, unit, "context-quiz", word) for word in UNIT_WORDS]


@pytest.fixture
def client(session_factory, db) -> Iterator[TestClient]:
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(db) -> dict[str, str]:
    token = open_session(db, "alice")
    return {"Authorization": f"Bearer {token}"}
