from datetime import datetime, timedelta

from sqlalchemy import create_engine, inspect

from vocabquest.cleanup import purge_stale_sessions
from vocabquest.db import ensure_schema
from vocabquest.games import DEFAULT_GAMES, LATEST, get_policy, seed_games
from vocabquest.models import AuthSession, Game


def test_purge_removes_only_idle_sessions(db) -> None:
    now = datetime(2026, 3, 1, 12, 0)
    db.add_all(
        [
            AuthSession(session_id="old", username="alice", last_activity_at=now - timedelta(days=31)),
            AuthSession(session_id="fresh", username="alice", last_activity_at=now - timedelta(days=2)),
        ]
    )
    db.commit()

    assert purge_stale_sessions(db, now=now, retention_days=30) == 1
    assert [s.session_id for s in db.query(AuthSession).all()] == ["fresh"]


def test_seed_games_is_idempotent_and_keeps_edits(db) -> None:
    assert db.query(Game).count() == len(DEFAULT_GAMES)
    row = db.get(Game, "matching")
    row.single_attempt = True
    db.commit()

    assert seed_games(db) == 0
    assert get_policy(db, "matching").single_attempt is True
    assert get_policy(db, "reading").xp_policy == LATEST
    assert get_policy(db, "intuition").xp_enabled is False
    assert get_policy(db, "context-quiz").questions_per_game == 15
    assert get_policy(db, "no-such-game") is None


def test_ensure_schema_backfills_missing_columns() -> None:
    engine = create_engine("sqlite://")
    with engine.begin() as conn:
        conn.exec_driver_sql("CREATE TABLE profiles (username VARCHAR PRIMARY KEY, total_xp INTEGER)")

    assert ensure_schema(engine) == ["profiles.longest_streak"]
    columns = {c["name"] for c in inspect(engine).get_columns("profiles")}
    assert "longest_streak" in columns
    assert ensure_schema(engine) == []
