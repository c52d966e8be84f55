from __future__ import annotations
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./vocabquest.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Columns added after the first release; older SQLite files get them backfilled.
_BACKFILL_COLUMNS = {
	"profiles": {
		"longest_streak": "INTEGER DEFAULT 0 NOT NULL",
	},
	"game_attempts": {
		"xp_earned": "INTEGER DEFAULT 0 NOT NULL",
	},
	"games": {
		"completion_score": "INTEGER DEFAULT 100 NOT NULL",
		"questions_per_word": "INTEGER DEFAULT 3 NOT NULL",
		"questions_per_game": "INTEGER DEFAULT 10 NOT NULL",
	},
}


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema(bind=None) -> list[str]:
	bind = bind if bind is not None else engine
	try:
		inspector = inspect(bind)
		tables = set(inspector.get_table_names())
	except Exception:
		return []
	added: list[str] = []
	for table, columns in _BACKFILL_COLUMNS.items():
		if table not in tables:
			continue
		existing = {c["name"] for c in inspector.get_columns(table)}
		with bind.begin() as conn:
			for name, ddl in columns.items():
				if name not in existing:
					conn.exec_driver_sql(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}")
					added.append(f"{table}.{name}")
	return added
