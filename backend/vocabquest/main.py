import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import Base, SessionLocal, engine, ensure_schema
from .cleanup import purge_stale_sessions
from .errors import VocabQuestError
from .games import seed_games
from .routers import health
from .routers import auth
from .routers import units
from .routers import practice
from .routers import attempts
from .routers import progress

logger = logging.getLogger("vocabquest")

app = FastAPI(title="VocabQuest Progress API")
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(units.router)
app.include_router(practice.router)
app.include_router(attempts.router)
app.include_router(progress.router)


def _error_body(message: str) -> dict:
	return {"success": False, "error": message}


@app.exception_handler(VocabQuestError)
async def handle_domain_error(request: Request, exc: VocabQuestError):
	return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
	return JSONResponse(status_code=exc.status_code, content=_error_body(str(exc.detail)), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
	first = exc.errors()[0] if exc.errors() else {}
	where = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
	message = f"Invalid request: {where} {first.get('msg', '')}".strip()
	return JSONResponse(status_code=400, content=_error_body(message))


def _run_housekeeping() -> None:
	db = SessionLocal()
	try:
		removed = purge_stale_sessions(db)
		if removed:
			logger.info("Purged %d stale auth sessions", removed)
	except Exception:
		logger.exception("Session purge failed")
	finally:
		db.close()


async def _cleanup_watcher():
	while True:
		await asyncio.sleep(24 * 60 * 60)
		_run_housekeeping()


@app.on_event("startup")
async def startup_event():
	logging.basicConfig(level=logging.INFO)
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	try:
		added = ensure_schema()
		if added:
			logger.info("Backfilled columns: %s", ", ".join(added))
	except Exception:
		logger.exception("Schema backfill failed")
	db = SessionLocal()
	try:
		seeded = seed_games(db)
		if seeded:
			logger.info("Seeded %d default games", seeded)
	finally:
		db.close()
	_run_housekeeping()
	asyncio.create_task(_cleanup_watcher())
