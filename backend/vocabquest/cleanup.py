from __future__ import annotations
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import AuthSession
from .settings import settings


def purge_stale_sessions(db: Session, *, now: Optional[datetime] = None, retention_days: Optional[int] = None) -> int:
	"""Delete auth sessions idle longer than the retention window.

	Attempt, progress and leaderboard rows are never purged here.
	"""
	days = settings.session_retention_days if retention_days is None else retention_days
	threshold = (now or datetime.utcnow()) - timedelta(days=days)
	res = db.execute(delete(AuthSession).where(AuthSession.last_activity_at < threshold))
	db.commit()
	return res.rowcount or 0
