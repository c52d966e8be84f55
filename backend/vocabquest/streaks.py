from __future__ import annotations
from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utc_today(now: Optional[datetime] = None) -> date:
	"""Calendar date in UTC; streaks are always evaluated on this date."""
	now = now or datetime.now(timezone.utc)
	if now.tzinfo is None:
		now = now.replace(tzinfo=timezone.utc)
	return now.astimezone(timezone.utc).date()


def next_streak(last_study_date: Optional[date], today: date, current_streak: int) -> int:
	if last_study_date == today:
		# Same day: already counted
		return current_streak
	if last_study_date is not None and last_study_date == today - timedelta(days=1):
		return current_streak + 1
	return 1


def longest_streak(previous_longest: int, new_streak: int) -> int:
	return max(previous_longest, new_streak)
