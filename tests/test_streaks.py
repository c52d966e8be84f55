from datetime import date, datetime, timedelta, timezone

from vocabquest.streaks import longest_streak, next_streak, utc_today

TODAY = date(2026, 3, 14)


def test_same_day_leaves_streak_unchanged() -> None:
    assert next_streak(TODAY, TODAY, 4) == 4


def test_consecutive_day_increments() -> None:
    assert next_streak(TODAY - timedelta(days=1), TODAY, 4) == 5


def test_gap_or_first_study_resets_to_one() -> None:
    assert next_streak(TODAY - timedelta(days=2), TODAY, 9) == 1
    assert next_streak(None, TODAY, 0) == 1


def test_longest_streak_keeps_maximum() -> None:
    assert longest_streak(7, 3) == 7
    assert longest_streak(7, 8) == 8


def test_utc_today_uses_utc_calendar_date() -> None:
    late_evening_sydney = datetime(2026, 3, 15, 8, 30, tzinfo=timezone(timedelta(hours=10)))
    assert utc_today(late_evening_sydney) == date(2026, 3, 14)
    assert utc_today(datetime(2026, 3, 14, 23, 59)) == date(2026, 3, 14)
