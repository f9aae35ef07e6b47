import logging
import sqlite3
from collections import defaultdict
from collections.abc import Sequence
from datetime import timedelta

from . import config, db
from .core.errors import ValidationError
from .lib.dates import date_key, parse_date_key, require_date_key, today_key

__all__ = ["count_streak", "longest_run", "longest_streak", "streak_for", "streaks_for"]

logger = logging.getLogger(__name__)


def count_streak(completed_dates: Sequence[str], as_of: str) -> int:
    """Length of the unbroken run of completed dates ending exactly on as_of.

    completed_dates must be distinct, all <= as_of, newest first. The i-th date
    has to equal as_of minus the streak so far; the first mismatch ends the walk,
    so a missing as_of gives 0.
    """
    end = parse_date_key(as_of)
    streak = 0
    for key in completed_dates:
        if key != date_key(end - timedelta(days=streak)):
            break
        streak += 1
    return streak


def longest_run(completed_dates: Sequence[str]) -> int:
    """Longest run of consecutive days in distinct dates sorted oldest first."""
    best = run = 0
    previous = None
    for key in completed_dates:
        day = parse_date_key(key)
        run = run + 1 if previous is not None and (day - previous).days == 1 else 1
        best = max(best, run)
        previous = day
    return best


def _completed_dates(conn: sqlite3.Connection, habit_id: str, as_of: str, limit: int) -> list[str]:
    rows = conn.execute(
        """
        SELECT DISTINCT date FROM day_entries
        WHERE habit_id = ? AND completed = 1 AND date <= ?
        ORDER BY date DESC
        LIMIT ?
        """,
        (habit_id, as_of, limit),
    ).fetchall()
    return [row[0] for row in rows]


def _completed_dates_by_habit(
    conn: sqlite3.Connection, habit_ids: list[str], as_of: str, limit: int
) -> dict[str, list[str]]:
    placeholders = ",".join("?" * len(habit_ids))
    rows = conn.execute(
        f"""
        SELECT habit_id, date FROM (
            SELECT habit_id, date,
                   ROW_NUMBER() OVER (PARTITION BY habit_id ORDER BY date DESC) AS rn
            FROM day_entries
            WHERE habit_id IN ({placeholders}) AND completed = 1 AND date <= ?
        )
        WHERE rn <= ?
        ORDER BY habit_id, date DESC
        """,  # noqa: S608
        (*habit_ids, as_of, limit),
    ).fetchall()
    grouped: defaultdict[str, list[str]] = defaultdict(list)
    for habit_id, key in rows:
        grouped[habit_id].append(key)
    return dict(grouped)


async def streak_for(habit_id: str, as_of: str | None = None) -> int:
    if not habit_id:
        raise ValidationError("habit_id cannot be empty")
    as_of = require_date_key(as_of) if as_of else today_key()

    dates = await db.run(_completed_dates, habit_id, as_of, config.get_streak_window())
    streak = count_streak(dates, as_of)
    logger.debug("streak %s as of %s: %d (from %d completions)", habit_id, as_of, streak, len(dates))
    return streak


async def streaks_for(habit_ids: Sequence[str], as_of: str | None = None) -> dict[str, int]:
    """Batched streak_for: one query for the whole id set, same result per id."""
    if any(not habit_id for habit_id in habit_ids):
        raise ValidationError("habit_id cannot be empty")
    as_of = require_date_key(as_of) if as_of else today_key()
    ids = list(dict.fromkeys(habit_ids))
    if not ids:
        return {}

    by_habit = await db.run(_completed_dates_by_habit, ids, as_of, config.get_streak_window())
    return {habit_id: count_streak(by_habit.get(habit_id, []), as_of) for habit_id in ids}


def _all_completed_dates(conn: sqlite3.Connection, habit_id: str, as_of: str) -> list[str]:
    rows = conn.execute(
        """
        SELECT DISTINCT date FROM day_entries
        WHERE habit_id = ? AND completed = 1 AND date <= ?
        ORDER BY date
        """,
        (habit_id, as_of),
    ).fetchall()
    return [row[0] for row in rows]


async def longest_streak(habit_id: str, as_of: str | None = None) -> int:
    """Best run ever recorded up to as_of. Not capped by the streak window."""
    as_of = require_date_key(as_of) if as_of else today_key()
    return longest_run(await db.run(_all_completed_dates, habit_id, as_of))
