import logging
import sqlite3

from . import db
from .catalog import CUSTOM_ID_PREFIX, categories_in
from .core.models import Selection
from .lib.dates import require_date_key

__all__ = ["latest_date_before", "suggest", "suggest_selection", "suggestion_in"]

logger = logging.getLogger(__name__)


def latest_date_before(conn: sqlite3.Connection, date_key: str) -> str | None:
    row = conn.execute("SELECT MAX(date) FROM day_entries WHERE date < ?", (date_key,)).fetchone()
    return row[0] if row and row[0] is not None else None


def suggested_tasks(conn: sqlite3.Connection, date_key: str) -> list[str]:
    """Tasks of the nearest earlier date that has entries; completion state is ignored."""
    source = latest_date_before(conn, date_key)
    if source is None:
        logger.debug("no date before %s has habits; nothing to suggest", date_key)
        return []

    rows = conn.execute(
        "SELECT habit_id FROM day_entries WHERE date = ? ORDER BY id", (source,)
    ).fetchall()
    habit_ids = [row[0] for row in rows]
    custom = sum(1 for h in habit_ids if h.startswith(CUSTOM_ID_PREFIX))
    logger.debug(
        "suggesting %d habits for %s from %s (%d custom, %d built-in)",
        len(habit_ids),
        date_key,
        source,
        custom,
        len(habit_ids) - custom,
    )
    return habit_ids


def suggestion_in(conn: sqlite3.Connection, date_key: str) -> Selection:
    tasks = suggested_tasks(conn, date_key)
    return Selection(
        tasks=tasks,
        completed=[],
        categories=categories_in(conn, tasks),
        suggested=True,
    )


async def suggest(date_key: str) -> list[str]:
    return await db.run(suggested_tasks, require_date_key(date_key))


async def suggest_selection(date_key: str) -> Selection:
    """The Selection a fresh day starts from. Never written to the store."""
    return await db.run(suggestion_in, require_date_key(date_key))
