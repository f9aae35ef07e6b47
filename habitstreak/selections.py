import asyncio
import logging
import sqlite3
from collections.abc import Iterable

from fncli import UsageError, cli

from . import db
from .catalog import categories_in
from .core.models import DayEntry, Selection
from .lib.converters import row_to_entry
from .lib.dates import require_date_key
from .lib.errors import echo
from .suggest import suggestion_in

__all__ = [
    "add_habit_to_future",
    "normalize",
    "read_all",
    "read_entries",
    "read_selection",
    "remove_habit_on_date",
    "reset_all",
    "toggle_completion",
    "write_selection",
]

logger = logging.getLogger(__name__)


def normalize(tasks: Iterable[str], completed: Iterable[str] = ()) -> tuple[list[str], list[str]]:
    """Dedupe tasks keeping first occurrence; keep only completed ids that are scheduled."""
    unique = list(dict.fromkeys(tasks))
    done = set(completed)
    return unique, [t for t in unique if t in done]


def _replace_date(
    conn: sqlite3.Connection, date_key: str, tasks: list[str], completed: set[str]
) -> None:
    conn.execute("DELETE FROM day_entries WHERE date = ?", (date_key,))
    conn.executemany(
        "INSERT INTO day_entries (habit_id, date, completed) VALUES (?, ?, ?)",
        [(habit_id, date_key, int(habit_id in completed)) for habit_id in tasks],
    )


def _write(
    conn: sqlite3.Connection,
    date_key: str,
    tasks: list[str],
    completed: list[str],
    propagate_to_future: bool,
) -> tuple[list[str], list[int]]:
    _replace_date(conn, date_key, tasks, set(completed))
    future: list[str] = []
    if propagate_to_future:
        future = [
            row[0]
            for row in conn.execute(
                "SELECT DISTINCT date FROM day_entries WHERE date > ? ORDER BY date", (date_key,)
            ).fetchall()
        ]
        for future_key in future:
            _replace_date(conn, future_key, tasks, set())
    return future, categories_in(conn, tasks)


def _persisted(conn: sqlite3.Connection, date_key: str) -> Selection | None:
    rows = conn.execute(
        "SELECT habit_id, completed FROM day_entries WHERE date = ? ORDER BY id", (date_key,)
    ).fetchall()
    if not rows:
        return None
    tasks = [habit_id for habit_id, _ in rows]
    return Selection(
        tasks=tasks,
        completed=[habit_id for habit_id, done in rows if done],
        categories=categories_in(conn, tasks),
    )


def _read(conn: sqlite3.Connection, date_key: str) -> Selection:
    return _persisted(conn, date_key) or suggestion_in(conn, date_key)


def _read_all(conn: sqlite3.Connection) -> dict[str, Selection]:
    entries = [
        row_to_entry(row)
        for row in conn.execute(
            "SELECT habit_id, date, completed FROM day_entries ORDER BY date, id"
        ).fetchall()
    ]
    category_of = dict(conn.execute("SELECT id, category_id FROM habits").fetchall())

    grouped: dict[str, tuple[list[str], list[str]]] = {}
    for entry in entries:
        tasks, completed = grouped.setdefault(entry.date, ([], []))
        tasks.append(entry.habit_id)
        if entry.completed:
            completed.append(entry.habit_id)

    result: dict[str, Selection] = {}
    for date_key, (tasks, completed) in grouped.items():
        categories = list(
            dict.fromkeys(category_of[t] for t in tasks if category_of.get(t) is not None)
        )
        result[date_key] = Selection(tasks=tasks, completed=completed, categories=categories)
    return result


def _read_entries(
    conn: sqlite3.Connection, habit_id: str | None, date_key: str | None
) -> list[DayEntry]:
    clauses, params = [], []
    if habit_id is not None:
        clauses.append("habit_id = ?")
        params.append(habit_id)
    if date_key is not None:
        clauses.append("date = ?")
        params.append(date_key)
    where = " AND ".join(clauses) or "1 = 1"
    rows = conn.execute(
        f"SELECT habit_id, date, completed FROM day_entries WHERE {where} ORDER BY date, id",  # noqa: S608
        tuple(params),
    ).fetchall()
    return [row_to_entry(row) for row in rows]


async def write_selection(
    date_key: str, selection: Selection, propagate_to_future: bool = False
) -> Selection:
    """Replace every entry on date_key with `selection` in one transaction.

    With propagate_to_future, every later date that already has entries is
    replaced with the same tasks, all uncompleted. `selection.categories` is
    ignored and recomputed.
    """
    require_date_key(date_key)
    tasks, completed = normalize(selection.tasks, selection.completed)
    future, categories = await db.run(_write, date_key, tasks, completed, propagate_to_future)
    logger.info("saved %s: %d habits, %d completed", date_key, len(tasks), len(completed))
    if future:
        logger.info("propagated %s selection to %d later date(s)", date_key, len(future))
    return Selection(tasks=tasks, completed=completed, categories=categories)


async def read_selection(date_key: str) -> Selection:
    """Persisted Selection for date_key, else the suggestion. Reading never writes."""
    selection = await db.run(_read, require_date_key(date_key))
    source = "suggested" if selection.suggested else "stored"
    logger.debug("read %s: %d habits (%s)", date_key, len(selection.tasks), source)
    return selection


async def read_all() -> dict[str, Selection]:
    return await db.run(_read_all)


async def read_entries(habit_id: str | None = None, date_key: str | None = None) -> list[DayEntry]:
    if date_key is not None:
        require_date_key(date_key)
    return await db.run(_read_entries, habit_id, date_key)


def _remove(conn: sqlite3.Connection, habit_id: str, date_key: str) -> int:
    return conn.execute(
        "DELETE FROM day_entries WHERE habit_id = ? AND date = ?", (habit_id, date_key)
    ).rowcount


async def remove_habit_on_date(habit_id: str, date_key: str) -> bool:
    removed = await db.run(_remove, habit_id, require_date_key(date_key))
    if removed:
        logger.info("removed %s from %s", habit_id, date_key)
    return bool(removed)


def _toggle(conn: sqlite3.Connection, habit_id: str, date_key: str, completed: bool) -> int:
    return conn.execute(
        "UPDATE day_entries SET completed = ? WHERE habit_id = ? AND date = ?",
        (int(completed), habit_id, date_key),
    ).rowcount


async def toggle_completion(habit_id: str, date_key: str, completed: bool) -> bool:
    """Flip one entry in place. Returns False (no-op) when the habit is not scheduled that day."""
    updated = await db.run(_toggle, habit_id, require_date_key(date_key), completed)
    if not updated:
        logger.warning("toggle ignored: %s is not scheduled on %s", habit_id, date_key)
        return False
    logger.info("%s on %s -> %s", habit_id, date_key, "done" if completed else "not done")
    return True


def _add_to_future(conn: sqlite3.Connection, habit_id: str, start_date: str) -> int:
    future = [
        row[0]
        for row in conn.execute(
            """
            SELECT DISTINCT date FROM day_entries
            WHERE date > ?
              AND date NOT IN (SELECT date FROM day_entries WHERE habit_id = ?)
            ORDER BY date
            """,
            (start_date, habit_id),
        ).fetchall()
    ]
    conn.executemany(
        "INSERT INTO day_entries (habit_id, date, completed) VALUES (?, ?, 0)",
        [(habit_id, date_key) for date_key in future],
    )
    return len(future)


async def add_habit_to_future(habit_id: str, start_date: str) -> int:
    """Append habit_id, uncompleted, to every later date with entries that lacks it."""
    added = await db.run(_add_to_future, habit_id, require_date_key(start_date))
    if added:
        logger.info("added %s to %d later date(s)", habit_id, added)
    return added


def _reset(conn: sqlite3.Connection) -> int:
    return conn.execute("DELETE FROM day_entries").rowcount


async def reset_all() -> int:
    """Delete every day entry. Habit definitions survive."""
    removed = await db.run(_reset)
    logger.info("progress reset: %d entries removed", removed)
    return removed


# ── cli ──────────────────────────────────────────────────────────────────────


@cli("habitstreak")
def reset(yes: bool = False) -> None:
    """Erase all scheduled days and completions"""
    if not yes:
        raise UsageError("Usage: habitstreak reset --yes (this cannot be undone)")
    removed = asyncio.run(reset_all())
    echo(f"progress reset ({removed} entries removed)")
