import asyncio
import logging
import sqlite3
import uuid
from collections.abc import Iterable
from pathlib import Path

import yaml
from fncli import cli

from . import db
from .core.errors import ValidationError
from .core.models import HabitDefinition
from .lib import ansi
from .lib.converters import row_to_habit
from .lib.errors import echo
from .lib.fuzzy import find_in_pool, find_in_pool_exact

__all__ = [
    "CUSTOM_CATEGORY_ID",
    "CUSTOM_CATEGORY_NAME",
    "categories_for",
    "create_custom",
    "delete_habit",
    "find_habit",
    "find_habit_exact",
    "get_custom_habits",
    "get_habit",
    "get_habits",
    "load_builtins",
    "seed_builtins",
]

logger = logging.getLogger(__name__)

CUSTOM_CATEGORY_ID = 999
CUSTOM_CATEGORY_NAME = "Custom"
CUSTOM_ID_PREFIX = "custom_"
MAX_NAME_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 200

BUILTINS_PATH = Path(__file__).parent / "builtins.yaml"


# ── domain ───────────────────────────────────────────────────────────────────


_HABIT_COLS = "id, name, description, icon, category_id, category_name"


def load_builtins(path: Path | None = None) -> list[HabitDefinition]:
    """Read the packaged default catalogue: a list of categories, each with habits."""
    path = path if path else BUILTINS_PATH
    with path.open(encoding="utf-8") as f:
        categories = yaml.safe_load(f) or []
    return [
        HabitDefinition(
            id=str(habit["id"]),
            name=str(habit["name"]),
            description=habit.get("description"),
            icon=habit.get("icon", category.get("icon")),
            category_id=int(category["id"]),
            category_name=category.get("name"),
        )
        for category in categories
        for habit in category.get("habits", [])
    ]


def _fetch_habits(
    conn: sqlite3.Connection, where: str = "1 = 1", params: tuple[object, ...] = ()
) -> list[HabitDefinition]:
    cursor = conn.execute(
        f"SELECT {_HABIT_COLS} FROM habits WHERE {where}",  # noqa: S608
        params,
    )
    return [row_to_habit(row) for row in cursor.fetchall()]


def _seed(conn: sqlite3.Connection, definitions: list[HabitDefinition]) -> int:
    inserted = 0
    for d in definitions:
        cursor = conn.execute(
            f"INSERT OR IGNORE INTO habits ({_HABIT_COLS}) VALUES (?, ?, ?, ?, ?, ?)",  # noqa: S608
            (d.id, d.name, d.description, d.icon, d.category_id, d.category_name),
        )
        inserted += cursor.rowcount
    return inserted


def categories_in(conn: sqlite3.Connection, habit_ids: list[str]) -> list[int]:
    """Distinct category ids for habit_ids, in order of first appearance."""
    if not habit_ids:
        return []
    placeholders = ",".join("?" * len(habit_ids))
    rows = conn.execute(
        f"SELECT id, category_id FROM habits WHERE id IN ({placeholders})",  # noqa: S608
        tuple(habit_ids),
    ).fetchall()
    by_habit = {habit_id: category_id for habit_id, category_id in rows}
    categories: list[int] = []
    for habit_id in habit_ids:
        category_id = by_habit.get(habit_id)
        if category_id is not None and category_id not in categories:
            categories.append(category_id)
    return categories


async def seed_builtins(definitions: Iterable[HabitDefinition] | None = None) -> int:
    """Insert built-in definitions that are not present yet. Safe on every startup."""
    defs = list(definitions) if definitions is not None else load_builtins()
    inserted = await db.run(_seed, defs)
    if inserted:
        logger.info("seeded %d built-in habits", inserted)
    return inserted


def _validate_custom(name: str, description: str | None) -> tuple[str, str | None]:
    name = (name or "").strip()
    if not name:
        raise ValidationError("habit name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"habit name longer than {MAX_NAME_LENGTH} characters")
    if description is not None:
        description = description.strip() or None
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"description longer than {MAX_DESCRIPTION_LENGTH} characters")
    return name, description


async def create_custom(name: str, description: str | None = None, icon: str | None = None) -> str:
    name, description = _validate_custom(name, description)
    habit_id = f"{CUSTOM_ID_PREFIX}{uuid.uuid4().hex}"
    habit = HabitDefinition(
        id=habit_id,
        name=name,
        description=description,
        icon=icon or None,
        category_id=CUSTOM_CATEGORY_ID,
        category_name=CUSTOM_CATEGORY_NAME,
    )
    await db.run(_seed, [habit])
    logger.info("created custom habit %s (%s)", habit_id, name)
    return habit_id


def _delete(conn: sqlite3.Connection, habit_id: str) -> int:
    conn.execute("DELETE FROM day_entries WHERE habit_id = ?", (habit_id,))
    return conn.execute("DELETE FROM habits WHERE id = ?", (habit_id,)).rowcount


async def delete_habit(habit_id: str) -> bool:
    """Delete a definition and every day entry that references it. Unknown ids are a no-op."""
    deleted = await db.run(_delete, habit_id)
    if deleted:
        logger.info("deleted habit %s", habit_id)
    return bool(deleted)


async def get_habit(habit_id: str) -> HabitDefinition | None:
    habits = await db.run(_fetch_habits, "id = ?", (habit_id,))
    return habits[0] if habits else None


async def get_habits(habit_ids: list[str] | None = None) -> list[HabitDefinition]:
    if habit_ids is None:
        return await db.run(_fetch_habits, "1 = 1 ORDER BY category_id, id")
    if not habit_ids:
        return []
    placeholders = ",".join("?" * len(habit_ids))
    return await db.run(_fetch_habits, f"id IN ({placeholders})", tuple(habit_ids))


async def get_custom_habits() -> list[HabitDefinition]:
    return await db.run(_fetch_habits, "category_id = ? ORDER BY rowid DESC", (CUSTOM_CATEGORY_ID,))


async def categories_for(habit_ids: list[str]) -> list[int]:
    return await db.run(categories_in, list(habit_ids))


async def find_habit(ref: str) -> HabitDefinition | None:
    return find_in_pool(ref, await get_habits())


async def find_habit_exact(ref: str) -> HabitDefinition | None:
    return find_in_pool_exact(ref, await get_habits())


# ── cli ──────────────────────────────────────────────────────────────────────


def _label(habit: HabitDefinition) -> str:
    icon = f"{habit.icon} " if habit.icon else ""
    return f"{icon}{habit.name} {ansi.muted(f'[{habit.id}]')}"


@cli("habitstreak")
def habits() -> None:
    """List habit catalogue"""
    items = asyncio.run(get_habits())
    if not items:
        echo("no habits")
        return
    current: str | None = None
    for habit in items:
        group = habit.category_name or "Other"
        if group != current:
            echo(ansi.bold(group))
            current = group
        echo(f"  {_label(habit)}")


@cli("habitstreak")
def new(name: str, description: str | None = None, icon: str | None = None) -> None:
    """Create a custom habit"""
    habit_id = asyncio.run(create_custom(name, description, icon))
    echo(f"created {name.strip()} {ansi.muted(f'[{habit_id}]')}")


@cli("habitstreak")
def delete(ref: str) -> None:
    """Delete a habit and all of its history"""
    from .lib.resolve import resolve_habit

    habit = asyncio.run(resolve_habit(ref, exact=True))
    asyncio.run(delete_habit(habit.id))
    echo(f"{ansi.dim(habit.name)}  deleted")
