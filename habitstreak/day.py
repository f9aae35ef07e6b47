import asyncio

from fncli import cli

from .catalog import get_habits
from .coordinator import WriteCoordinator
from .core.models import HabitDefinition, Selection
from .lib import ansi
from .lib.dates import parse_when
from .lib.errors import echo
from .lib.resolve import resolve_habit
from .selections import read_selection
from .streaks import streaks_for

__all__ = ["render_day", "show_day"]


def render_day(
    key: str, selection: Selection, habits: dict[str, HabitDefinition], streaks: dict[str, int]
) -> list[str]:
    header = ansi.bold(key)
    if selection.suggested and not selection.is_empty:
        header += "  " + ansi.muted("(carried over)")
    lines = [header]
    if selection.is_empty:
        lines.append(ansi.muted("  nothing scheduled"))
        return lines
    for habit_id in selection.tasks:
        habit = habits.get(habit_id)
        name = habit.name if habit else habit_id
        icon = f"{habit.icon} " if habit and habit.icon else ""
        mark = ansi.green("✓") if selection.is_completed(habit_id) else "□"
        streak = streaks.get(habit_id, 0)
        streak_str = f"  {ansi.orange(f'{streak}d')}" if streak else ""
        lines.append(f"  {mark} {icon}{name}{streak_str}")
    return lines


async def _load_day(key: str) -> list[str]:
    selection = await read_selection(key)
    habits = {h.id: h for h in await get_habits(selection.tasks)}
    streaks = await streaks_for(selection.tasks, key)
    return render_day(key, selection, habits, streaks)


def show_day(on: str | None = None) -> None:
    key = parse_when(on)
    for line in asyncio.run(_load_day(key)):
        echo(line)


@cli("habitstreak")
def day(on: str | None = None) -> None:
    """Show habits scheduled on a day"""
    show_day(on)


@cli("habitstreak")
def done(ref: str, on: str | None = None) -> None:
    """Toggle a habit done on a day"""
    key = parse_when(on)

    async def _toggle() -> tuple[HabitDefinition, Selection]:
        habit = await resolve_habit(ref)
        return habit, await WriteCoordinator().toggle(key, habit.id)

    habit, selection = asyncio.run(_toggle())
    if habit.id not in selection.tasks:
        echo(f"{habit.name} is not scheduled on {key}")
    elif selection.is_completed(habit.id):
        echo(f"{ansi.green('✓')} {habit.name}")
    else:
        echo(f"□ {habit.name}")


@cli("habitstreak")
def schedule(ref: str, on: str | None = None, forward: bool = False) -> None:
    """Add a habit to a day, optionally to every later scheduled day too"""
    key = parse_when(on)

    async def _add() -> HabitDefinition:
        habit = await resolve_habit(ref)
        await WriteCoordinator().add_habit(key, habit.id, apply_forward=forward)
        return habit

    habit = asyncio.run(_add())
    echo(f"{habit.name} scheduled on {key}{' and after' if forward else ''}")


@cli("habitstreak")
def rm(ref: str, on: str | None = None) -> None:
    """Remove a habit from one day only"""
    key = parse_when(on)

    async def _remove() -> HabitDefinition:
        habit = await resolve_habit(ref)
        await WriteCoordinator().remove_habit(key, habit.id)
        return habit

    habit = asyncio.run(_remove())
    echo(f"{ansi.dim(habit.name)}  removed from {key}")
