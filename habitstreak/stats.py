import asyncio
from collections import Counter

from fncli import cli

from .catalog import get_habits
from .core.models import HabitRank, Selection, Summary
from .lib import ansi
from .lib.dates import require_date_key, today_key
from .lib.errors import echo
from .selections import read_all
from .streaks import streaks_for

__all__ = ["summarize", "top_habits"]


def _in_range(
    all_selections: dict[str, Selection], start: str | None, end: str | None
) -> dict[str, Selection]:
    if start is not None:
        require_date_key(start)
    if end is not None:
        require_date_key(end)
    return {
        key: selection
        for key, selection in all_selections.items()
        if (start is None or key >= start) and (end is None or key <= end)
    }


def _summary(records: dict[str, Selection]) -> Summary:
    scheduled = sum(len(s.tasks) for s in records.values())
    completed = sum(len(s.completed) for s in records.values())
    rate = None if scheduled == 0 else completed / scheduled * 100
    return Summary(days=len(records), scheduled=scheduled, completed=completed, completion_rate=rate)


async def summarize(start: str | None = None, end: str | None = None) -> Summary:
    """Totals over every stored date in [start, end]. Suggested days do not count."""
    return _summary(_in_range(await read_all(), start, end))


async def top_habits(
    start: str | None = None, end: str | None = None, limit: int = 3
) -> list[HabitRank]:
    """Most completed habits in range; ties go to the longer current streak, then the name."""
    records = _in_range(await read_all(), start, end)
    counts = Counter(habit_id for s in records.values() for habit_id in s.completed)
    if not counts:
        return []

    habits = {h.id: h for h in await get_habits(list(counts))}
    streaks = await streaks_for(list(habits), end or today_key())
    days = len(records)

    ranked = sorted(
        (habit_id for habit_id in counts if habit_id in habits),
        key=lambda h: (-counts[h], -streaks.get(h, 0), habits[h].name.lower()),
    )
    return [
        HabitRank(
            rank=i + 1,
            habit_id=habit_id,
            name=habits[habit_id].name,
            icon=habits[habit_id].icon,
            completions=counts[habit_id],
            streak=streaks.get(habit_id, 0),
            completion_rate=counts[habit_id] / days * 100,
        )
        for i, habit_id in enumerate(ranked[:limit])
    ]


# ── cli ──────────────────────────────────────────────────────────────────────


@cli("habitstreak")
def stats(since: str | None = None, until: str | None = None) -> None:
    """Show completion totals and top habits"""
    from .lib.dates import parse_when

    start = parse_when(since) if since else None
    end = parse_when(until) if until else None

    async def _load() -> tuple[Summary, list[HabitRank]]:
        return await summarize(start, end), await top_habits(start, end)

    summary, top = asyncio.run(_load())
    if summary.days == 0:
        echo("no data yet")
        return
    rate = "-" if summary.completion_rate is None else f"{round(summary.completion_rate)}%"
    echo(f"{summary.days} days  {summary.completed}/{summary.scheduled} done  {ansi.bold(rate)}")
    for item in top:
        icon = f"{item.icon} " if item.icon else ""
        echo(
            f"  {item.rank}. {icon}{item.name}  "
            f"{ansi.orange(f'{item.streak}d')}  {ansi.muted(f'{round(item.completion_rate)}%')}"
        )
