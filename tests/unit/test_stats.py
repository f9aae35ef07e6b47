import pytest

from habitstreak.core.errors import ValidationError
from habitstreak.core.models import Selection, Summary
from habitstreak.selections import write_selection
from habitstreak.stats import summarize, top_habits


@pytest.fixture
async def history(seeded):
    await write_selection("2025-01-10", Selection(tasks=["habit_a", "habit_b"], completed=["habit_a"]))
    await write_selection(
        "2025-01-11", Selection(tasks=["habit_a", "habit_b"], completed=["habit_a", "habit_b"])
    )
    await write_selection("2025-01-12", Selection(tasks=["habit_a", "habit_c"]))
    return seeded


async def test_summary_of_empty_store(seeded):
    assert await summarize() == Summary(days=0, scheduled=0, completed=0, completion_rate=None)


async def test_summary_counts_stored_days(history):
    summary = await summarize()
    assert summary.days == 3
    assert summary.scheduled == 6
    assert summary.completed == 3
    assert summary.completion_rate == 50.0


async def test_summary_range_is_inclusive(history):
    summary = await summarize("2025-01-11", "2025-01-12")
    assert summary.days == 2
    assert summary.scheduled == 4
    assert summary.completed == 2


async def test_summary_rejects_bad_range(history):
    with pytest.raises(ValidationError):
        await summarize("last week")


async def test_top_habits_by_completions(history):
    top = await top_habits(end="2025-01-12")
    assert [t.habit_id for t in top] == ["habit_a", "habit_b"]

    first = top[0]
    assert first.rank == 1
    assert first.name == "Read"
    assert first.completions == 2
    assert first.streak == 0
    assert first.completion_rate == pytest.approx(200 / 3)


async def test_top_habits_ties_go_to_longer_streak(seeded):
    await write_selection("2025-01-10", Selection(tasks=["habit_a", "habit_b"], completed=["habit_a"]))
    await write_selection("2025-01-11", Selection(tasks=["habit_a", "habit_b"], completed=["habit_b"]))

    top = await top_habits(end="2025-01-11")
    assert [(t.habit_id, t.streak) for t in top] == [("habit_b", 1), ("habit_a", 0)]


async def test_top_habits_ties_then_by_name(seeded):
    await write_selection(
        "2025-01-10", Selection(tasks=["habit_b", "habit_a"], completed=["habit_b", "habit_a"])
    )
    top = await top_habits(end="2025-01-10")
    assert [t.name for t in top] == ["Read", "Run"]


async def test_top_habits_limit(history):
    assert len(await top_habits(end="2025-01-12", limit=1)) == 1


async def test_top_habits_empty(seeded):
    await write_selection("2025-01-10", Selection(tasks=["habit_a"]))
    assert await top_habits() == []
