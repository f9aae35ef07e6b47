from datetime import date

import pytest

from habitstreak import config
from habitstreak.core.errors import ValidationError
from habitstreak.core.models import Selection
from habitstreak.lib.dates import shift
from habitstreak.selections import write_selection
from habitstreak.streaks import count_streak, longest_run, longest_streak, streak_for, streaks_for


async def _history(days: dict[str, tuple[list[str], list[str]]]) -> None:
    for key, (tasks, completed) in days.items():
        await write_selection(key, Selection(tasks=tasks, completed=completed))


def test_count_streak_walks_back_from_as_of():
    dates = ["2025-01-10", "2025-01-09", "2025-01-07"]
    assert count_streak(dates, "2025-01-10") == 2


def test_count_streak_needs_as_of():
    assert count_streak(["2025-01-09", "2025-01-08"], "2025-01-10") == 0
    assert count_streak([], "2025-01-10") == 0


def test_count_streak_across_month_boundary():
    assert count_streak(["2025-03-01", "2025-02-28", "2025-02-27"], "2025-03-01") == 3


def test_longest_run():
    dates = ["2025-01-01", "2025-01-02", "2025-01-04", "2025-01-05", "2025-01-06"]
    assert longest_run(dates) == 3
    assert longest_run([]) == 0


async def test_streak_counts_consecutive_completions(seeded):
    await _history(
        {
            "2025-01-08": (["habit_a"], ["habit_a"]),
            "2025-01-09": (["habit_a"], ["habit_a"]),
            "2025-01-10": (["habit_a"], ["habit_a"]),
        }
    )
    assert await streak_for("habit_a", "2025-01-10") == 3
    assert await streak_for("habit_a", "2025-01-09") == 2


async def test_missed_day_restarts_streak(seeded):
    await _history(
        {
            "2025-01-05": (["habit_a"], ["habit_a"]),
            "2025-01-06": (["habit_a"], ["habit_a"]),
            "2025-01-07": (["habit_a"], []),
            "2025-01-08": (["habit_a"], ["habit_a"]),
            "2025-01-09": (["habit_a"], ["habit_a"]),
        }
    )
    assert await streak_for("habit_a", "2025-01-09") == 2


async def test_unfinished_today_means_zero(seeded):
    await _history(
        {
            "2025-01-09": (["habit_a"], ["habit_a"]),
            "2025-01-10": (["habit_a"], []),
        }
    )
    assert await streak_for("habit_a", "2025-01-10") == 0
    assert await streak_for("habit_a", "2025-01-11") == 0


async def test_unscheduled_gap_breaks_streak(seeded):
    await _history(
        {
            "2025-01-08": (["habit_a"], ["habit_a"]),
            "2025-01-10": (["habit_a"], ["habit_a"]),
        }
    )
    assert await streak_for("habit_a", "2025-01-10") == 1


async def test_later_completions_are_ignored(seeded):
    await _history(
        {
            "2025-01-09": (["habit_a"], ["habit_a"]),
            "2025-01-10": (["habit_a"], ["habit_a"]),
            "2025-01-11": (["habit_a"], ["habit_a"]),
        }
    )
    assert await streak_for("habit_a", "2025-01-10") == 2


async def test_streak_defaults_to_today(seeded, monkeypatch):
    monkeypatch.setattr("habitstreak.lib.clock.today", lambda: date(2025, 1, 10))
    await _history(
        {
            "2025-01-09": (["habit_b"], ["habit_b"]),
            "2025-01-10": (["habit_b"], ["habit_b"]),
        }
    )
    assert await streak_for("habit_b") == 2


async def test_empty_habit_id_rejected(seeded):
    with pytest.raises(ValidationError):
        await streak_for("", "2025-01-10")


async def test_batch_matches_single(seeded):
    await _history(
        {
            "2025-01-08": (["habit_a", "habit_b"], ["habit_a", "habit_b"]),
            "2025-01-09": (["habit_a", "habit_b", "habit_c"], ["habit_a", "habit_c"]),
            "2025-01-10": (["habit_a", "habit_b", "habit_c"], ["habit_a", "habit_b", "habit_c"]),
        }
    )
    ids = ["habit_a", "habit_b", "habit_c", "habit_d"]
    batch = await streaks_for(ids, "2025-01-10")
    assert batch == {h: await streak_for(h, "2025-01-10") for h in ids}
    assert batch == {"habit_a": 3, "habit_b": 1, "habit_c": 2, "habit_d": 0}


async def test_batch_dedupes_and_handles_empty(seeded):
    await _history({"2025-01-10": (["habit_a"], ["habit_a"])})
    assert await streaks_for(["habit_a", "habit_a"], "2025-01-10") == {"habit_a": 1}
    assert await streaks_for([], "2025-01-10") == {}


async def test_batch_rejects_empty_id(seeded):
    with pytest.raises(ValidationError):
        await streaks_for(["habit_a", ""], "2025-01-10")


async def test_streak_capped_by_window(seeded):
    config.Config().set("streak_window", 5)
    start = "2025-01-01"
    await _history({shift(start, i): (["habit_a"], ["habit_a"]) for i in range(10)})

    assert await streak_for("habit_a", "2025-01-10") == 5
    assert await streaks_for(["habit_a"], "2025-01-10") == {"habit_a": 5}


async def test_longest_streak_ignores_window(seeded):
    config.Config().set("streak_window", 2)
    await _history(
        {
            "2025-01-01": (["habit_a"], ["habit_a"]),
            "2025-01-02": (["habit_a"], ["habit_a"]),
            "2025-01-03": (["habit_a"], ["habit_a"]),
            "2025-01-04": (["habit_a"], ["habit_a"]),
            "2025-01-05": (["habit_a"], []),
            "2025-01-06": (["habit_a"], ["habit_a"]),
        }
    )
    assert await longest_streak("habit_a", "2025-01-06") == 4
    assert await longest_streak("habit_a", "2025-01-02") == 2
    assert await streak_for("habit_a", "2025-01-06") == 1
