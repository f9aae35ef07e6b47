import pytest

from habitstreak.core.models import HabitDefinition, Selection
from habitstreak.day import render_day
from habitstreak.lib import ansi

HABITS = {
    "habit_a": HabitDefinition("habit_a", "Read", icon="📖"),
    "habit_b": HabitDefinition("habit_b", "Run"),
}


@pytest.fixture(autouse=True)
def plain():
    ansi.use(ansi.PLAIN)
    yield
    ansi.use(ansi.DEFAULT)


def test_render_marks_and_streaks():
    selection = Selection(tasks=["habit_a", "habit_b"], completed=["habit_a"])
    lines = render_day("2025-01-10", selection, HABITS, {"habit_a": 4})
    assert lines == ["2025-01-10", "  ✓ 📖 Read  4d", "  □ Run"]


def test_render_carried_over_day():
    selection = Selection(tasks=["habit_b"], suggested=True)
    lines = render_day("2025-01-11", selection, HABITS, {})
    assert lines[0] == "2025-01-11  (carried over)"


def test_render_empty_day():
    assert render_day("2025-01-11", Selection(suggested=True), HABITS, {}) == [
        "2025-01-11",
        "  nothing scheduled",
    ]


def test_render_unknown_habit_falls_back_to_id():
    lines = render_day("2025-01-10", Selection(tasks=["custom_x"]), HABITS, {})
    assert lines[1] == "  □ custom_x"
