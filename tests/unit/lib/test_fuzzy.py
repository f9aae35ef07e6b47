import pytest

from habitstreak.core.errors import AmbiguousError
from habitstreak.core.models import HabitDefinition
from habitstreak.lib.fuzzy import find_in_pool, find_in_pool_exact

POOL = [
    HabitDefinition("habit_read", "Read 40 pages"),
    HabitDefinition("habit_run", "Morning run"),
    HabitDefinition("custom_3f2a9c", "Evening run"),
    HabitDefinition("habit_water", "Drink water"),
]


def test_exact_id():
    assert find_in_pool("habit_read", POOL).name == "Read 40 pages"


def test_unique_id_prefix():
    assert find_in_pool("custom_3f", POOL).id == "custom_3f2a9c"


def test_ambiguous_id_prefix():
    with pytest.raises(AmbiguousError):
        find_in_pool("habit_r", POOL)


def test_exact_name_wins_over_substring():
    pool = [*POOL, HabitDefinition("habit_run2", "run")]
    assert find_in_pool("run", pool).id == "habit_run2"


def test_unique_substring():
    assert find_in_pool("water", POOL).id == "habit_water"


def test_ambiguous_substring():
    with pytest.raises(AmbiguousError) as exc:
        find_in_pool("run", POOL)
    assert exc.value.count == 2


def test_fuzzy_only_in_loose_mode():
    assert find_in_pool("drink watr", POOL).id == "habit_water"
    assert find_in_pool_exact("drink watr", POOL) is None


def test_empty_pool():
    assert find_in_pool("anything", []) is None
