from typing import cast

from habitstreak.core.models import DayEntry, HabitDefinition

HabitRow = tuple[object, ...]
EntryRow = tuple[object, ...]


def _optional_str(row: tuple[object, ...], idx: int) -> str | None:
    return cast(str, row[idx]) if len(row) > idx and row[idx] is not None else None


def row_to_habit(row: HabitRow) -> HabitDefinition:
    """
    Converts a raw database row from habits table into a HabitDefinition.
    Expected row format: (id, name, description, icon, category_id, category_name)
    """
    category_id = row[4] if len(row) > 4 else None
    return HabitDefinition(
        id=cast(str, row[0]),
        name=cast(str, row[1]),
        description=_optional_str(row, 2),
        icon=_optional_str(row, 3),
        category_id=int(cast(int, category_id)) if category_id is not None else None,
        category_name=_optional_str(row, 5),
    )


def row_to_entry(row: EntryRow) -> DayEntry:
    """
    Converts a raw database row from day_entries into a DayEntry.
    Expected row format: (habit_id, date, completed)
    """
    return DayEntry(
        habit_id=cast(str, row[0]),
        date=cast(str, row[1]),
        completed=bool(row[2]),
    )
