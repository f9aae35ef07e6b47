from habitstreak.catalog import find_habit, find_habit_exact
from habitstreak.core.models import HabitDefinition

from .errors import exit_error

__all__ = ["resolve_habit"]


async def resolve_habit(ref: str, exact: bool = False) -> HabitDefinition:
    """Resolve a CLI habit reference. Exact mode skips fuzzy matching (used for deletes)."""
    habit = await (find_habit_exact(ref) if exact else find_habit(ref))
    if not habit:
        exit_error(f"No habit found: '{ref}'")
    return habit
