import dataclasses


@dataclasses.dataclass(frozen=True)
class HabitDefinition:
    id: str
    name: str
    description: str | None = None
    icon: str | None = None
    category_id: int | None = None
    category_name: str | None = None


@dataclasses.dataclass(frozen=True)
class DayEntry:
    habit_id: str
    date: str
    completed: bool = False


@dataclasses.dataclass(frozen=True)
class Selection:
    """Habits scheduled on one date. `categories` is derived from `tasks`, never stored."""

    tasks: list[str] = dataclasses.field(default_factory=list, hash=False)
    completed: list[str] = dataclasses.field(default_factory=list, hash=False)
    categories: list[int] = dataclasses.field(default_factory=list, hash=False)
    suggested: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.tasks

    def is_completed(self, habit_id: str) -> bool:
        return habit_id in self.completed


@dataclasses.dataclass(frozen=True)
class Summary:
    days: int = 0
    scheduled: int = 0
    completed: int = 0
    completion_rate: float | None = None


@dataclasses.dataclass(frozen=True)
class HabitRank:
    rank: int
    habit_id: str
    name: str
    icon: str | None
    completions: int
    streak: int
    completion_rate: float
