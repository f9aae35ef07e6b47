import asyncio
import itertools
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from . import catalog, config, selections
from .core.models import Selection
from .lib.dates import require_date_key

__all__ = ["WriteCoordinator"]

logger = logging.getLogger(__name__)

Change = Callable[[Selection], Selection | None]
Pending = tuple[int, Selection]


class WriteCoordinator:
    """Orders every mutation of a date's Selection.

    schedule() is passive persistence: requests for the same date inside the
    debounce window collapse into one write of the latest state. Everything
    else is explicit: it folds any pending auto-save for the date into its
    read-modify-write and returns only after the write is stored.

    Writes to one date run under that date's lock. Each scheduled state
    carries a token; a debounced write that wakes up to find a newer token
    drops out, so an older save can never land on top of a newer one. A
    pending state is retired only once a write that includes it is stored:
    an explicit write that fails or is cancelled leaves it pending.
    """

    def __init__(self, delay: float | None = None):
        self.delay = delay if delay is not None else config.get_debounce_ms() / 1000
        self._tokens = itertools.count(1)
        self._latest: dict[str, Pending] = {}
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}
        self._errors: list[Exception] = []

    @asynccontextmanager
    async def _hold(self, date_key: str) -> AsyncIterator[None]:
        """Exclusive access to date_key. The lock is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(date_key, asyncio.Lock())
        self._holders[date_key] = self._holders.get(date_key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[date_key] -= 1
            if not self._holders[date_key]:
                del self._holders[date_key]
                del self._locks[date_key]

    def _cancel_timer(self, date_key: str) -> None:
        timer = self._timers.pop(date_key, None)
        if timer is not None:
            timer.cancel()

    def _settle(self, date_key: str, entry: Pending | None) -> None:
        """Retire `entry` after a write that includes it. A newer state stays pending."""
        if entry is None or self._latest.get(date_key) is not entry:
            return
        del self._latest[date_key]
        self._cancel_timer(date_key)

    def pending(self, date_key: str) -> Selection | None:
        entry = self._latest.get(date_key)
        return entry[1] if entry else None

    @property
    def has_pending(self) -> bool:
        return bool(self._latest)

    # ── passive ──────────────────────────────────────────────────────────────

    def schedule(self, date_key: str, selection: Selection) -> None:
        """Arm a debounced save of `selection`, cancelling any earlier one for the date."""
        require_date_key(date_key)
        self._cancel_timer(date_key)
        token = next(self._tokens)
        self._latest[date_key] = (token, selection)

        task = asyncio.get_running_loop().create_task(
            self._fire(date_key, token), name=f"autosave:{date_key}"
        )
        self._timers[date_key] = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fire(self, date_key: str, token: int) -> None:
        await asyncio.sleep(self.delay)
        # past this point the save is no longer cancellable, only supersedable
        if self._timers.get(date_key) is asyncio.current_task():
            del self._timers[date_key]

        async with self._hold(date_key):
            entry = self._latest.get(date_key)
            if entry is None or entry[0] != token:
                logger.debug("auto-save for %s superseded", date_key)
                return
            try:
                await selections.write_selection(date_key, entry[1])
            except Exception as e:
                logger.exception("auto-save for %s failed; kept pending", date_key)
                self._errors.append(e)
                return
            self._settle(date_key, entry)

    # ── explicit ─────────────────────────────────────────────────────────────

    async def commit(
        self, date_key: str, selection: Selection, propagate_to_future: bool = False
    ) -> Selection:
        """Write `selection` now. It replaces a pending auto-save for the date once stored."""
        require_date_key(date_key)
        async with self._hold(date_key):
            entry = self._latest.get(date_key)
            result = await selections.write_selection(
                date_key, selection, propagate_to_future=propagate_to_future
            )
            if entry is not None:
                logger.debug("explicit save for %s replaced a pending auto-save", date_key)
            self._settle(date_key, entry)
            return result

    async def update(self, date_key: str, change: Change) -> Selection:
        """Read-modify-write the effective Selection for date_key.

        The base is the pending auto-save state if there is one, otherwise the
        stored or suggested Selection. `change` returns None for a no-op; a
        pending state is still written in that case.
        """
        require_date_key(date_key)
        async with self._hold(date_key):
            entry = self._latest.get(date_key)
            base = entry[1] if entry else await selections.read_selection(date_key)
            updated = change(base)
            if updated is None:
                if entry is None:
                    return base
                updated = entry[1]
            result = await selections.write_selection(date_key, updated)
            self._settle(date_key, entry)
            return result

    async def toggle(self, date_key: str, habit_id: str, completed: bool | None = None) -> Selection:
        """Mark habit_id done (or not) on date_key. No-op when it is not scheduled that day."""

        def change(base: Selection) -> Selection | None:
            if habit_id not in base.tasks:
                logger.warning("toggle ignored: %s is not scheduled on %s", habit_id, date_key)
                return None
            done = (habit_id not in base.completed) if completed is None else completed
            others = [h for h in base.completed if h != habit_id]
            return Selection(tasks=base.tasks, completed=[*others, habit_id] if done else others)

        return await self.update(date_key, change)

    async def add_habit(self, date_key: str, habit_id: str, apply_forward: bool = False) -> Selection:
        def change(base: Selection) -> Selection | None:
            if habit_id in base.tasks:
                return None
            return Selection(tasks=[*base.tasks, habit_id], completed=base.completed)

        result = await self.update(date_key, change)
        if apply_forward:
            await selections.add_habit_to_future(habit_id, date_key)
        return result

    async def remove_habit(self, date_key: str, habit_id: str) -> Selection:
        def change(base: Selection) -> Selection | None:
            if habit_id not in base.tasks:
                return None
            return Selection(
                tasks=[h for h in base.tasks if h != habit_id],
                completed=[h for h in base.completed if h != habit_id],
            )

        return await self.update(date_key, change)

    async def create_custom(
        self,
        name: str,
        description: str | None = None,
        icon: str | None = None,
        date_key: str | None = None,
        apply_forward: bool = False,
    ) -> str:
        """Create a custom habit and, when date_key is given, schedule it there before returning."""
        if date_key is not None:
            require_date_key(date_key)
        habit_id = await catalog.create_custom(name, description, icon)
        if date_key is not None:
            await self.add_habit(date_key, habit_id, apply_forward=apply_forward)
        return habit_id

    # ── lifecycle ────────────────────────────────────────────────────────────

    async def flush(self) -> None:
        """Write every pending auto-save now, wait for in-flight ones, then surface failures.

        A date whose write fails stays pending, without a timer, until the
        next flush or explicit write for it; cancel_all() discards it.
        """
        failures: list[Exception] = []
        for date_key in list(self._latest):
            async with self._hold(date_key):
                entry = self._latest.get(date_key)
                if entry is None:
                    continue
                try:
                    await selections.write_selection(date_key, entry[1])
                except Exception as e:
                    logger.warning("flush of %s failed; kept pending: %s", date_key, e)
                    self._cancel_timer(date_key)
                    failures.append(e)
                    continue
                self._settle(date_key, entry)

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        errors, self._errors = [*self._errors, *failures], []
        if errors:
            raise errors[0]

    def cancel_all(self) -> None:
        """Drop every pending auto-save without writing it."""
        for date_key in list(self._latest):
            del self._latest[date_key]
            self._cancel_timer(date_key)
